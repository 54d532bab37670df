"""Terminal highlighting of matched text"""

import re

import click


# ANSI 31-37, one step per submatch
PALETTE = ('red', 'green', 'yellow', 'blue', 'magenta', 'cyan', 'white')


def submatch_color(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


def highlight(text: str, pattern: re.Pattern) -> str:
    """
    Wrap the text matched by ``pattern`` in color codes.

    The first match is taken; the full match and then each capture group get
    successive palette colors. Every literal occurrence of a submatch in the
    text is wrapped, not only the matched span, and later groups are replaced
    in text that already carries codes from earlier ones. Empty and
    non-participating groups are left alone.

    Args:
        text: String about to be printed
        pattern: Pattern that matched it

    Returns:
        Text with submatches wrapped, or the original text when nothing matches
    """
    match = pattern.search(text)
    if match is None:
        return text

    submatches = (match.group(0),) + match.groups()
    for index, sub in enumerate(submatches):
        if not sub:
            continue
        text = text.replace(sub, click.style(sub, fg=submatch_color(index), bold=True))
    return text
