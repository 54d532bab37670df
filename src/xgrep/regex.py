"""
Pattern compilation for the matching cascade.

All filters given on the command line are compiled exactly once, before any
file is opened, into an immutable PatternSet that worker threads share
read-only. Compiled patterns are used with ``search`` semantics, so a pattern
does not need to cover the whole string, and an empty pattern matches
everything.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field


ATTR_SEPARATOR = '='


class PatternError(ValueError):
    """Raised when a filter cannot be compiled"""


@dataclass(frozen=True)
class AttributeFilter:
    """
    A required attribute: some attribute of the node must satisfy both halves.

    Attributes:
        key: Pattern for the attribute's local name
        value: Pattern for the attribute's value
    """

    key: re.Pattern
    value: re.Pattern

    def matches(self, name: str, value: str) -> bool:
        return self.key.search(name) is not None and self.value.search(value) is not None


@dataclass(frozen=True)
class PatternSet:
    """Compiled filters for one run"""

    namespace: re.Pattern
    tag: re.Pattern
    content: re.Pattern
    attributes: tuple[AttributeFilter, ...] = field(default_factory=tuple)


def compile_pattern(pattern: str, label: str) -> re.Pattern:
    """
    Compile a single filter.

    Args:
        pattern: Regex source
        label: Human-readable name of the filter, used in error messages

    Returns:
        Compiled pattern

    Raises:
        PatternError: If the pattern is not a valid regex
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(f'{label} regex {pattern!r}: {e}') from e


def parse_attr_filter(text: str) -> AttributeFilter:
    """
    Parse and compile a ``key-regex=value-regex`` attribute filter.

    The text must split into exactly two parts on '=', so neither half can
    contain a literal '='.
    """
    parts = text.split(ATTR_SEPARATOR)
    if len(parts) != 2:
        raise PatternError(f'unable to split attr {text!r}: expected <key-regex>=<value-regex>')

    key, value = parts
    return AttributeFilter(
        key=compile_pattern(key, f'attribute key in {text!r}'),
        value=compile_pattern(value, f'attribute value in {text!r}'),
    )


def compile_pattern_set(
    namespace: str = '',
    tag: str = '',
    content: str = '',
    attributes: Iterable[str] = (),
) -> PatternSet:
    """
    Build the PatternSet for a run, failing fast on the first invalid filter.

    Args:
        namespace: Namespace URI filter
        tag: Local tag name filter
        content: Inner content filter
        attributes: Attribute filters in ``key=value`` form

    Returns:
        Immutable PatternSet

    Raises:
        PatternError: If any filter is malformed
    """
    attr_filters = tuple(parse_attr_filter(text) for text in attributes)

    return PatternSet(
        namespace=compile_pattern(namespace, 'namespace'),
        tag=compile_pattern(tag, 'tag'),
        content=compile_pattern(content, 'content'),
        attributes=attr_filters,
    )
