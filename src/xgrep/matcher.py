"""Four-stage matching cascade applied to every visited node"""

import html
from collections.abc import Callable, Sequence

from xgrep.document import Node
from xgrep.highlight import highlight
from xgrep.models import Attribute, MatchRecord
from xgrep.regex import AttributeFilter, PatternSet


Emit = Callable[[MatchRecord], None]


def attributes_match(attributes: Sequence[Attribute], filters: Sequence[AttributeFilter]) -> bool:
    """
    Check that every filter is satisfied by at least one attribute.

    A single attribute has to satisfy both the key and the value pattern of a
    filter; different filters may be satisfied by different attributes. With
    no filters the check passes.
    """
    for attr_filter in filters:
        if not any(attr_filter.matches(attr.name, attr.value) for attr in attributes):
            return False
    return True


def node_matches(node: Node, patterns: PatternSet) -> bool:
    """Evaluate namespace, tag, attributes and content, stopping at the first failing stage"""
    if patterns.namespace.search(node.namespace) is None:
        return False
    if patterns.tag.search(node.tag) is None:
        return False
    if not attributes_match(node.attributes, patterns.attributes):
        return False
    return patterns.content.search(node.content) is not None


class Matcher:
    """
    Visitor that emits a MatchRecord for every node passing the cascade.

    The matcher never prunes: it always asks the walker to descend, because a
    node failing any stage says nothing about its descendants.

    Args:
        filename: File being walked, copied into each record
        patterns: Compiled filters shared by all scans
        emit: Called once per matching node, in walk order
        colorize: Highlight the matched namespace, tag and content
    """

    def __init__(self, filename: str, patterns: PatternSet, emit: Emit, colorize: bool = False):
        self.filename = filename
        self.patterns = patterns
        self.emit = emit
        self.colorize = colorize
        self.matches = 0

    def __call__(self, node: Node) -> bool:
        if node_matches(node, self.patterns):
            self.emit(self.build_record(node))
            self.matches += 1
        return True

    def build_record(self, node: Node) -> MatchRecord:
        namespace, tag, content = node.namespace, node.tag, node.content

        if self.colorize:
            namespace = highlight(namespace, self.patterns.namespace)
            tag = highlight(tag, self.patterns.tag)
            content = highlight(html.unescape(content), self.patterns.content)

        return MatchRecord(
            filename=self.filename,
            namespace=namespace,
            tag=tag,
            attributes=list(node.attributes),
            content=content,
        )
