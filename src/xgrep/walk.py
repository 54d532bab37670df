"""Depth-first pre-order traversal over a document tree"""

from collections.abc import Iterable
from typing import Protocol

from xgrep.document import Node


class Visitor(Protocol):
    """Called once per node; returning True walks the node's children next"""

    def __call__(self, node: Node) -> bool: ...


def walk(nodes: Iterable[Node], visit: Visitor) -> None:
    """
    Visit every node and, when the visitor asks for it, its descendants.

    Nodes are visited in document order, parents before children, and a
    node's whole subtree is finished before its next sibling. An exception
    raised by the visitor stops the walk and propagates to the caller.

    Args:
        nodes: Nodes to start from, usually ``[root]``
        visit: Visitor deciding whether to descend into each node
    """
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        if visit(node):
            stack.extend(reversed(node.children))
