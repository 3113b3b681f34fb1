"""Deferred rewrites handed back by refactorings."""
from __future__ import annotations

from typing import Callable, List, Sequence

from lark import Tree

from .errors import StaleTreeError
from .syntax import BLOCK_LIKE_LABELS, make_block
from .tree import Cursor, Node, replace_at


class Action:
    """A pure `Tree -> Tree` edit bound to the exact root it was derived from.

    Calling it with any other root object raises `StaleTreeError`; re-deriving
    an action after the tree changed is the caller's job.
    """

    def __init__(self, source_root: Tree, transform: Callable[[Tree], Tree], title: str = ''):
        self.source_root = source_root
        self.transform = transform
        self.title = title

    def __call__(self, root: Tree) -> Tree:
        if root is not self.source_root:
            raise StaleTreeError()
        return self.transform(root)

    def __repr__(self) -> str:
        return f"Action({self.title!r})"


def replace_action(target: Cursor, new: Node, title: str) -> Action:
    """Action swapping the node at `target` for `new`."""
    path = target.path
    return Action(target.root.node, lambda root: replace_at(root, path, new), title)


def splice_action(statement: Cursor, replacement: Sequence[Node], title: str) -> Action:
    """Action replacing `statement` with several statements.

    When the parent holds a single embedded statement (an `if` branch, a loop
    body) the replacement is wrapped in a block instead.
    """
    parent = statement.parent
    if parent is None or parent.label not in BLOCK_LIKE_LABELS:
        return replace_action(statement, make_block(replacement), title)

    children: List[Node] = list(parent.node.children)
    children[statement.index:statement.index + 1] = list(replacement)
    return replace_action(parent, Tree(parent.node.data, children), title)
