"""Shared helpers for working with Tree/Token nodes used across the project.

Nodes are plain `lark.Tree` / `lark.Token` objects treated as immutable values:
nothing in chainsmith ever assigns to `children`. Edits go through
`replace_at` / `rewrite`, which copy the path from the edited node up to the
root and share every untouched subtree.
"""
from __future__ import annotations
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, TypeGuard, Union
from typing_extensions import TypeAlias

from lark import Token, Tree

Node: TypeAlias = Union[Tree, Token]
Path: TypeAlias = Tuple[int, ...]
Span: TypeAlias = Tuple[int, int]


class Discard:
    """Sentinel value to signal that a node should be removed from the tree."""

    def __repr__(self) -> str:
        return 'DISCARD'


DISCARD = Discard()


def is_tree(node: object) -> TypeGuard[Tree]:
    return isinstance(node, Tree)

def is_token(node: object) -> TypeGuard[Token]:
    return isinstance(node, Token)

def tree_label(node: object) -> Optional[str]:
    return node.data if is_tree(node) else None

def tree_children(node: object) -> List[Node]:
    if not is_tree(node):
        return []

    children = getattr(node, "children", None)
    if children is None:
        return []

    return list(children)

def node_span(node: Node) -> Optional[Span]:
    """Source span of a parsed node; synthesized nodes have none."""
    if is_token(node):
        if node.start_pos is None or node.end_pos is None:
            return None
        return (node.start_pos, node.end_pos)

    meta = node.meta
    if meta.empty:
        return None

    return (meta.start_pos, meta.end_pos)



# ============================================================================
# Cursor: parent-aware view over an immutable tree
# ============================================================================

class Cursor:
    """A node together with the way it was reached from the root.

    Cursors compare equal when they address the same position of the same
    root object, so they can be used as keys while the tree itself stays
    free of parent pointers.
    """

    __slots__ = ('node', 'parent', 'index', '_path')

    def __init__(self, node: Node, parent: Optional[Cursor] = None, index: Optional[int] = None):
        self.node = node
        self.parent = parent
        self.index = index
        self._path: Optional[Path] = None

    @classmethod
    def at(cls, root: Node, path: Iterable[int]) -> Cursor:
        cursor = cls(root)
        for idx in path:
            cursor = cursor.child(idx)
        return cursor

    def __repr__(self) -> str:
        return f'Cursor({self.label or self.node!r}, path={self.path})'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cursor):
            return False
        return self.root.node is other.root.node and self.path == other.path

    def __hash__(self) -> int:
        return hash((id(self.root.node), self.path))

    @property
    def label(self) -> Optional[str]:
        return tree_label(self.node)

    @property
    def path(self) -> Path:
        if self._path is None:
            if self.parent is None:
                self._path = ()
            else:
                self._path = self.parent.path + (self.index,)
        return self._path

    @property
    def root(self) -> Cursor:
        cursor = self
        while cursor.parent is not None:
            cursor = cursor.parent
        return cursor

    @property
    def span(self) -> Optional[Span]:
        return node_span(self.node)

    def child(self, index: int) -> Cursor:
        return Cursor(self.node.children[index], self, index)

    def children(self) -> List[Cursor]:
        return [Cursor(ch, self, idx) for idx, ch in enumerate(tree_children(self.node))]

    def tree_children(self) -> List[Cursor]:
        return [ch for ch in self.children() if is_tree(ch.node)]

    def ancestors(self) -> Iterator[Cursor]:
        cursor = self.parent
        while cursor is not None:
            yield cursor
            cursor = cursor.parent

    def walk(self) -> Iterator[Cursor]:
        """Pre-order traversal including this cursor."""
        stack = [self]
        while stack:
            cursor = stack.pop()
            yield cursor
            stack.extend(reversed(cursor.children()))

    def descendants(self) -> Iterator[Cursor]:
        """Pre-order traversal excluding this cursor."""
        walker = self.walk()
        next(walker)
        yield from walker

    def is_within(self, other: Cursor) -> bool:
        """True when this cursor is `other` or lies below it."""
        if self.root.node is not other.root.node:
            return False
        return self.path[:len(other.path)] == other.path


# ============================================================================
# Persistent replacement
# ============================================================================

def replace_at(root: Node, path: Path, new: Union[Node, Discard]) -> Node:
    """Return a copy of `root` where the node at `path` is `new`.

    Only the nodes on the path are copied; with `DISCARD` the addressed child
    is dropped from its parent.
    """
    if not path:
        if isinstance(new, Discard):
            raise ValueError("cannot discard the root node")
        return new

    head, rest = path[0], path[1:]
    children = list(root.children)

    if rest:
        children[head] = replace_at(children[head], rest, new)
    elif isinstance(new, Discard):
        del children[head]
    else:
        children[head] = new

    return Tree(root.data, children)


Visitor = Callable[[Cursor], Union[Node, Discard, None]]


def rewrite(cursor: Cursor, visit: Visitor) -> Union[Node, Discard]:
    """Generic top-down fold over the subtree at `cursor`.

    `visit` returns a replacement node, `DISCARD` to drop the node, or `None`
    to keep it and descend. Subtrees that come back unchanged are shared with
    the input, so callers can test `result is cursor.node` for "no change".
    """
    result = visit(cursor)
    if result is not None:
        return result

    node = cursor.node
    if not is_tree(node):
        return node

    changed = False
    new_children: List[Node] = []
    for child in cursor.children():
        new = rewrite(child, visit)
        if isinstance(new, Discard):
            changed = True
            continue
        if new is not child.node:
            changed = True
        new_children.append(new)

    if not changed:
        return node

    return Tree(node.data, new_children)


def replace_nodes(cursor: Cursor, replacements: dict) -> Node:
    """Rewrite the subtree at `cursor`, swapping nodes keyed by their cursor."""
    def visit(current: Cursor):
        return replacements.get(current)

    result = rewrite(cursor, visit)
    if isinstance(result, Discard):
        raise ValueError("cannot discard the rewritten subtree itself")
    return result


def find_node(root: Node, start: int, end: int) -> Cursor:
    """Innermost tree node whose span covers `[start, end)`.

    The root stands for the whole document, so a selection no child covers
    (leading or trailing whitespace included) lands on the root.
    """
    cursor = Cursor(root)

    while True:
        for child in cursor.tree_children():
            child_span = child.span
            if child_span is None:
                continue
            if child_span[0] <= start and end <= child_span[1]:
                # Empty selections at a boundary belong to the enclosing node
                if start == end and (start == child_span[1]) and child_span[0] != child_span[1]:
                    continue
                cursor = child
                break
        else:
            return cursor
