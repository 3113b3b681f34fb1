"""Symbol-aware rewrites built on `tree.rewrite`.

Each function rewrites the subtree under a cursor and returns the new subtree
node; identifiers are matched by the symbol they are bound to, never by
spelling.
"""
from __future__ import annotations

from typing import Iterable

from lark import Tree

from .semantic import SemanticModel, Symbol
from .syntax import make_element_access, make_ident, make_name
from .tree import Cursor, Node, replace_nodes, rewrite


def substitute_identifier(cursor: Cursor, symbol: Symbol, replacement: Node, model: SemanticModel) -> Node:
    """Replace every reference to `symbol` with `replacement`."""
    def visit(current: Cursor):
        if current.label == 'name' and model.symbol_of(current) is symbol:
            return replacement
        return None

    return rewrite(cursor, visit)


def rename_identifier(cursor: Cursor, symbol: Symbol, new_name: str, model: SemanticModel) -> Node:
    """Rename references to `symbol`, and its declaration when it lies inside."""
    def visit(current: Cursor):
        label = current.label
        if label == 'name':
            if model.symbol_of(current) is symbol:
                return make_name(new_name)
            return None

        if label in ('parameter', 'declarator', 'foreach_stmt') and model.declared_symbol(current) is symbol:
            node = current.node
            children = list(node.children)
            slot = {'parameter': 2, 'declarator': 0, 'foreach_stmt': 1}[label]
            children[slot] = make_ident(new_name)
            if label == 'parameter':
                return Tree(node.data, children)
            # Declarations with nested expressions still need their references renamed
            rebuilt = Tree(node.data, children)
            return rewrite_inside(current, rebuilt, visit)

        return None

    return rewrite(cursor, visit)


def rewrite_inside(original: Cursor, rebuilt: Tree, visit) -> Tree:
    """Apply `visit` to the children of `original`, keeping `rebuilt`'s own slots."""
    children = list(rebuilt.children)
    for idx, child in enumerate(original.children()):
        if child.node is not children[idx]:
            continue
        new = rewrite(child, visit)
        children[idx] = new
    return Tree(rebuilt.data, children)


def replace_element_access(cursor: Cursor, accesses: Iterable[Cursor], new_name: str) -> Node:
    """Replace the given element accesses with the bare identifier `new_name`."""
    return replace_nodes(cursor, {access: make_name(new_name) for access in accesses})


def replace_identifier_with_element_access(cursor: Cursor, symbol: Symbol, collection: Node,
                                           counter: str, model: SemanticModel) -> Node:
    """Replace references to `symbol` with `collection[counter]`."""
    def visit(current: Cursor):
        if current.label == 'name' and model.symbol_of(current) is symbol:
            return make_element_access(collection, [make_name(counter)])
        return None

    return rewrite(cursor, visit)
