"""Data-flow safety checks for loop conversion.

A counted loop may become an element loop only when its body touches the
collection exclusively through `collection[counter]` reads, and touches the
counter only as that index.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from lark import Tree

from . import types as T
from .semantic import SemanticModel, Symbol
from .syntax import argument_modifier, invocation_arguments
from .tree import Cursor, Node
from .types import TypeRef

MODIFYING_UNARY_OPERATORS = {'++', '--'}

ASSIGNMENT_OPERATORS = {'=', '+=', '-=', '*=', '/=', '%=', '&=', '|=', '^=', '??='}

COLLECTION_SYMBOL_KINDS = {'local', 'parameter', 'field', 'property'}


@dataclass
class LoopCollection:
    """The collection a loop walks: its symbol plus the receiver it is reached through."""

    cursor: Cursor
    symbol: Symbol
    receiver: Optional[Node]
    type: TypeRef


def receiver_key(cursor: Cursor) -> Optional[Node]:
    """`None` for `xs` and `this.xs`, the receiver node for `a.xs`."""
    if cursor.label == 'member_access':
        receiver = cursor.node.children[0]
        if isinstance(receiver, Tree) and receiver.data == 'this_access':
            return None
        return receiver
    return None

def try_get_collection_info(cursor: Cursor, model: SemanticModel) -> Optional[LoopCollection]:
    if cursor.label not in ('name', 'member_access'):
        return None

    symbol = model.symbol_of(cursor)
    if symbol is None or symbol.kind not in COLLECTION_SYMBOL_KINDS:
        return None

    collection_type = model.type_of(cursor)
    if collection_type is None or not T.is_collection(collection_type):
        return None

    return LoopCollection(cursor, symbol, receiver_key(cursor), collection_type)

def is_same_collection(cursor: Cursor, collection: LoopCollection, model: SemanticModel) -> bool:
    if cursor.label not in ('name', 'member_access'):
        return False
    if model.symbol_of(cursor) is not collection.symbol:
        return False
    return receiver_key(cursor) == collection.receiver

def is_read_only_collection_access(access: Cursor) -> bool:
    """The element access is only read: not incremented, assigned or passed by ref."""
    parent = access.parent
    if parent is None:
        return True

    match parent.label:
        case 'prefix_unary':
            return str(parent.node.children[0]) not in MODIFYING_UNARY_OPERATORS
        case 'postfix_unary':
            return str(parent.node.children[1]) not in MODIFYING_UNARY_OPERATORS
        case 'assignment':
            return access.index != 0
        case 'argument':
            return argument_modifier(parent.node) is None
    return True

def loop_body_reads_only_current_item(body: Cursor, model: SemanticModel, collection: LoopCollection,
                                      counter: Symbol) -> Optional[List[Cursor]]:
    """Counter-indexed reads of the collection in `body`, or None if anything else happens.

    Unsafe bodies are those that use the collection other than as
    `collection[counter]`, write through such an access, or use the counter
    for anything but that index.
    """
    accesses: List[Cursor] = []

    for cursor in body.walk():
        if not is_same_collection(cursor, collection, model):
            continue

        access = cursor.parent
        if access is None or access.label != 'element_access' or cursor.index != 0:
            return None

        args = invocation_arguments(access.node)
        if len(args) != 1 or argument_modifier(args[0]) is not None:
            return None

        index = access.child(1).child(0).child(0)
        if index.label != 'name' or model.symbol_of(index) is not counter:
            return None
        if not is_read_only_collection_access(access):
            return None

        accesses.append(access)

    allowed = {access.child(1).child(0).child(0) for access in accesses}
    for reference in model.references(counter, body):
        if reference not in allowed:
            return None

    return accesses
