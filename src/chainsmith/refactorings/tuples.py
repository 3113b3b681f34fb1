"""`new Tuple<A, B>(a, b)` <-> `Tuple.Create(a, b)`."""
from __future__ import annotations

import logging
from typing import List, Optional

from lark import Tree

from .. import types as T
from ..actions import Action, replace_action
from ..parser_rd import omitted
from ..semantic import SemanticModel
from ..syntax import (
    argument_modifier,
    is_null_literal,
    make_arglist,
    make_invocation,
    make_member_access,
    make_name,
    make_type,
    member_name,
    name_text,
)
from ..tree import Cursor

logger = logging.getLogger(__name__)

TUPLE = 'Tuple'
CREATE = 'Create'


def argument_cursors(arglist: Cursor) -> Optional[List[Cursor]]:
    """Argument expressions, or None when any is passed `ref`/`out`."""
    exprs = []
    for arg in arglist.children():
        if argument_modifier(arg.node) is not None:
            return None
        exprs.append(arg.child(len(arg.node.children) - 1))
    return exprs


class UseTupleCreate:
    title = "Use Tuple.Create"

    def try_get_action(self, creation: Cursor, model: SemanticModel) -> Optional[Action]:
        if creation.label != 'object_creation' or TUPLE in model.classes:
            return None

        type_node, arglist, init = creation.children()
        if T.short_name(str(type_node.node.children[0])) != TUPLE or len(type_node.node.children) != 2:
            return None
        if arglist.label != 'arglist' or init.label != 'omitted':
            return None

        exprs = argument_cursors(arglist)
        type_args = type_node.node.children[1].children
        if exprs is None or not exprs or len(exprs) != len(type_args):
            return None

        # Tuple.Create infers its type arguments from the arguments
        for expr, type_arg in zip(exprs, type_args):
            if is_null_literal(expr.node):
                logger.debug("%s: null argument", self.title)
                return None
            if model.type_of(expr) != T.type_from_node(type_arg):
                logger.debug("%s: argument type differs from %s", self.title, T.type_from_node(type_arg))
                return None

        call = make_invocation(make_member_access(make_name(TUPLE), CREATE), [e.node for e in exprs])
        return replace_action(creation, call, self.title)


class UseNewTuple:
    title = "Use new Tuple"

    def try_get_action(self, invocation: Cursor, model: SemanticModel) -> Optional[Action]:
        if invocation.label != 'invocation':
            return None

        callee = invocation.child(0)
        if callee.label != 'member_access' or member_name(callee.node) != CREATE:
            return None
        receiver = callee.child(0)
        if name_text(receiver.node) != TUPLE or model.symbol_of(receiver) is not None:
            return None

        exprs = argument_cursors(invocation.child(1))
        if not exprs:
            return None

        arg_types = [model.type_of(expr) for expr in exprs]
        if any(t is None or t == T.NULL for t in arg_types):
            logger.debug("%s: argument type unknown", self.title)
            return None

        creation = Tree('object_creation', [
            make_type(TUPLE, [T.type_node_from_ref(t) for t in arg_types]),
            make_arglist(e.node for e in exprs),
            omitted(),
        ])
        return replace_action(invocation, creation, self.title)


use_tuple_create = UseTupleCreate()
use_new_tuple = UseNewTuple()
