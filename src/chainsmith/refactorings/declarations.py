"""`T x = e;` <-> `var x = e;` for single local declarations."""
from __future__ import annotations

import logging
from typing import Optional

from lark import Tree

from .. import types as T
from ..actions import Action, replace_action
from ..semantic import SemanticModel
from ..syntax import (
    LAMBDA_LABELS,
    decl_declarators,
    decl_modifiers,
    decl_type,
    is_null_literal,
    is_var_type,
    make_var_type,
)
from ..tree import Cursor

logger = logging.getLogger(__name__)

UNTYPED_INITIALIZER_LABELS = {'array_initializer'} | LAMBDA_LABELS


def single_initialized_declarator(decl: Cursor) -> Optional[Cursor]:
    if decl.label != 'local_decl' or 'const' in decl_modifiers(decl.node):
        return None
    if len(decl_declarators(decl.node)) != 1:
        return None
    declarator = decl.child(2)
    if len(declarator.node.children) != 2:
        return None
    return declarator


def with_type(decl: Cursor, type_node: Tree) -> Tree:
    children = list(decl.node.children)
    children[1] = type_node
    return Tree(decl.node.data, children)


class UseVar:
    title = "Use var"

    def try_get_action(self, decl: Cursor, model: SemanticModel) -> Optional[Action]:
        declarator = single_initialized_declarator(decl)
        if declarator is None or is_var_type(decl_type(decl.node)):
            return None

        init = declarator.child(1)
        if is_null_literal(init.node) or init.label in UNTYPED_INITIALIZER_LABELS:
            logger.debug("%s: initializer has no type of its own", self.title)
            return None

        declared = T.type_from_node(decl_type(decl.node))
        inferred = model.type_of(init)
        if inferred is not None and inferred != declared:
            logger.debug("%s: %s is initialized with %s", self.title, declared, inferred)
            return None

        return replace_action(decl, with_type(decl, make_var_type()), self.title)


class SpecifyType:
    title = "Specify type explicitly"

    def try_get_action(self, decl: Cursor, model: SemanticModel) -> Optional[Action]:
        declarator = single_initialized_declarator(decl)
        if declarator is None or not is_var_type(decl_type(decl.node)):
            return None

        inferred = model.type_of(declarator.child(1))
        if inferred is None or inferred == T.NULL or inferred.name == 'void':
            logger.debug("%s: cannot name the initializer type", self.title)
            return None

        return replace_action(decl, with_type(decl, T.type_node_from_ref(inferred)), self.title)


use_var = UseVar()
specify_type = SpecifyType()
