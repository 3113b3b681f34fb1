"""Toggle `All(p)` and `!Any(!p)` by inverting the predicate."""
from __future__ import annotations

import logging
from typing import Optional

from lark import Tree

from ..actions import Action, replace_action
from ..chains import ALL, ANY, iter_method_invocations, lambda_argument
from ..errors import InvariantViolation
from ..semantic import SemanticModel
from ..syntax import (
    ACCESS_LABELS,
    binary_left,
    binary_operator,
    binary_right,
    is_negation,
    lambda_body,
    make_arglist,
    make_binary,
    make_ident,
    make_not,
    member_name,
    unary_operand,
)
from ..tree import Cursor, Node, tree_label

logger = logging.getLogger(__name__)

INVERTED_OPERATORS = {
    '==': '!=',
    '!=': '==',
    '>': '<=',
    '>=': '<',
    '<': '>=',
    '<=': '>',
}

IMPLICIT_TEST_LABELS = {'name', 'member_access', 'invocation'}


def is_invertible(node: Node) -> bool:
    label = tree_label(node)
    if label in IMPLICIT_TEST_LABELS or is_negation(node):
        return True
    return label == 'binary' and binary_operator(node) in INVERTED_OPERATORS

def invert(node: Node) -> Node:
    """Logical negation of an invertible predicate body."""
    if is_negation(node):
        return unary_operand(node)

    label = tree_label(node)
    if label in IMPLICIT_TEST_LABELS:
        return make_not(node)

    if label == 'binary':
        op = binary_operator(node)
        if op not in INVERTED_OPERATORS:
            raise InvariantViolation(f"operator {op!r} has no inverse", node)
        return make_binary(binary_left(node), INVERTED_OPERATORS[op], binary_right(node))

    raise InvariantViolation(f"cannot invert {label!r} predicate", node)


class InvertQuantifier:
    """`xs.All(x => x > 0)` <-> `!xs.Any(x => x <= 0)`."""

    def try_get_action(self, statement: Cursor, model: SemanticModel) -> Optional[Action]:
        def invertible(lam: Cursor) -> bool:
            return is_invertible(lambda_body(lam.node))

        for invocation in iter_method_invocations(statement, [ALL, ANY], invertible):
            parent = invocation.parent
            # Only the last call of a chain produces the boolean being tested
            if parent is not None and parent.label in ACCESS_LABELS and invocation.index == 0:
                continue
            return self._invert(invocation)

        logger.debug("All/Any inversion: no invertible quantifier")
        return None

    def _invert(self, invocation: Cursor) -> Action:
        callee = invocation.child(0)
        method = member_name(callee.node)
        replacement = ANY if method == ALL else ALL
        title = f"Convert to {replacement}"

        lam = lambda_argument(invocation)
        new_lambda = Tree('simple_lambda', [lam.node.children[0], invert(lambda_body(lam.node))])
        new_call = Tree('invocation', [
            Tree(callee.label, [callee.node.children[0], make_ident(replacement)]),
            make_arglist([new_lambda]),
        ])

        target = negation_around(invocation)
        if target is not None:
            return replace_action(target, new_call, title)
        return replace_action(invocation, make_not(new_call), title)


def negation_around(invocation: Cursor) -> Optional[Cursor]:
    """The `!` applied to the call, looking through one pair of parentheses."""
    parent = invocation.parent
    if parent is not None and parent.label == 'paren':
        parent = parent.parent
    if parent is not None and is_negation(parent.node):
        return parent
    return None


invert_quantifier = InvertQuantifier()
