"""Merge consecutive `Where` filters into one conjunction, or split one apart."""
from __future__ import annotations

import logging
from typing import List, Optional

from lark import Tree

from ..actions import Action, replace_action
from ..chains import WHERE, find_method_sequence, find_method_invocation, lambda_argument
from ..names import lambda_parameter_name
from ..semantic import SemanticModel
from ..syntax import (
    COMPARISON_OPERATORS,
    binary_left,
    binary_right,
    is_binary,
    is_negation,
    lambda_body,
    make_binary,
    make_ident,
    make_invocation,
    make_invocation_with_lambda_argument,
    make_member_access,
    make_paren,
    make_simple_lambda,
    simple_lambda_parameter_name,
)
from ..tree import Cursor, Node, tree_label

logger = logging.getLogger(__name__)

# Operands that read the same inside `a && b` without parentheses
ATOMIC_OPERAND_LABELS = {
    'name', 'literal', 'member_access', 'conditional_access', 'invocation', 'paren',
}


def is_atomic_operand(node: Node) -> bool:
    if tree_label(node) in ATOMIC_OPERAND_LABELS:
        return True
    return is_negation(node) or is_binary(node, *COMPARISON_OPERATORS)

def conjunction_operand(node: Node) -> Node:
    return node if is_atomic_operand(node) else make_paren(node)

def factorize(node: Node) -> List[Node]:
    """Top-level `&&` operands, left to right; a parenthesized factor is unwrapped once."""
    if is_binary(node, '&&'):
        return factorize(binary_left(node)) + factorize(binary_right(node))
    if tree_label(node) == 'paren':
        return [node.children[0]]
    return [node]


class MergeWhere:
    title = "Merge Where"

    def try_get_action(self, statement: Cursor, model: SemanticModel) -> Optional[Action]:
        match = find_method_sequence(statement, WHERE, model)
        if match is None:
            logger.debug("%s: no consecutive Where calls", self.title)
            return None

        payloads = match.payloads
        first_lambda = next((p for p in payloads if p.is_lambda), None)
        if first_lambda is not None:
            parameter = first_lambda.parameter
        else:
            parameter = lambda_parameter_name(match.outer, model)

        operands = []
        for payload in payloads:
            body = payload.rename(parameter, model)
            if body is None:
                logger.debug("%s: renaming to %r would capture a name", self.title, parameter)
                return None
            operands.append(conjunction_operand(body))

        predicate = operands[0]
        for operand in operands[1:]:
            predicate = make_binary(predicate, '&&', operand)

        merged = make_invocation(
            make_member_access(match.receiver.node, WHERE),
            [make_simple_lambda(parameter, predicate)],
        )
        return replace_action(match.outer, merged, self.title)


class SplitWhere:
    title = "Split Where"

    def try_get_action(self, statement: Cursor, model: SemanticModel) -> Optional[Action]:
        invocation = find_method_invocation(
            statement, [WHERE], lambda lam: is_binary(lambda_body(lam.node), '&&'))
        if invocation is None:
            logger.debug("%s: no Where with a conjunction", self.title)
            return None

        lam = lambda_argument(invocation)
        parameter = simple_lambda_parameter_name(lam.node)
        factors = factorize(lambda_body(lam.node))

        callee = invocation.child(0)
        result: Node = callee.node.children[0]
        for idx, factor in enumerate(factors):
            # Only the first call keeps a `?.`
            access = Tree(callee.label if idx == 0 else 'member_access', [result, make_ident(WHERE)])
            result = make_invocation_with_lambda_argument(access, parameter, factor)

        return replace_action(invocation, result, self.title)


merge_where = MergeWhere()
split_where = SplitWhere()
