"""Merge a run of `Select` projections into one composed call, or split one apart."""
from __future__ import annotations

import logging
from typing import List, Optional

from lark import Tree

from ..actions import Action, replace_action
from ..chains import SELECT, Payload, find_method_sequence, iter_method_invocations, lambda_argument
from ..composition import FunctionCompositionChecker
from ..names import lambda_parameter_name
from ..semantic import SemanticModel
from ..syntax import (
    in_lambda,
    lambda_body,
    make_argument,
    make_ident,
    make_invocation,
    make_invocation_with_lambda_argument,
    make_member_access,
    make_name,
    make_simple_lambda,
    simple_lambda_parameter_name,
)
from ..tree import Cursor, Node, tree_label

logger = logging.getLogger(__name__)


def is_composable_payload(payload: Payload) -> bool:
    """Method groups, or lambdas whose body is itself a call."""
    return not payload.is_lambda or tree_label(payload.body) == 'invocation'

def is_single_use(payload: Payload, model: SemanticModel) -> bool:
    """The lambda uses its parameter exactly once, outside any nested lambda.

    Substituting a whole call for such a parameter neither duplicates nor
    defers its evaluation.
    """
    if not payload.is_lambda:
        return True

    body = payload.argument.child(1)
    references = model.references(payload.symbol, body)
    if len(references) != 1:
        return False
    return not in_lambda(references[0], payload.argument)


class MergeSelect:
    title = "Merge Select"

    def try_get_action(self, statement: Cursor, model: SemanticModel) -> Optional[Action]:
        match = find_method_sequence(statement, SELECT, model, is_composable_payload)
        if match is None:
            logger.debug("%s: no consecutive composable Select calls", self.title)
            return None

        first, rest = match.payloads[0], match.payloads[1:]
        parameter = first.parameter if first.is_lambda else lambda_parameter_name(match.outer, model)

        composed = first.rename(parameter, model)
        if composed is None:
            logger.debug("%s: renaming to %r would capture a name", self.title, parameter)
            return None

        for payload in rest:
            if not is_single_use(payload, model) or payload.captures(parameter, model):
                logger.debug("%s: payload %s cannot absorb the inner call", self.title, payload.parameter)
                return None
            composed = payload.apply(composed, model)

        merged = make_invocation(
            make_member_access(match.receiver.node, SELECT),
            [make_simple_lambda(parameter, composed)],
        )
        return replace_action(match.outer, merged, self.title)


class SplitSelect:
    title = "Split Select"

    def try_get_action(self, statement: Cursor, model: SemanticModel) -> Optional[Action]:
        def body_is_call(lam: Cursor) -> bool:
            return tree_label(lambda_body(lam.node)) == 'invocation'

        for invocation in iter_method_invocations(statement, [SELECT], body_is_call):
            action = self._split(invocation, model)
            if action is not None:
                return action

        logger.debug("%s: no composed Select body", self.title)
        return None

    def _split(self, invocation: Cursor, model: SemanticModel) -> Optional[Action]:
        lam = lambda_argument(invocation)
        parameter = simple_lambda_parameter_name(lam.node)
        symbol = model.declared_symbol(lam.child(0))

        layers = FunctionCompositionChecker(symbol, model).layers(lam.child(1))
        if layers is None or len(layers) < 2:
            return None

        callee = invocation.child(0)
        access = Tree(callee.label, [callee.node.children[0], make_ident(SELECT)])
        result = make_invocation_with_lambda_argument(access, parameter, layers[0].invocation.node)

        for layer in layers[1:]:
            node = layer.invocation.node
            arguments: List[Node] = list(node.children[1].children)
            arguments[layer.hole] = make_argument(make_name(parameter))
            body = Tree('invocation', [node.children[0], Tree('arglist', arguments)])
            result = make_invocation_with_lambda_argument(make_member_access(result, SELECT), parameter, body)

        return replace_action(invocation, result, self.title)


merge_select = MergeSelect()
split_select = SplitSelect()
