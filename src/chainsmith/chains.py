"""Finding runs of consecutive same-named combinator calls.

`xs.Where(a).Where(b).Where(c)` is one run of three `Where` calls. Each call's
argument becomes a `Payload`: a lambda keeps its own parameter and body, and
a bare method group `f` is normalized to `__arg => f(__arg)` so merge and
split code can treat both alike.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional

from lark import Tree

from .names import PLACEHOLDER_PARAMETER
from .rewriters import rename_identifier, substitute_identifier
from .semantic import SemanticModel, Symbol
from .syntax import (
    ACCESS_LABELS,
    argument_modifier,
    invocation_arguments,
    make_invocation,
    make_name,
    member_name,
    mentions_name,
    name_text,
    parameter_name,
)
from .tree import Cursor, Node, tree_label

logger = logging.getLogger(__name__)

WHERE = 'Where'
SELECT = 'Select'
ALL = 'All'
ANY = 'Any'

PAYLOAD_ARGUMENT_LABELS = {'simple_lambda', 'paren_lambda', 'name', 'member_access'}


def lambda_parameter(argument: Node) -> Optional[Tree]:
    """The sole parameter of `x => ...` or `(x) => ...`; None for any other argument.

    Parameters with `ref`/`out` modifiers do not count.
    """
    if not isinstance(argument, Tree):
        return None
    if argument.data == 'simple_lambda':
        return argument.children[0]
    if argument.data == 'paren_lambda':
        params = argument.children[0].children
        if len(params) == 1 and not params[0].children[0].children:
            return params[0]
    return None


@dataclass
class Payload:
    """The (parameter, body) behind one combinator call."""

    argument: Cursor
    parameter: str
    body: Node
    symbol: Optional[Symbol] = None

    @property
    def is_lambda(self) -> bool:
        return lambda_parameter(self.argument.node) is not None

    @property
    def body_cursor(self) -> Optional[Cursor]:
        if self.is_lambda:
            return self.argument.child(1)
        return None

    def apply(self, expr: Node, model: SemanticModel) -> Node:
        """The body with its parameter replaced by `expr`."""
        if self.is_lambda:
            return substitute_identifier(self.argument.child(1), self.symbol, expr, model)
        return make_invocation(self.argument.node, [expr])

    def captures(self, name: str, model: SemanticModel) -> bool:
        """Whether introducing `name` for the parameter would change what a name means."""
        if not self.is_lambda:
            return mentions_name(self.argument.node, name)

        body = self.argument.child(1)
        for cursor in body.walk():
            if name_text(cursor.node) == name and model.symbol_of(cursor) is not self.symbol:
                return True
        return model.declares_name_within(name, body)

    def rename(self, name: str, model: SemanticModel) -> Optional[Node]:
        """The body spelled over parameter `name`, or None when that would capture."""
        if self.is_lambda and name == self.parameter:
            return self.body
        if self.captures(name, model):
            return None
        if self.is_lambda:
            return rename_identifier(self.argument.child(1), self.symbol, name, model)
        return make_invocation(self.argument.node, [make_name(name)])


@dataclass
class ChainMatch:
    outer: Cursor            # outermost invocation of the run
    inner_access: Cursor     # `.Method` access of the innermost call
    payloads: List[Payload]  # innermost first

    @property
    def receiver(self) -> Cursor:
        """Expression the whole run is called on."""
        return self.inner_access.child(0)


def make_payload(invocation: Cursor, model: SemanticModel) -> Payload:
    argument = invocation.child(1).child(0).child(0)
    parameter = lambda_parameter(argument.node)
    if parameter is not None:
        parameter_cursor = argument.child(0)
        if argument.label == 'paren_lambda':
            parameter_cursor = parameter_cursor.child(0)
        return Payload(
            argument,
            parameter_name(parameter),
            argument.node.children[1],
            model.declared_symbol(parameter_cursor),
        )
    return Payload(argument, PLACEHOLDER_PARAMETER, make_invocation(argument.node, [make_name(PLACEHOLDER_PARAMETER)]))


def is_combinator_call(cursor: Cursor, method_name: str) -> bool:
    """`recv.method_name(arg)` with one plain lambda or method-group argument."""
    if cursor.label != 'invocation':
        return False

    callee = cursor.node.children[0]
    if not isinstance(callee, Tree) or callee.data != 'member_access' or member_name(callee) != method_name:
        return False

    args = invocation_arguments(cursor.node)
    if len(args) != 1 or argument_modifier(args[0]) is not None:
        return False

    argument = args[0].children[-1]
    if not isinstance(argument, Tree) or argument.data not in PAYLOAD_ARGUMENT_LABELS:
        return False
    if argument.data in ('name', 'member_access'):
        return True
    # Expression-bodied single-parameter lambdas only
    return lambda_parameter(argument) is not None and tree_label(argument.children[1]) != 'block'


PayloadPredicate = Callable[[Payload], bool]


def find_method_sequence(container: Cursor, method_name: str, model: SemanticModel,
                         argument_predicate: Optional[PayloadPredicate] = None) -> Optional[ChainMatch]:
    """First maximal run of two or more `.method_name(...)` calls under `container`."""
    def accepts(call: Cursor) -> bool:
        if not is_combinator_call(call, method_name):
            return False
        return argument_predicate is None or argument_predicate(make_payload(call, model))

    for cursor in container.walk():
        if not accepts(cursor):
            continue
        inner = cursor.child(0).child(0)
        if not accepts(inner):
            continue

        # Extend outward while we are the receiver of another accepted call
        outer = cursor
        while True:
            access = outer.parent
            if access is None or access.label != 'member_access' or outer.index != 0:
                break
            call = access.parent
            if call is None or access.index != 0 or not accepts(call):
                break
            outer = call

        # Walk back down to the innermost accepted call
        chain = [outer]
        while accepts(chain[-1].child(0).child(0)):
            chain.append(chain[-1].child(0).child(0))
        chain.reverse()

        payloads = [make_payload(call, model) for call in chain]
        logger.debug("found %d chained %s calls", len(chain), method_name)
        return ChainMatch(outer, chain[0].child(0), payloads)

    return None


LambdaPredicate = Callable[[Cursor], bool]


def iter_method_invocations(container: Cursor, method_names: Iterable[str],
                            lambda_predicate: Optional[LambdaPredicate] = None) -> Iterator[Cursor]:
    """Invocations `recv.M(x => ...)` with M in `method_names`, in pre-order."""
    names = set(method_names)
    for cursor in container.walk():
        if cursor.label != 'invocation':
            continue
        callee = cursor.child(0)
        if callee.label not in ACCESS_LABELS or member_name(callee.node) not in names:
            continue

        args = invocation_arguments(cursor.node)
        if len(args) != 1 or argument_modifier(args[0]) is not None:
            continue
        lam = cursor.child(1).child(0).child(0)
        if lam.label != 'simple_lambda':
            continue
        if lambda_predicate is not None and not lambda_predicate(lam):
            continue
        yield cursor


def find_method_invocation(container: Cursor, method_names: Iterable[str],
                           lambda_predicate: Optional[LambdaPredicate] = None) -> Optional[Cursor]:
    return next(iter_method_invocations(container, method_names, lambda_predicate), None)


def lambda_argument(invocation: Cursor) -> Cursor:
    """The single lambda argument of a matched invocation."""
    return invocation.child(1).child(0).child(0)
