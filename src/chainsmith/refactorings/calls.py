"""Chain calls through temporaries into one expression, or split a chain into temporaries.

    var a = xs.Where(f);            var b = xs.Where(f).Select(g);
    var b = a.Select(g);      <->
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from lark import Tree

from ..actions import Action, replace_action, splice_action
from ..names import temporary_variable_names
from ..semantic import SemanticModel, Symbol
from ..syntax import (
    ACCESS_LABELS,
    BLOCK_LIKE_LABELS,
    CONDITIONAL_LABELS,
    POSTFIX_LABELS,
    binary_operator,
    decl_declarators,
    decl_modifiers,
    find_parent_statement,
    make_local_decl,
    make_name,
    make_var_type,
    postfix_spine,
)
from ..tree import Cursor, Node, replace_nodes, tree_label

logger = logging.getLogger(__name__)

SHORT_CIRCUIT_OPERATORS = {'&&', '||', '??'}


def is_unconditionally_evaluated(cursor: Cursor, statement: Cursor) -> bool:
    """`cursor` runs exactly once, every time `statement` runs.

    False inside lambdas, right operands of `&&`, `||` and `??`, conditional
    branches, loop conditions and incrementors, and arguments of calls that
    sit behind a `?.`.
    """
    current = cursor
    while current != statement:
        parent = current.parent
        if parent is None:
            return False

        match parent.label:
            case 'simple_lambda' | 'paren_lambda':
                return False
            case 'binary':
                if current.index == 2 and binary_operator(parent.node) in SHORT_CIRCUIT_OPERATORS:
                    return False
            case 'conditional':
                if current.index != 0:
                    return False
            case 'arglist':
                owner = parent.parent
                if owner is not None and owner.label in CONDITIONAL_LABELS:
                    return False
                if owner is not None and any(
                    tree_label(node) in CONDITIONAL_LABELS for node in postfix_spine(owner.node.children[0])
                ):
                    return False
            case 'while_stmt':
                if current.index == 0:
                    return False
            case 'do_stmt':
                if current.index == 1:
                    return False
            case 'for_stmt':
                if current.index in (2, 3):
                    return False

        current = parent
    return True


def spine_receiver(expr: Cursor) -> Cursor:
    """Innermost receiver of a postfix chain."""
    current = expr
    while current.label in POSTFIX_LABELS:
        current = current.child(0)
    return current


class ChainCalls:
    title = "Chain calls"

    def try_get_action(self, block: Cursor, statements: Sequence[Cursor],
                       model: SemanticModel) -> Optional[Action]:
        if block.label not in BLOCK_LIKE_LABELS or len(statements) < 2:
            return None
        if any(stmt.parent != block for stmt in statements):
            return None
        indices = [stmt.index for stmt in statements]
        if indices != list(range(indices[0], indices[0] + len(indices))):
            return self._refuse("statements are not contiguous")

        *bindings, last = statements
        symbols: List[Symbol] = []
        initializers: List[Cursor] = []
        receivers: List[Cursor] = []

        for position, stmt in enumerate(bindings):
            if stmt.label != 'local_decl' or len(decl_declarators(stmt.node)) != 1:
                return self._refuse("statement does not bind a single local")
            if 'const' in decl_modifiers(stmt.node):
                return self._refuse("constant declaration")

            declarator = stmt.child(2)
            if len(declarator.node.children) != 2 or declarator.child(1).label != 'invocation':
                return self._refuse("local is not initialized with a call")
            init = declarator.child(1)

            if position > 0:
                receiver = self._called_on(init, symbols[-1], model)
                if receiver is None:
                    return self._refuse("call is not made on the previous local")
                receivers.append(receiver)

            symbol = model.declared_symbol(declarator)
            if symbol is None:
                return None
            symbols.append(symbol)
            initializers.append(init)

        use = self._use_site(last, symbols[-1], model)
        if use is None:
            return self._refuse("last statement does not call on the last local")
        receivers.append(use)

        # Each temporary must be read exactly once, by the next link
        for symbol, stmt, expected in zip(symbols, bindings, receivers):
            later = [block.child(idx) for idx in range(stmt.index + 1, len(block.node.children))]
            references = [ref for scope in later for ref in model.references(symbol, scope)]
            if references != [expected]:
                return self._refuse(f"{symbol.name} is referenced {len(references)} times")

        merged: Node = initializers[0].node
        for init, receiver in zip(initializers[1:], receivers):
            merged = replace_nodes(init, {receiver: merged})
        new_last = replace_nodes(last, {receivers[-1]: merged})

        children = list(block.node.children)
        children[indices[0]:indices[-1] + 1] = [new_last]
        return replace_action(block, Tree(block.node.data, children), self.title)

    def _called_on(self, init: Cursor, symbol: Symbol, model: SemanticModel) -> Optional[Cursor]:
        receiver = spine_receiver(init)
        if receiver == init or receiver.label != 'name' or model.symbol_of(receiver) is not symbol:
            return None
        if receiver.parent.label not in ACCESS_LABELS:
            return None
        return receiver

    def _use_site(self, statement: Cursor, symbol: Symbol, model: SemanticModel) -> Optional[Cursor]:
        """First `local.M(...)` / `local?.M(...)` in `statement`."""
        for cursor in statement.walk():
            if cursor.label not in ACCESS_LABELS or cursor.index != 0:
                continue
            parent = cursor.parent
            if parent is None or parent.label != 'invocation':
                continue
            receiver = cursor.child(0)
            if receiver.label == 'name' and model.symbol_of(receiver) is symbol:
                if not is_unconditionally_evaluated(receiver, statement):
                    return None
                return receiver
        return None

    def _refuse(self, reason: str) -> None:
        logger.debug("%s: %s", self.title, reason)
        return None


class UnchainCalls:
    """Hoist every inner call of a chain into its own `var newVarN` temporary.

    A chain with N calls yields N-1 declarations inserted before the
    statement; the statement keeps the outermost call, now made on the last
    temporary. A `?.` stays exactly where it was written.
    """

    title = "Unchain calls"

    def try_get_action(self, statement: Cursor, model: SemanticModel) -> Optional[Action]:
        for cursor in statement.walk():
            if cursor.label not in POSTFIX_LABELS:
                continue
            parent = cursor.parent
            if parent is not None and parent.label in POSTFIX_LABELS and cursor.index == 0:
                continue
            if find_parent_statement(cursor) != statement:
                continue

            invocations = []
            current = cursor
            while current.label in POSTFIX_LABELS:
                if current.label == 'invocation':
                    invocations.append(current)
                current = current.child(0)
            if len(invocations) < 2:
                continue
            if not is_unconditionally_evaluated(cursor, statement):
                logger.debug("%s: chain at %s is not evaluated exactly once", self.title, cursor.path)
                continue

            invocations.reverse()  # innermost first
            if self._reads_statement_local(invocations[-2], statement, model):
                logger.debug("%s: hoisted call reads a local declared by the statement", self.title)
                return None
            return self._unchain(statement, invocations, model)

        logger.debug("%s: no chain of two or more calls", self.title)
        return None

    def _reads_statement_local(self, hoisted: Cursor, statement: Cursor, model: SemanticModel) -> bool:
        """Whether `hoisted` reads a local that `statement` itself declares.

        Lambda parameters bound inside `hoisted` move along with it.
        """
        depth = len(statement.path)
        for cursor in hoisted.walk():
            if cursor.label != 'name':
                continue
            symbol = model.symbol_of(cursor)
            if symbol is None or symbol.path[:depth] != statement.path:
                continue
            if symbol.path[:len(hoisted.path)] != hoisted.path:
                return True
        return False

    def _unchain(self, statement: Cursor, invocations: List[Cursor], model: SemanticModel) -> Action:
        names = temporary_variable_names(len(invocations) - 1, statement, model)

        declarations: List[Node] = [make_local_decl(make_var_type(), names[0], invocations[0].node)]
        for idx in range(1, len(names)):
            value = replace_nodes(invocations[idx], {invocations[idx - 1]: make_name(names[idx - 1])})
            declarations.append(make_local_decl(make_var_type(), names[idx], value))

        rewritten = replace_nodes(statement, {invocations[len(names) - 1]: make_name(names[-1])})
        return splice_action(statement, declarations + [rewritten], self.title)


chain_calls = ChainCalls()
unchain_calls = UnchainCalls()
