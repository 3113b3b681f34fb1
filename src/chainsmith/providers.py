"""Host glue: offer every applicable refactoring for a selection in a document."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional

from lark import Tree

from .actions import Action
from .parser_rd import parse_source
from .printer import render
from .refactorings.calls import chain_calls, unchain_calls
from .refactorings.declarations import specify_type, use_var
from .refactorings.loops import for_to_foreach, foreach_to_for
from .refactorings.quantifiers import invert_quantifier
from .refactorings.select import merge_select, split_select
from .refactorings.tuples import use_new_tuple, use_tuple_create
from .refactorings.where import merge_where, split_where
from .semantic import SemanticModel
from .syntax import BLOCK_LIKE_LABELS, find_parent_statement
from .tree import Cursor, find_node

logger = logging.getLogger(__name__)

STATEMENT_REFACTORINGS = (merge_where, split_where, merge_select, split_select, invert_quantifier, unchain_calls)


class Document:
    """Source text plus its lazily built tree and semantic model."""

    def __init__(self, source: str):
        self.source = source
        self._root: Optional[Tree] = None
        self._model: Optional[SemanticModel] = None

    @property
    def root(self) -> Tree:
        if self._root is None:
            self._root = parse_source(self.source)
        return self._root

    @property
    def model(self) -> SemanticModel:
        if self._model is None:
            self._model = SemanticModel(self.root)
        return self._model


@dataclass
class CodeAction:
    title: str
    action: Action
    document: Document

    def apply_tree(self) -> Tree:
        return self.action(self.document.root)

    def apply(self) -> str:
        """New source text with the edit applied."""
        return render(self.apply_tree())


def upward(cursor: Cursor, stop: Optional[Cursor]) -> Iterator[Cursor]:
    """`cursor` and its ancestors, up to and including `stop`."""
    current: Optional[Cursor] = cursor
    while current is not None:
        yield current
        if current == stop:
            return
        current = current.parent


def selected_statements(cursor: Cursor, start: int, end: int) -> Optional[tuple]:
    """The block-like node at or above `cursor` with its statements inside `[start, end)`."""
    block = next((c for c in upward(cursor, None) if c.label in BLOCK_LIKE_LABELS), None)
    if block is None:
        return None

    statements = []
    for child in block.tree_children():
        span = child.span
        if span is not None and start <= span[0] and span[1] <= end:
            statements.append(child)
    return block, statements


def iter_actions(document: Document, start: int, end: int) -> Iterator[Action]:
    root = document.root
    model = document.model

    cursor = find_node(root, start, end)
    logger.debug("selection %d:%d is on %s", start, end, cursor.label)
    statement = find_parent_statement(cursor)

    if statement is not None and statement.label != 'block':
        for refactoring in STATEMENT_REFACTORINGS:
            action = refactoring.try_get_action(statement, model)
            if action is not None:
                yield action

        if statement.label == 'for_stmt':
            action = for_to_foreach.try_get_action(statement, model)
            if action is not None:
                yield action
        elif statement.label == 'foreach_stmt':
            action = foreach_to_for.try_get_action(statement, model)
            if action is None:
                action = foreach_to_for.try_get_action(statement, model, materialize=True)
            if action is not None:
                yield action

    selection = selected_statements(cursor, start, end)
    if selection is not None and len(selection[1]) >= 2:
        action = chain_calls.try_get_action(selection[0], selection[1], model)
        if action is not None:
            yield action

    for refactoring, labels in ((use_var, ('local_decl',)), (specify_type, ('local_decl',)),
                                (use_tuple_create, ('object_creation',)), (use_new_tuple, ('invocation',))):
        for candidate in upward(cursor, statement):
            if candidate.label not in labels:
                continue
            action = refactoring.try_get_action(candidate, model)
            if action is not None:
                yield action
                break


def compute_refactorings(document: Document, start: int, end: Optional[int] = None) -> List[CodeAction]:
    """Every refactoring offered for the selection `[start, end)`."""
    if end is None:
        end = start
    actions = [CodeAction(action.title, action, document) for action in iter_actions(document, start, end)]
    logger.debug("offering %s", [a.title for a in actions])
    return actions
