"""Convert between counted `for` loops and `foreach` loops."""
from __future__ import annotations

import logging
from typing import Optional

from .. import types as T
from ..actions import Action, replace_action, splice_action
from ..dataflow import (
    is_read_only_collection_access,
    loop_body_reads_only_current_item,
    try_get_collection_info,
)
from ..names import iteration_variable_name, loop_counter_name, temporary_variable_name
from ..semantic import SemanticModel
from ..syntax import (
    decl_declarators,
    decl_modifiers,
    declarator_initializer,
    invocation_arguments,
    is_binary,
    is_simple_member_path,
    make_binary,
    make_for_stmt,
    make_foreach_stmt,
    make_int_literal,
    make_invocation,
    make_local_decl,
    make_member_access,
    make_name,
    make_postfix_increment,
    make_type,
    make_var_type,
    member_name,
    name_text,
    unary_operator,
)
from ..rewriters import replace_element_access, replace_identifier_with_element_access
from ..tree import Cursor, tree_label

logger = logging.getLogger(__name__)

LENGTH_MEMBERS = T.LENGTH_MEMBERS


def is_zero_literal(node) -> bool:
    return tree_label(node) == 'literal' and str(node.children[0]) == '0'


class ForToForeach:
    title = "Convert to foreach"

    def try_get_action(self, loop: Cursor, model: SemanticModel) -> Optional[Action]:
        if loop.label != 'for_stmt':
            return None

        decl, initializers, condition, incrementors, body = loop.children()

        # Exactly one integral counter starting at zero, nothing else initialized
        if decl.label != 'local_decl' or initializers.node.children:
            return self._refuse("header is not a single counter declaration")
        declarators = decl_declarators(decl.node)
        if len(declarators) != 1 or 'const' in decl_modifiers(decl.node):
            return self._refuse("header declares more than one variable")
        declarator = decl.child(2)
        init = declarator_initializer(declarator.node)
        if init is None or not is_zero_literal(init):
            return self._refuse("counter does not start at 0")
        counter = model.declared_symbol(declarator)
        if counter is None or not T.is_integral(model.symbol_type(counter)):
            return self._refuse("counter is not integral")

        # counter < collection.Length / .Count / .Count()
        if not is_binary(condition.node, '<'):
            return self._refuse("condition is not `counter < bound`")
        left, bound = condition.child(0), condition.child(2)
        if left.label != 'name' or model.symbol_of(left) is not counter:
            return self._refuse("condition does not test the counter")
        collection_cursor = self._bound_collection(bound)
        if collection_cursor is None:
            return self._refuse("bound is not a length of a collection")
        collection = try_get_collection_info(collection_cursor, model)
        if collection is None:
            return self._refuse("bound is not over a known collection")

        # A single ++ of the counter
        steps = incrementors.children()
        if len(steps) != 1 or steps[0].label not in ('prefix_unary', 'postfix_unary'):
            return self._refuse("incrementor is not a single ++")
        step = steps[0]
        if unary_operator(step.node) != '++':
            return self._refuse("incrementor is not a single ++")
        operand = step.child(1 if step.label == 'prefix_unary' else 0)
        if operand.label != 'name' or model.symbol_of(operand) is not counter:
            return self._refuse("incrementor does not step the counter")

        accesses = loop_body_reads_only_current_item(body, model, collection, counter)
        if accesses is None:
            return self._refuse("body does more than read the current element")

        element = T.element_type(collection.type)
        type_node = T.type_node_from_ref(element) if element is not None else make_var_type()
        name = iteration_variable_name(self._collection_name(collection_cursor), element, loop, model)

        new_body = replace_element_access(body, accesses, name)
        foreach = make_foreach_stmt(type_node, name, collection_cursor.node, new_body)
        return replace_action(loop, foreach, self.title)

    def _bound_collection(self, bound: Cursor) -> Optional[Cursor]:
        if bound.label == 'member_access' and member_name(bound.node) in LENGTH_MEMBERS:
            return bound.child(0)

        if bound.label == 'invocation' and not invocation_arguments(bound.node):
            callee = bound.child(0)
            if callee.label == 'member_access' and member_name(callee.node) == 'Count':
                return callee.child(0)
        return None

    def _collection_name(self, cursor: Cursor) -> Optional[str]:
        if cursor.label == 'member_access':
            return member_name(cursor.node)
        return name_text(cursor.node)

    def _refuse(self, reason: str) -> None:
        logger.debug("%s: %s", self.title, reason)
        return None


class ForeachToFor:
    title = "Convert to for"

    def try_get_action(self, loop: Cursor, model: SemanticModel, materialize: bool = False) -> Optional[Action]:
        if loop.label != 'foreach_stmt':
            return None

        collection, body = loop.child(2), loop.child(3)
        element_symbol = model.declared_symbol(loop)
        collection_type = model.type_of(collection)
        counter = loop_counter_name(loop, model)

        if materialize:
            if not T.is_collection(collection_type):
                return self._refuse("collection type is unknown")
            temp = temporary_variable_name(loop, model)
            snapshot = make_local_decl(
                make_var_type(), temp,
                make_invocation(make_member_access(collection.node, 'ToArray')),
            )
            target = make_name(temp)
            length = 'Length'
        else:
            length = T.length_member(collection_type)
            if length is None:
                return self._refuse("collection has no length and int indexer")
            if not self._is_stable(collection, body, model):
                return self._refuse("collection is not re-evaluated safely")
            target = collection.node

        new_body = replace_identifier_with_element_access(body, element_symbol, target, counter, model)
        header = make_local_decl(make_type('int'), counter, make_int_literal(0))
        condition = make_binary(make_name(counter), '<', make_member_access(target, length))
        for_loop = make_for_stmt(header, condition, [make_postfix_increment(make_name(counter))], new_body)

        if materialize:
            return splice_action(loop, [snapshot, for_loop], self.title)
        return replace_action(loop, for_loop, self.title)

    def _is_stable(self, collection: Cursor, body: Cursor, model: SemanticModel) -> bool:
        """The collection expression denotes the same object on every iteration."""
        if not is_simple_member_path(collection.node):
            return False

        for part in collection.walk():
            if part.label == 'name' and model.declares_name_within(name_text(part.node), body):
                return False
            if part.label not in ('name', 'member_access'):
                continue

            symbol = model.symbol_of(part)
            if symbol is None:
                continue
            for reference in model.references(symbol, body):
                if not is_read_only_collection_access(reference):
                    return False
        return True

    def _refuse(self, reason: str) -> None:
        logger.debug("%s: %s", self.title, reason)
        return None


for_to_foreach = ForToForeach()
foreach_to_for = ForeachToFor()
