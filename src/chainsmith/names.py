"""Fresh-name synthesis.

Every synthesizer walks an ordered ladder of candidate spellings and returns
the first one that is neither bound at the insertion position nor declared
anywhere inside it. Ladders are plain module tuples and every function takes
an override, so callers and tests can pin exact fallback orders. When a
ladder is exhausted the reserved upper-case spelling is returned as is.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .lexer_rd import Lexer
from .semantic import SemanticModel
from .syntax import BLOCK_LIKE_LABELS
from .tree import Cursor
from .types import TypeRef, is_special, short_name

COUNTER_NAMES = ('i', 'k', 'j', 'index', 'counter')
COUNTER_FALLBACK = 'COUNTER'

ITERATION_FALLBACK_NAMES = ('item', 'x')
ITERATION_FALLBACK = 'ITEM'

LAMBDA_PARAMETER_NAMES = ('x', 'arg', 'item')
LAMBDA_PARAMETER_FALLBACK = 'ARG'

TEMP_VARIABLE_PREFIX = 'newVar'

# Placeholder parameter of normalized method-group payloads
PLACEHOLDER_PARAMETER = '__arg'


def is_keyword(name: str) -> bool:
    return name in Lexer.KEYWORDS

def is_unique_name(name: str, position: Cursor, model: SemanticModel) -> bool:
    """`name` can be introduced at `position` without capturing or shadowing."""
    if is_keyword(name):
        return False
    return not model.is_name_bound(name, position) and not model.declares_name_within(name, position)

def first_unique(candidates: Iterable[Optional[str]], position: Cursor, model: SemanticModel,
                 fallback: str) -> str:
    for name in candidates:
        if name and is_unique_name(name, position, model):
            return name
    return fallback

def singularize(collection_name: str) -> Optional[str]:
    """`args` -> `arg`; names not ending in `s` have no singular."""
    if len(collection_name) > 1 and collection_name.endswith('s'):
        singular = collection_name[:-1]
        return singular[0].lower() + singular[1:]
    return None

def lower_camel(type_name: str) -> str:
    return type_name[0].lower() + type_name[1:] if type_name else type_name

def element_type_name(element: Optional[TypeRef]) -> Optional[str]:
    """Candidate derived from a non-predefined element type (`Order` -> `order`)."""
    if element is None or element.is_array or is_special(element):
        return None
    return lower_camel(short_name(element.name))

def iteration_variable_name(collection_name: Optional[str], element: Optional[TypeRef],
                            position: Cursor, model: SemanticModel,
                            fallbacks: Sequence[str] = ITERATION_FALLBACK_NAMES,
                            reserved: str = ITERATION_FALLBACK) -> str:
    candidates: List[Optional[str]] = []
    if collection_name:
        candidates.append(singularize(collection_name))
    candidates.append(element_type_name(element))
    candidates.extend(fallbacks)
    return first_unique(candidates, position, model, reserved)

def loop_counter_name(position: Cursor, model: SemanticModel,
                      names: Sequence[str] = COUNTER_NAMES,
                      reserved: str = COUNTER_FALLBACK) -> str:
    return first_unique(names, position, model, reserved)

def lambda_parameter_name(position: Cursor, model: SemanticModel,
                          names: Sequence[str] = LAMBDA_PARAMETER_NAMES,
                          reserved: str = LAMBDA_PARAMETER_FALLBACK) -> str:
    return first_unique(names, position, model, reserved)

def insertion_scope(statement: Cursor) -> Cursor:
    """Where locals spliced in front of `statement` become visible.

    A statement directly in a block shares that block's declaration space
    with its siblings; an embedded statement gets a block of its own.
    """
    parent = statement.parent
    if parent is not None and parent.label in BLOCK_LIKE_LABELS:
        return parent
    return statement

def temporary_variable_names(count: int, position: Cursor, model: SemanticModel,
                             prefix: str = TEMP_VARIABLE_PREFIX) -> List[str]:
    """`count` distinct `newVarN` names for locals declared before `position`.

    Besides every spelling bound at `position`, skips names declared anywhere
    in the enclosing block, later siblings and their nested blocks included.
    """
    scope = insertion_scope(position)
    names: List[str] = []
    index = 0
    while len(names) < count:
        candidate = f"{prefix}{index}"
        if is_unique_name(candidate, position, model) and not model.declares_name_within(candidate, scope):
            names.append(candidate)
        index += 1
    return names

def temporary_variable_name(position: Cursor, model: SemanticModel,
                            prefix: str = TEMP_VARIABLE_PREFIX) -> str:
    return temporary_variable_names(1, position, model, prefix)[0]
