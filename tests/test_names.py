from __future__ import annotations

from typing import Optional

import pytest

from chainsmith import types as T
from chainsmith.names import (
    is_unique_name,
    iteration_variable_name,
    lambda_parameter_name,
    loop_counter_name,
    singularize,
    temporary_variable_names,
)
from tests.support.harness import in_method, load


@pytest.mark.parametrize(
    "collection, expected",
    [
        pytest.param("args", "arg", id="plural"),
        pytest.param("Orders", "order", id="capitalized"),
        pytest.param("data", None, id="no-trailing-s"),
        pytest.param("s", None, id="single-letter"),
    ],
)
def test_singularize(collection: str, expected: Optional[str]) -> None:
    assert singularize(collection) == expected


def test_counter_skips_bound_names() -> None:
    ws = load(in_method("int i = 0;\nforeach (var x in xs) { }", params="int[] xs"))
    loop = ws.first("foreach_stmt")
    assert loop_counter_name(loop, ws.model) == "k"


def test_counter_skips_names_declared_inside() -> None:
    ws = load(in_method("foreach (var x in xs) { int i = 0; int k = 1; }", params="int[] xs"))
    loop = ws.first("foreach_stmt")
    assert loop_counter_name(loop, ws.model) == "j"


def test_counter_ladder_exhausted() -> None:
    ws = load(in_method("foreach (var i in xs) { }", params="int[] xs"))
    loop = ws.first("foreach_stmt")
    assert loop_counter_name(loop, ws.model, names=("i",)) == "COUNTER"


def test_keywords_are_never_unique() -> None:
    ws = load(in_method("M();"))
    statement = ws.statements()[1]
    assert not is_unique_name("class", statement, ws.model)
    assert is_unique_name("fresh", statement, ws.model)


def test_iteration_name_prefers_singular_collection_name() -> None:
    ws = load(in_method("for (int i = 0; i < args.Length; i++) { }", params="string[] args"))
    loop = ws.first("for_stmt")
    assert iteration_variable_name("args", T.STRING, loop, ws.model) == "arg"


def test_iteration_name_from_element_type() -> None:
    ws = load(in_method("for (int i = 0; i < data.Count; i++) { }", params="List<Order> data"))
    loop = ws.first("for_stmt")
    assert iteration_variable_name("data", T.named("Order"), loop, ws.model) == "order"


def test_iteration_name_falls_back() -> None:
    ws = load(in_method("for (int i = 0; i < data.Length; i++) { var item = 1; }", params="int[] data"))
    loop = ws.first("for_stmt")
    assert iteration_variable_name("data", T.INT, loop, ws.model) == "x"
    assert iteration_variable_name("data", T.INT, loop, ws.model, fallbacks=("item",)) == "ITEM"


def test_lambda_parameter_names() -> None:
    ws = load(in_method("var x = 1;\nvar r = xs.Where(f);", params="int[] xs"))
    statement = ws.statement_at("var r")
    assert lambda_parameter_name(statement, ws.model) == "arg"


def test_temporary_names_are_distinct_and_fresh() -> None:
    ws = load(in_method("var newVar1 = 1;\nvar r = xs.ToList();", params="int[] xs"))
    statement = ws.statement_at("var r")
    assert temporary_variable_names(3, statement, ws.model) == ["newVar0", "newVar2", "newVar3"]


def test_temporary_names_skip_later_nested_declarations() -> None:
    ws = load(in_method("var r = xs.ToList();\nif (r.Any()) { int newVar0 = 1; }", params="int[] xs"))
    statement = ws.statement_at("var r")
    assert temporary_variable_names(1, statement, ws.model) == ["newVar1"]
