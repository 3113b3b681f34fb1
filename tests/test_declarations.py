from __future__ import annotations

import pytest

from chainsmith.refactorings.declarations import specify_type, use_var
from tests.support.harness import canonical, in_method, load, refactor_statement

PARAMS = "IEnumerable<int> xs"


def _run(refactoring, body: str, snippet: str = "x ="):
    return refactor_statement(refactoring, in_method(body, PARAMS), snippet)


@pytest.mark.parametrize(
    "body, expected",
    [
        pytest.param("List<int> x = new List<int>();", "var x = new List<int>();", id="creation"),
        pytest.param('string x = "a";', 'var x = "a";', id="string"),
        pytest.param("long x = 1L;", "var x = 1L;", id="long-suffix"),
        pytest.param("int x = xs.Count();", "var x = xs.Count();", id="linq-result"),
        pytest.param("int[] x = xs.ToArray();", "var x = xs.ToArray();", id="array"),
    ],
)
def test_use_var(body: str, expected: str) -> None:
    assert _run(use_var, body) == canonical(in_method(expected, PARAMS))


@pytest.mark.parametrize(
    "body, snippet",
    [
        pytest.param("long x = 1;", "x =", id="widening"),
        pytest.param("string x = null;", "x =", id="null"),
        pytest.param("Func<int, int> x = y => y;", "x =", id="lambda"),
        pytest.param("int[] x = { 1, 2 };", "x =", id="array-initializer"),
        pytest.param("const int x = 1;", "x =", id="constant"),
        pytest.param("int x;", "int x", id="no-initializer"),
        pytest.param("int x = 1, y = 2;", "x =", id="two-declarators"),
        pytest.param("var x = 1;", "x =", id="already-var"),
    ],
)
def test_use_var_not_offered(body: str, snippet: str) -> None:
    assert _run(use_var, body, snippet) is None


@pytest.mark.parametrize(
    "body, expected",
    [
        pytest.param("var x = 1L;", "long x = 1L;", id="long-suffix"),
        pytest.param("var x = 1.5f;", "float x = 1.5f;", id="float-suffix"),
        pytest.param('var x = "a";', 'string x = "a";', id="string"),
        pytest.param("var x = xs.Where(f);", "IEnumerable<int> x = xs.Where(f);", id="where"),
        pytest.param("var x = xs.ToList();", "List<int> x = xs.ToList();", id="to-list"),
        pytest.param("var x = xs.ToArray();", "int[] x = xs.ToArray();", id="to-array"),
    ],
)
def test_specify_type(body: str, expected: str) -> None:
    assert _run(specify_type, body) == canonical(in_method(expected, PARAMS))


@pytest.mark.parametrize(
    "body",
    [
        pytest.param("var x = null;", id="null"),
        pytest.param("var x = Make();", id="unknown-call"),
        pytest.param("int x = 1;", id="already-explicit"),
    ],
)
def test_specify_type_not_offered(body: str) -> None:
    assert _run(specify_type, body) is None


def test_specify_then_use_var_round_trip() -> None:
    body = "var x = xs.Where(y => y > 0).ToList();"
    explicit = _run(specify_type, body)
    assert explicit is not None
    assert refactor_statement(use_var, explicit, "x =") == canonical(in_method(body, PARAMS))


def test_specify_type_keeps_modifiers_and_declarator() -> None:
    ws = load(in_method("var x = 2L;", PARAMS))
    action = specify_type.try_get_action(ws.statement_at("x ="), ws.model)
    assert action is not None
    assert action.title == "Specify type explicitly"
    assert "long x = 2L;" in ws.apply(action)
