from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from chainsmith.parser_rd import parse_expr_fragment
from chainsmith.printer import render
from chainsmith.refactorings.where import factorize, merge_where, split_where
from tests.support.harness import canonical, in_method, refactor_statement

PARAMS = "IEnumerable<int> xs"


def _run(refactoring, body: str, members: str = "") -> Optional[str]:
    return refactor_statement(refactoring, in_method(body, PARAMS, members), "var r")


MERGE_CASES: List[Tuple[str, str, str]] = [
    (
        "lambdas-and-method-groups",
        "var r = xs.Where(f).Where(x => g(x)).Where(x => true).Where(x => C.B);",
        "var r = xs.Where(x => f(x) && g(x) && true && C.B);",
    ),
    (
        "method-groups-only",
        "var r = xs.Where(f).Where(g);",
        "var r = xs.Where(x => f(x) && g(x));",
    ),
    (
        "renames-to-first-lambda-parameter",
        "var r = xs.Where(a => a > 0).Where(b => b < 10);",
        "var r = xs.Where(a => a > 0 && a < 10);",
    ),
    (
        "disjunction-parenthesized",
        "var r = xs.Where(x => x < 0 || x > 9).Where(x => x != 5);",
        "var r = xs.Where(x => (x < 0 || x > 9) && x != 5);",
    ),
    (
        "only-the-where-run",
        "var r = xs.Select(f).Where(x => x > 0).Where(x => x < 5).ToList();",
        "var r = xs.Select(f).Where(x => x > 0 && x < 5).ToList();",
    ),
    (
        "negations-stay-bare",
        "var r = xs.Where(x => !Bad(x)).Where(x => x.IsOk);",
        "var r = xs.Where(x => !Bad(x) && x.IsOk);",
    ),
    (
        "parenthesized-single-parameter",
        "var r = xs.Where((x) => x > 0).Where(x => x < 5);",
        "var r = xs.Where(x => x > 0 && x < 5);",
    ),
    (
        "typed-single-parameter",
        "var r = xs.Where((int a) => a > 0).Where(b => b < 5);",
        "var r = xs.Where(a => a > 0 && a < 5);",
    ),
]


@pytest.mark.parametrize(
    "body, expected",
    [pytest.param(body, out, id=name) for name, body, out in MERGE_CASES],
)
def test_merge_where(body: str, expected: str) -> None:
    assert _run(merge_where, body) == canonical(in_method(expected, PARAMS))


def test_merge_where_picks_fresh_parameter_for_method_groups() -> None:
    body = "var x = 3;\nvar r = xs.Where(f).Where(g);"
    expected = "var x = 3;\nvar r = xs.Where(arg => f(arg) && g(arg));"
    assert _run(merge_where, body) == canonical(in_method(expected, PARAMS))


def test_merge_where_refuses_capture() -> None:
    # Renaming `x` to `y` would make the second filter read the lambda parameter
    body = "var r = xs.Where(y => y > 0).Where(x => x < y);"
    assert _run(merge_where, body, members="    int y;\n") is None


@pytest.mark.parametrize(
    "body",
    [
        pytest.param("var r = xs.Where(x => x > 0);", id="single-call"),
        pytest.param("var r = xs.Where(x => x > 0).Select(x => x).Where(x => x < 5);", id="interrupted"),
        pytest.param("var r = xs.Where(x => { return x > 0; }).Where(x => x < 5);", id="block-body"),
        pytest.param("var r = xs.Where((x, i) => i > 0).Where(x => x < 5);", id="indexed-overload"),
    ],
)
def test_merge_where_not_offered(body: str) -> None:
    assert _run(merge_where, body) is None


SPLIT_CASES: List[Tuple[str, str, str]] = [
    (
        "eta-reduces-plain-calls",
        "var r = xs.Where(x => f(x) && g(x) && true && C.B);",
        "var r = xs.Where(f).Where(g).Where(x => true).Where(x => C.B);",
    ),
    (
        "paren-unwrapped-once",
        "var r = xs.Where(x => (x > 0 && x < 5) && x != 3);",
        "var r = xs.Where(x => x > 0 && x < 5).Where(x => x != 3);",
    ),
    (
        "null-conditional-first-call-only",
        "var r = xs?.Where(x => x > 0 && x < 5);",
        "var r = xs?.Where(x => x > 0).Where(x => x < 5);",
    ),
    (
        "method-on-parameter-kept-as-lambda",
        "var r = xs.Where(x => x.IsOk() && x.Ready);",
        "var r = xs.Where(x => x.IsOk()).Where(x => x.Ready);",
    ),
]


@pytest.mark.parametrize(
    "body, expected",
    [pytest.param(body, out, id=name) for name, body, out in SPLIT_CASES],
)
def test_split_where(body: str, expected: str) -> None:
    assert _run(split_where, body) == canonical(in_method(expected, PARAMS))


@pytest.mark.parametrize(
    "body",
    [
        pytest.param("var r = xs.Where(x => x > 0 || x < -5);", id="disjunction"),
        pytest.param("var r = xs.Where(x => (x > 0 && x < 5));", id="parenthesized-body"),
        pytest.param("var r = xs.Select(x => x > 0 && x < 5);", id="not-where"),
    ],
)
def test_split_where_not_offered(body: str) -> None:
    assert _run(split_where, body) is None


def test_split_then_merge_round_trip() -> None:
    body = "var r = xs.Where(x => x > 0 && x < 5);"
    split = _run(split_where, body)
    assert split is not None
    merged = refactor_statement(merge_where, split, "var r")
    assert merged == canonical(in_method(body, PARAMS))


def test_factorize_left_to_right() -> None:
    factors = factorize(parse_expr_fragment("a && (b && c) && !d"))
    assert [render(f) for f in factors] == ["a", "b && c", "!d"]
