from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from chainsmith.refactorings.calls import chain_calls, is_unconditionally_evaluated, unchain_calls
from tests.support.harness import canonical, in_method, load

PARAMS = "IEnumerable<int> xs, Box x"


def _chain(body: str, count: Optional[int] = None) -> Optional[str]:
    """Chain the first `count` statements of the method body (all by default)."""
    ws = load(in_method(body, PARAMS))
    block = ws.first("block")
    statements = block.tree_children()
    if count is not None:
        statements = statements[:count]
    action = chain_calls.try_get_action(block, statements, ws.model)
    return ws.apply(action) if action is not None else None


def _unchain(body: str, snippet: str = "var r") -> Optional[str]:
    ws = load(in_method(body, PARAMS))
    action = unchain_calls.try_get_action(ws.statement_at(snippet), ws.model)
    return ws.apply(action) if action is not None else None


CHAIN_CASES: List[Tuple[str, str, str]] = [
    (
        "two-links",
        "var a = xs.Where(f);\nvar b = a.Select(g);",
        "var b = xs.Where(f).Select(g);",
    ),
    (
        "null-conditional-first-link",
        "var a = x?.F();\nvar b = a.G();",
        "var b = x?.F().G();",
    ),
    (
        "three-links-into-expression-statement",
        "var a = xs.Where(f);\nvar b = a.Select(g);\nb.ToList().ForEach(Print);",
        "xs.Where(f).Select(g).ToList().ForEach(Print);",
    ),
    (
        "use-inside-argument",
        "var a = xs.Where(f);\nConsole.WriteLine(a.Count());",
        "Console.WriteLine(xs.Where(f).Count());",
    ),
    (
        "use-through-null-conditional",
        "var a = x.Load();\nvar n = a?.Size();",
        "var n = x.Load()?.Size();",
    ),
]


@pytest.mark.parametrize(
    "body, expected",
    [pytest.param(body, out, id=name) for name, body, out in CHAIN_CASES],
)
def test_chain_calls(body: str, expected: str) -> None:
    assert _chain(body) == canonical(in_method(expected, PARAMS))


def test_chain_only_selected_statements() -> None:
    body = "var a = xs.Where(f);\nvar b = a.Select(g);\nUse(b);"
    expected = "var b = xs.Where(f).Select(g);\nUse(b);"
    assert _chain(body, count=2) == canonical(in_method(expected, PARAMS))


@pytest.mark.parametrize(
    "body",
    [
        pytest.param("var a = xs.Where(f);\nvar b = a.Select(g);\nUse(a);", id="temporary-read-again"),
        pytest.param("var a = xs.Where(f);\nvar b = a.Select(a.Count());", id="temporary-read-twice"),
        pytest.param("var a = xs.Where(f);\nvar b = c ? a.Count() : 0;", id="use-in-conditional-branch"),
        pytest.param("var a = xs.Where(f);\nRun(() => a.Count());", id="use-inside-lambda"),
        pytest.param("var a = xs.Where(f);\nvar b = ok && a.Any();", id="right-of-and"),
        pytest.param("var a = xs.Where(f);\nvar b = x?.Add(a.Count());", id="argument-behind-null-conditional"),
        pytest.param("var a = xs.Where(f);\nvar b = Use(a);", id="not-called-on"),
        pytest.param("var a = xs;\nvar b = a.Select(g);", id="initializer-not-a-call"),
        pytest.param("const int a = F();\nvar b = a.ToString();", id="constant"),
        pytest.param("var a = xs.Where(f), c = xs;\nvar b = a.Select(g);", id="two-declarators"),
        pytest.param("var a = xs.Where(f);\nvar b = G(a).Select(g);\nvar c = b.ToList();", id="middle-not-called-on-previous"),
        pytest.param("var a = xs.Where(f);\nwhile (a.Any()) Step();", id="use-in-loop-condition"),
    ],
)
def test_chain_calls_not_offered(body: str) -> None:
    assert _chain(body) is None


def test_chain_requires_contiguous_statements() -> None:
    ws = load(in_method("var a = xs.Where(f);\nStep();\nvar b = a.Select(g);", PARAMS))
    block = ws.first("block")
    first, _, third = block.tree_children()
    assert chain_calls.try_get_action(block, [first, third], ws.model) is None


UNCHAIN_CASES: List[Tuple[str, str, str]] = [
    (
        "three-calls",
        "var r = xs.Where(f).Select(g).ToList();",
        "var newVar0 = xs.Where(f);\nvar newVar1 = newVar0.Select(g);\nvar r = newVar1.ToList();",
    ),
    (
        "two-calls",
        "var r = xs.Where(f).Count();",
        "var newVar0 = xs.Where(f);\nvar r = newVar0.Count();",
    ),
    (
        "null-conditional-stays",
        "var r = x?.F().G();",
        "var newVar0 = x?.F();\nvar r = newVar0.G();",
    ),
    (
        "taken-name-skipped",
        "var newVar0 = 1;\nvar r = xs.Where(f).Count();",
        "var newVar0 = 1;\nvar newVar1 = xs.Where(f);\nvar r = newVar1.Count();",
    ),
    (
        "chain-inside-argument",
        "var r = Use(xs.Skip(1).First());",
        "var newVar0 = xs.Skip(1);\nvar r = Use(newVar0.First());",
    ),
]


@pytest.mark.parametrize(
    "body, expected",
    [pytest.param(body, out, id=name) for name, body, out in UNCHAIN_CASES],
)
def test_unchain_calls(body: str, expected: str) -> None:
    assert _unchain(body) == canonical(in_method(expected, PARAMS))


def test_unchain_embedded_statement_gets_block() -> None:
    body = "if (ok) xs.Where(f).ToList();"
    expected = "if (ok) { var newVar0 = xs.Where(f); newVar0.ToList(); }"
    assert _unchain(body, "xs.Where") == canonical(in_method(expected, PARAMS))


@pytest.mark.parametrize(
    "body, snippet",
    [
        pytest.param("var r = xs.Count();", "var r", id="single-call"),
        pytest.param("var r = ok && xs.Where(f).Any();", "var r", id="right-of-and"),
        pytest.param("var r = ok ? xs.Where(f).Count() : 0;", "var r", id="conditional-branch"),
        pytest.param("var r = xs.Select(y => y.F().G());", "var r", id="inside-lambda"),
        pytest.param("var r = x?.Add(xs.Where(f).Count());", "var r", id="argument-behind-null-conditional"),
        pytest.param("var a = xs, b = a.Skip(1).First();", "var a", id="reads-earlier-declarator"),
        pytest.param(
            "for (int i = 0, n = xs.Skip(i).Count(); i < n; i++) { }", "xs.Skip", id="reads-for-header-local"
        ),
    ],
)
def test_unchain_not_offered(body: str, snippet: str) -> None:
    assert _unchain(body, snippet) is None


def test_unchain_hoists_lambda_with_its_parameter() -> None:
    body = "var r = xs.Where(y => y > 0).First();"
    expected = "var newVar0 = xs.Where(y => y > 0);\nvar r = newVar0.First();"
    assert _unchain(body) == canonical(in_method(expected, PARAMS))


def test_unchain_skips_names_declared_in_later_nested_blocks() -> None:
    body = "xs.Skip(1).First();\nif (ok) { int newVar0 = 1; }"
    expected = "var newVar1 = xs.Skip(1);\nnewVar1.First();\nif (ok) { int newVar0 = 1; }"
    assert _unchain(body, "xs.Skip") == canonical(in_method(expected, PARAMS))


def test_unchain_then_chain_round_trip() -> None:
    body = "var r = xs.Where(f).Select(g).ToList();"
    unchained = _unchain(body)
    assert unchained is not None

    ws = load(unchained)
    block = ws.first("block")
    action = chain_calls.try_get_action(block, block.tree_children(), ws.model)
    assert action is not None
    assert ws.apply(action) == canonical(in_method(body, PARAMS))


@pytest.mark.parametrize(
    "body, snippet, expected",
    [
        pytest.param("var r = a() && b();", "a()", True, id="left-of-and"),
        pytest.param("var r = a() && b();", "b()", False, id="right-of-and"),
        pytest.param("var r = a() ?? b();", "b()", False, id="right-of-coalesce"),
        pytest.param("var r = c() ? d() : e();", "c()", True, id="condition"),
        pytest.param("var r = c() ? d() : e();", "d()", False, id="then-branch"),
        pytest.param("var r = c() ? d() : e();", "e()", False, id="else-branch"),
        pytest.param("var r = Run(() => g());", "g()", False, id="lambda-body"),
        pytest.param("var r = x?.F(h());", "h()", False, id="null-conditional-argument"),
        pytest.param("var r = x.F(h());", "h()", True, id="plain-argument"),
        pytest.param("while (k()) Step();", "k()", False, id="loop-condition"),
    ],
)
def test_is_unconditionally_evaluated(body: str, snippet: str, expected: bool) -> None:
    ws = load(in_method(body, PARAMS))
    statement = ws.statements()[1]
    assert is_unconditionally_evaluated(ws.node_at(snippet), statement) is expected
