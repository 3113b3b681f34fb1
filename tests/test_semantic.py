from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from chainsmith import types as T
from chainsmith.errors import StaleTreeError
from chainsmith.parser_rd import parse_source
from chainsmith.semantic import SemanticModel
from chainsmith.tree import Cursor
from tests.support.harness import in_method, load


def _init_type(body: str, name: str, params: str = "", members: str = "") -> Optional[str]:
    """Display form of the inferred type of local `name`'s initializer."""
    ws = load(in_method(body, params, members))
    for cursor in ws.top.walk():
        if cursor.label == "declarator" and str(cursor.node.children[0]) == name:
            inferred = ws.model.type_of(cursor.child(1))
            return inferred.display() if inferred is not None else None
    raise AssertionError(f"no declarator {name!r}")


TYPE_CASES: List[Tuple[str, str, str, Optional[str]]] = [
    ("int-literal", "var a = 1;", "", "int"),
    ("long-suffix", "var a = 1L;", "", "long"),
    ("ulong-suffix", "var a = 1UL;", "", "ulong"),
    ("float-suffix", "var a = 1.5f;", "", "float"),
    ("decimal-suffix", "var a = 2m;", "", "decimal"),
    ("double-fraction", "var a = 0.5;", "", "double"),
    ("hex", "var a = 0xFF;", "", "int"),
    ("string", 'var a = "s";', "", "string"),
    ("char", "var a = 'c';", "", "char"),
    ("bool", "var a = true;", "", "bool"),
    ("null", "var a = null;", "", "null"),
    ("comparison", "var a = 1 < 2;", "", "bool"),
    ("numeric-widening", "var a = 1 + 2.0;", "", "double"),
    ("char-arithmetic", "var a = 'a' + 'b';", "", "int"),
    ("string-concat", 'var a = "n" + 1;', "", "string"),
    ("coalesce", 'var a = s ?? "d";', "string s", "string"),
    ("negation", "var a = !ok;", "bool ok", "bool"),
    ("new-list", "var a = new List<int>();", "", "List<int>"),
    ("implicit-array", "var a = new[] { 1, 2 };", "", "int[]"),
    ("typed-array", "var a = new string[3];", "", "string[]"),
    ("array-element", "var a = xs[0];", "int[] xs", "int"),
    ("dictionary-value", "var a = d[k];", "Dictionary<string, long> d, string k", "long"),
    ("string-char", "var a = s[0];", "string s", "char"),
    ("array-length", "var a = xs.Length;", "int[] xs", "int"),
    ("where", "var a = xs.Where(x => x > 0);", "List<string> xs", "IEnumerable<string>"),
    ("to-array", "var a = xs.ToArray();", "IEnumerable<int> xs", "int[]"),
    ("to-list", "var a = xs.ToList();", "int[] xs", "List<int>"),
    ("first", "var a = xs.First();", "List<double> xs", "double"),
    ("any", "var a = xs.Any();", "int[] xs", "bool"),
    ("count", "var a = xs.Count();", "int[] xs", "int"),
    ("select-unknown", "var a = xs.Select(x => x);", "int[] xs", None),
    ("to-string", "var a = n.ToString();", "int n", "string"),
    ("tuple-create", 'var a = Tuple.Create(1, "s");', "", "Tuple<int, string>"),
    ("tuple-create-null", "var a = Tuple.Create(1, null);", "", None),
    ("conditional-null-branch", "var a = c ? null : s;", "bool c, string s", "string"),
    ("unknown-name", "var a = mystery;", "", None),
    ("var-chain", "var b = 1L; var a = b;", "", "long"),
]


@pytest.mark.parametrize(
    "body, params, expected",
    [pytest.param(body, params, out, id=name) for name, body, params, out in TYPE_CASES],
)
def test_type_inference(body: str, params: str, expected: Optional[str]) -> None:
    assert _init_type(body, "a", params) == expected


def test_member_types_resolve_through_classes() -> None:
    members = "    List<Order> orders;\n    Order Top() => null;\n"
    source = (
        "class Order\n{\n    public decimal Total { get; set; }\n}\n"
        + in_method("var a = this.orders;\nvar b = Top().Total;\nvar c = orders[0];", members=members)
    )
    ws = load(source)
    model = ws.model
    inits = [c.child(1) for c in ws.top.walk() if c.label == "declarator" and len(c.node.children) == 2]
    assert [model.type_of(c).display() for c in inits] == ["List<Order>", "decimal", "Order"]


def test_foreach_and_lambda_parameter_types() -> None:
    ws = load(in_method("foreach (var o in orders) { var t = xs.Where(x => x.Length > 0); }",
                        params="Order[] orders, List<string> xs"))
    model = ws.model
    foreach = ws.first("foreach_stmt")
    assert model.symbol_type(model.declared_symbol(foreach)) == T.named("Order")

    lam = ws.first("simple_lambda")
    param = model.declared_symbol(lam.child(0))
    assert param is not None and param.kind == "parameter"
    assert model.symbol_type(param) == T.STRING


def test_names_bind_to_innermost_declaration() -> None:
    source = in_method("int x = 1;\n{\n    int y = x;\n}\nvar f = xs.Select(x => x);", params="int[] xs")
    ws = load(source)
    model = ws.model
    outer = ws.local("x")

    uses = ws.names("x")
    # `int y = x` sees the local, the lambda body sees its own parameter
    assert model.symbol_of(uses[0]) is outer
    inner = model.symbol_of(uses[1])
    assert inner is not None and inner.kind == "parameter" and inner is not outer


def test_equal_names_are_distinct_symbols() -> None:
    ws = load("class A\n{\n    void F() { int v = 1; v++; }\n    void G() { int v = 2; v++; }\n}\n")
    model = ws.model
    first, second = ws.names("v")
    assert model.symbol_of(first) is not model.symbol_of(second)
    assert model.references(model.symbol_of(first), ws.top) == [first]


def test_block_locals_are_visible_before_declaration() -> None:
    ws = load(in_method("Use(late);\nint late = 1;"))
    use = ws.names("late")[0]
    assert ws.model.symbol_of(use) is ws.local("late")


def test_member_access_symbols() -> None:
    members = "    int count;\n    int Twice(int n) => n * 2;\n"
    ws = load(in_method("this.count = Twice(count);", members=members))
    model = ws.model
    access = ws.first("member_access")
    field = model.symbol_of(access)
    assert field is not None and field.kind == "field" and field.name == "count"
    assert model.symbol_of(ws.names("count")[0]) is field

    call = ws.first("invocation")
    method = model.symbol_of(call)
    assert method is not None and method.kind == "method"
    assert model.type_of(call) == T.INT


def test_is_name_bound() -> None:
    ws = load(in_method("int i = 0;\nvar r = xs.Select(x => x);", params="int[] xs", members="    int field;\n"))
    model = ws.model
    position = ws.first("simple_lambda")
    assert model.is_name_bound("i", position)
    assert model.is_name_bound("xs", position)
    assert model.is_name_bound("field", position)
    assert model.is_name_bound("x", position)
    assert model.is_name_bound("C", position)
    assert model.is_name_bound("Console", position)
    assert model.is_name_bound("int", position)
    assert not model.is_name_bound("k", position)


def test_declares_name_within() -> None:
    ws = load(in_method("for (int i = 0; i < 3; i++) { foreach (var item in xs) { } }", params="int[] xs"))
    loop = ws.first("for_stmt")
    assert ws.model.declares_name_within("item", loop)
    assert ws.model.declares_name_within("i", loop)
    assert not ws.model.declares_name_within("xs", loop)


def test_queries_reject_cursors_from_other_trees() -> None:
    source = "var a = 1;"
    model = SemanticModel(parse_source(source))
    foreign = Cursor(parse_source(source)).child(0)
    with pytest.raises(StaleTreeError):
        model.type_of(foreign)
    with pytest.raises(StaleTreeError):
        model.is_name_bound("a", foreign)


def test_type_helpers() -> None:
    assert T.element_type(T.named("Dictionary", T.STRING, T.INT)) == T.named("KeyValuePair", T.STRING, T.INT)
    assert T.length_member(T.array_of(T.INT)) == "Length"
    assert T.length_member(T.named("List", T.INT)) == "Count"
    assert T.length_member(T.named("IEnumerable", T.INT)) is None
    assert T.length_member(T.named("HashSet", T.INT)) is None
    assert T.short_name("System.Collections.Generic.List") == "List"
    assert T.is_integral(T.named("long"))
    assert not T.is_integral(T.DOUBLE)


def test_type_node_round_trip() -> None:
    ref = T.named("Dictionary", T.STRING, T.array_of(T.INT))
    assert T.type_from_node(T.type_node_from_ref(ref)) == ref
    assert ref.display() == "Dictionary<string, int[]>"
