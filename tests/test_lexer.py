from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import pytest

from chainsmith.lexer_rd import LexError, tokenize
from chainsmith.token_types import TT


@dataclass(frozen=True)
class Case:
    """Unified lexer case payload."""

    name: str
    source: str
    expected: Optional[Tuple[Tuple[TT, object], ...]] = None
    expected_types: Optional[Tuple[TT, ...]] = None
    exc: Optional[type[Exception]] = None
    msg: Optional[str] = None


TOKEN_CASES: List[Case] = [
    Case("number-int", "123", expected=((TT.NUMBER, "123"),)),
    Case("number-float", "3.14", expected=((TT.NUMBER, "3.14"),)),
    Case("number-leading-dot", ".5", expected=((TT.NUMBER, ".5"),)),
    Case("number-suffix", "10UL", expected=((TT.NUMBER, "10UL"),)),
    Case("number-hex", "0xFF", expected=((TT.NUMBER, "0xFF"),)),
    Case("ident", "foo_bar", expected=((TT.IDENT, "foo_bar"),)),
    Case("ident-escaped-keyword", "@class", expected=((TT.IDENT, "class"),)),
    Case("string", '"hi \\" there"', expected=((TT.STRING, '"hi \\" there"'),)),
    Case("string-verbatim", '@"C:\\dir"', expected=((TT.STRING, '@"C:\\dir"'),)),
    Case("string-interpolated", '$"{x}"', expected=((TT.STRING, '$"{x}"'),)),
    Case("char", "'a'", expected=((TT.CHAR, "'a'"),)),
    Case("char-escape", "'\\n'", expected=((TT.CHAR, "'\\n'"),)),
    Case("keyword-foreach", "foreach", expected=((TT.FOREACH, "foreach"),)),
    Case("keyword-null", "null", expected=((TT.NULL, "null"),)),
    Case("var-is-ident", "var", expected=((TT.IDENT, "var"),)),
]

OPERATOR_CASES: List[Case] = [
    Case("null-conditional", "a?.b", expected_types=(TT.IDENT, TT.QDOT, TT.IDENT)),
    Case("null-conditional-index", "a?[0]", expected_types=(TT.IDENT, TT.QLSQB, TT.NUMBER, TT.RSQB)),
    Case("ternary-with-fraction", "c ?.5 : 1", expected_types=(TT.IDENT, TT.QMARK, TT.NUMBER, TT.COLON, TT.NUMBER)),
    Case("coalesce", "a ?? b", expected_types=(TT.IDENT, TT.COALESCE, TT.IDENT)),
    Case("coalesce-assign", "a ??= b", expected_types=(TT.IDENT, TT.COALESCEEQ, TT.IDENT)),
    Case("arrow", "x => x", expected_types=(TT.IDENT, TT.ARROW, TT.IDENT)),
    Case("relational", "a <= b >= c", expected_types=(TT.IDENT, TT.LTE, TT.IDENT, TT.GTE, TT.IDENT)),
    Case("increment", "i++", expected_types=(TT.IDENT, TT.INCR)),
    Case("logical", "!a && b || c", expected_types=(TT.BANG, TT.IDENT, TT.ANDAND, TT.IDENT, TT.OROR, TT.IDENT)),
    Case("line-comment", "a // tail\nb", expected_types=(TT.IDENT, TT.IDENT)),
    Case("block-comment", "a /* x\ny */ b", expected_types=(TT.IDENT, TT.IDENT)),
]

ERROR_CASES: List[Case] = [
    Case("unterminated-string", '"abc', exc=LexError, msg="Unterminated string"),
    Case("newline-in-string", '"ab\ncd"', exc=LexError, msg="Newline in string"),
    Case("unterminated-char", "'a", exc=LexError, msg="Unterminated char"),
    Case("unterminated-comment", "/* never closed", exc=LexError, msg="Unterminated block comment"),
    Case("unknown-character", "a # b", exc=LexError, msg="Unexpected character '#'"),
]


def _without_eof(source: str):
    tokens = tokenize(source)
    assert tokens[-1].type == TT.EOF
    return tokens[:-1]


@pytest.mark.parametrize("case", [pytest.param(c, id=c.name) for c in TOKEN_CASES])
def test_single_tokens(case: Case) -> None:
    tokens = _without_eof(case.source)
    assert tuple((t.type, t.value) for t in tokens) == case.expected


@pytest.mark.parametrize("case", [pytest.param(c, id=c.name) for c in OPERATOR_CASES])
def test_token_streams(case: Case) -> None:
    tokens = _without_eof(case.source)
    assert tuple(t.type for t in tokens) == case.expected_types


@pytest.mark.parametrize("case", [pytest.param(c, id=c.name) for c in ERROR_CASES])
def test_lex_errors(case: Case) -> None:
    with pytest.raises(case.exc) as excinfo:
        tokenize(case.source)
    assert case.msg in str(excinfo.value)


def test_positions_track_lines_columns_and_offsets() -> None:
    tokens = _without_eof("a\n  bb")
    second = tokens[1]
    assert (second.line, second.column) == (2, 3)
    assert (second.start, second.end) == (4, 6)


def test_eof_is_positioned_at_end_of_source() -> None:
    eof = tokenize("x;  ")[-1]
    assert eof.type == TT.EOF
    assert eof.start == 4
