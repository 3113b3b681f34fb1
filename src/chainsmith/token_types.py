"""Token kinds and the `Tok` record produced by the lexer and consumed by the parser."""

from typing import Any
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types"""

    # Literals
    NUMBER = auto()
    STRING = auto()
    CHAR = auto()
    IDENT = auto()

    # Keywords
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    DO = auto()
    FOR = auto()
    FOREACH = auto()
    IN = auto()
    BREAK = auto()
    CONTINUE = auto()
    RETURN = auto()
    THROW = auto()
    NEW = auto()
    THIS = auto()
    CLASS = auto()
    USING = auto()
    REF = auto()
    OUT = auto()
    CONST = auto()

    # Literals
    TRUE = auto()
    FALSE = auto()
    NULL = auto()

    # Arithmetic
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    MOD = auto()

    # Comparison
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    # Logical / bitwise
    ANDAND = auto()
    OROR = auto()
    BANG = auto()  # !
    AMP = auto()  # &
    PIPE = auto()  # |
    CARET = auto()  # ^
    TILDE = auto()  # ~
    COALESCE = auto()  # ??

    # Assignment
    ASSIGN = auto()  # =
    PLUSEQ = auto()
    MINUSEQ = auto()
    STAREQ = auto()
    SLASHEQ = auto()
    MODEQ = auto()
    AMPEQ = auto()
    PIPEEQ = auto()
    CARETEQ = auto()
    COALESCEEQ = auto()

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    DOT = auto()
    QDOT = auto()  # ?.
    QLSQB = auto()  # ?[
    COMMA = auto()
    COLON = auto()
    SEMI = auto()
    QMARK = auto()
    ARROW = auto()  # =>

    # Increment/Decrement
    INCR = auto()  # ++
    DECR = auto()  # --

    # Special
    EOF = auto()


@dataclass
class Tok:
    """Token with position info"""

    type: TT
    value: Any
    line: int = 0
    column: int = 0
    start: int = 0
    end: int = 0

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, {self.line}:{self.column})"
