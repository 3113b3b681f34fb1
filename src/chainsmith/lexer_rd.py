"""Hand-written scanner for the C#-like source chainsmith refactors.

Tokens carry line/column and absolute offsets so parsed nodes can report
source spans. Literal spellings are kept exactly as written.
"""

from typing import List

from .token_types import TT, Tok

# ============================================================================
# Scanner
# ============================================================================

class Lexer:
    """
    C#-subset lexer.

    Type keywords (`int`, `string`, ...), `var` and member modifiers are
    returned as identifiers; the parser interprets them by position.
    """

    # Reserved words; contextual ones stay identifiers
    KEYWORDS = {
        'if': TT.IF,
        'else': TT.ELSE,
        'while': TT.WHILE,
        'do': TT.DO,
        'for': TT.FOR,
        'foreach': TT.FOREACH,
        'in': TT.IN,
        'break': TT.BREAK,
        'continue': TT.CONTINUE,
        'return': TT.RETURN,
        'throw': TT.THROW,
        'new': TT.NEW,
        'this': TT.THIS,
        'class': TT.CLASS,
        'using': TT.USING,
        'ref': TT.REF,
        'out': TT.OUT,
        'const': TT.CONST,
        'true': TT.TRUE,
        'false': TT.FALSE,
        'null': TT.NULL,
    }

    # Longest spelling first so `??=` wins over `??` and `?`
    OPERATORS = [
        # 3 chars
        ('??=', TT.COALESCEEQ),

        # 2 chars
        ('==', TT.EQ),
        ('!=', TT.NEQ),
        ('<=', TT.LTE),
        ('>=', TT.GTE),
        ('&&', TT.ANDAND),
        ('||', TT.OROR),
        ('=>', TT.ARROW),
        ('+=', TT.PLUSEQ),
        ('-=', TT.MINUSEQ),
        ('*=', TT.STAREQ),
        ('/=', TT.SLASHEQ),
        ('%=', TT.MODEQ),
        ('&=', TT.AMPEQ),
        ('|=', TT.PIPEEQ),
        ('^=', TT.CARETEQ),
        ('++', TT.INCR),
        ('--', TT.DECR),
        ('??', TT.COALESCE),
        ('?[', TT.QLSQB),

        # 1 char
        ('+', TT.PLUS),
        ('-', TT.MINUS),
        ('*', TT.STAR),
        ('/', TT.SLASH),
        ('%', TT.MOD),
        ('^', TT.CARET),
        ('<', TT.LT),
        ('>', TT.GT),
        ('!', TT.BANG),
        ('=', TT.ASSIGN),
        ('(', TT.LPAR),
        (')', TT.RPAR),
        ('[', TT.LSQB),
        (']', TT.RSQB),
        ('{', TT.LBRACE),
        ('}', TT.RBRACE),
        ('.', TT.DOT),
        (',', TT.COMMA),
        (':', TT.COLON),
        (';', TT.SEMI),
        ('?', TT.QMARK),
        ('&', TT.AMP),
        ('|', TT.PIPE),
        ('~', TT.TILDE),
    ]

    NUMBER_SUFFIXES = 'fFdDmMlLuU'

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []

        # Start of the token being scanned
        self.tok_start = 0
        self.tok_line = 1
        self.tok_column = 1

    # ========================================================================
    # Driver
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """All tokens of the source, terminated by EOF."""
        while self.pos < len(self.source):
            self.scan_token()

        self.mark_start()
        self.emit(TT.EOF, None)
        return self.tokens

    def scan_token(self):
        """Dispatch on the next character."""
        # Skip whitespace, newlines included
        if self.skip_whitespace():
            return

        # `//` and `/* */`
        if self.peek() == '/' and self.peek(1) == '/':
            self.skip_line_comment()
            return
        if self.peek() == '/' and self.peek(1) == '*':
            self.skip_block_comment()
            return

        self.mark_start()

        # "...", @"...", $"..."
        if self.peek() == '"':
            self.scan_string()
            return
        if self.peek() in ('@', '$') and self.peek(1) == '"':
            self.scan_prefixed_string()
            return
        if self.peek() == '$' and self.peek(1) == '@' and self.peek(2) == '"':
            self.scan_prefixed_string()
            return

        # Char literals
        if self.peek() == "'":
            self.scan_char()
            return

        # Numeric literal, possibly starting with `.`
        if self.peek().isdigit() or (self.peek() == '.' and self.peek(1).isdigit()):
            self.scan_number()
            return

        # Identifiers and keywords (@ prefix escapes a keyword)
        if self.peek().isalpha() or self.peek() == '_' or (self.peek() == '@' and self.peek(1).isalpha()):
            self.scan_identifier()
            return

        # Null-conditional member access, but not `cond ?.5 : 1`
        if self.peek() == '?' and self.peek(1) == '.' and not self.peek(2).isdigit():
            self.advance(2)
            self.emit(TT.QDOT, '?.')
            return

        # Everything else is punctuation or an error
        self.scan_operator()

    # ========================================================================
    # Literals and names
    # ========================================================================

    def scan_string(self):
        """Scan regular string literal: "..." """
        start_line = self.line
        value = self.advance()  # Keep opening quote

        while self.pos < len(self.source) and self.peek() != '"':
            if self.peek() in ('\n', '\r'):
                raise LexError(f"Newline in string literal at line {start_line}")
            if self.peek() == '\\':
                # Escapes are kept verbatim
                value += self.advance(2)
            else:
                value += self.advance()

        if self.pos >= len(self.source):
            raise LexError(f"Unterminated string at line {start_line}")

        value += self.advance()  # Closing quote
        self.emit(TT.STRING, value)

    def scan_prefixed_string(self):
        """Scan verbatim (@"..."), interpolated ($"...") or both"""
        start_line = self.line
        value = ''
        while self.peek() in ('@', '$'):
            value += self.advance()

        verbatim = '@' in value
        value += self.advance()  # opening quote

        while self.pos < len(self.source):
            ch = self.peek()
            if ch == '"':
                if verbatim and self.peek(1) == '"':
                    value += self.advance(2)
                    continue
                value += self.advance()
                self.emit(TT.STRING, value)
                return
            if ch == '\\' and not verbatim:
                value += self.advance(2)
                continue
            value += self.advance()

        raise LexError(f"Unterminated string at line {start_line}")

    def scan_char(self):
        """Scan char literal: 'a', '\\n'"""
        start_line = self.line
        value = self.advance()

        while self.pos < len(self.source) and self.peek() != "'":
            if self.peek() in ('\n', '\r'):
                break
            if self.peek() == '\\':
                value += self.advance(2)
            else:
                value += self.advance()

        if self.peek() != "'":
            raise LexError(f"Unterminated char literal at line {start_line}")

        value += self.advance()
        self.emit(TT.CHAR, value)

    def scan_number(self):
        """Decimal, real or hex literal with its C# suffixes."""
        value = ''

        # Hexadecimal
        if self.peek() == '0' and self.peek(1) in ('x', 'X'):
            value += self.advance(2)
            while self.peek().isalnum() or self.peek() == '_':
                value += self.advance()
            self.emit(TT.NUMBER, value)
            return

        # Digits, `_` separators allowed
        while self.peek().isdigit() or self.peek() == '_':
            value += self.advance()

        # Fraction
        if self.peek() == '.' and self.peek(1).isdigit():
            value += self.advance()  # .
            while self.peek().isdigit() or self.peek() == '_':
                value += self.advance()

        # Exponent
        if self.peek() in ('e', 'E'):
            value += self.advance()
            if self.peek() in ('+', '-'):
                value += self.advance()
            while self.peek().isdigit():
                value += self.advance()

        # Type suffixes (UL, f, m, ...)
        while self.peek() and self.peek() in self.NUMBER_SUFFIXES:
            value += self.advance()

        # Keep the spelling to print it back unchanged
        self.emit(TT.NUMBER, value)

    def scan_identifier(self):
        """Name, keyword or `@`-escaped name."""
        value = ''
        escaped = False

        if self.peek() == '@':
            self.advance()
            escaped = True

        while self.peek().isalnum() or self.peek() == '_':
            value += self.advance()

        # `@class` is an identifier
        token_type = TT.IDENT if escaped else self.KEYWORDS.get(value, TT.IDENT)
        self.emit(token_type, value)

    def scan_operator(self):
        """First entry of OPERATORS that matches at the cursor."""
        for op_str, op_type in self.OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                self.emit(op_type, op_str)
                return

        ch = self.peek()
        raise LexError(f"Unexpected character '{ch}' at line {self.line}, col {self.column}")

    # ========================================================================
    # Cursor movement
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Character `offset` ahead, or NUL past the end."""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume `n` characters, tracking line and column."""
        if n < 0:
            raise ValueError(f"advance() requires n >= 0, got {n}")
        result = ''
        for _ in range(n):
            ch = self.source[self.pos] if self.pos < len(self.source) else '\0'
            result += ch
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return result

    def skip_whitespace(self) -> bool:
        """True when anything was skipped."""
        skipped = False
        while self.peek() in (' ', '\t', '\n', '\r', '\f', '\v'):
            self.advance()
            skipped = True
        return skipped

    def skip_line_comment(self):
        """Up to, not including, the line break."""
        while self.peek() not in ('\n', '\r', '\0'):
            self.advance()

    def skip_block_comment(self):
        """Skip /* ... */ comment"""
        start_line = self.line
        self.advance(2)
        while self.pos < len(self.source):
            if self.peek() == '*' and self.peek(1) == '/':
                self.advance(2)
                return
            self.advance()

        raise LexError(f"Unterminated block comment at line {start_line}")

    def mark_start(self):
        self.tok_start = self.pos
        self.tok_line = self.line
        self.tok_column = self.column

    def emit(self, token_type: TT, value):
        """Emit a token spanning from the last mark to the current position"""
        tok = Tok(
            type=token_type,
            value=value,
            line=self.tok_line,
            column=self.tok_column,
            start=self.tok_start,
            end=self.pos,
        )
        self.tokens.append(tok)

class LexError(Exception):
    """Malformed input, with the line where it was found."""


def tokenize(source: str) -> List[Tok]:
    """Tokens of `source`."""
    lexer = Lexer(source)
    return lexer.tokenize()
