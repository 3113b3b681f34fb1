"""
Recursive Descent Parser for the chainsmith front end

Builds `lark.Tree` / `lark.Token` nodes for a C#-like language: using
directives, namespaces, classes with fields, properties and methods, top-level
statements, and the usual statement and expression forms including lambdas,
object/array creation and null-conditional access.

Structure:
- Lexer: Token stream from source
- Parser: Recursive descent, one method per precedence level
- AST: lark Tree nodes; every parsed tree carries `meta.start_pos`/`end_pos`

Null-conditional access is kept flat: `a?.b.c()` is
invocation(member_access(conditional_access(a, b), c)), so the point where
null propagation starts is exactly the `conditional_access` node and it
extends to the end of the enclosing postfix chain.
"""

from typing import Optional, List, Tuple
from lark import Tree, Token

from .token_types import TT, Tok

# ============================================================================
# Parser
# ============================================================================

class ParseError(Exception):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.message = message
        self.token = token
        super().__init__(
            f"{message} at line {token.line}, col {token.column}" if token else message
        )


def omitted() -> Tree:
    """Placeholder for an optional child that is absent."""
    return Tree('omitted', [])


class Parser:
    """
    Recursive descent parser.

    Expression precedence (lowest to highest):
    1. lambda, assignment (=, +=, ..., ??=)
    2. conditional (? :)
    3. null coalescing (??)
    4. or (||)
    5. and (&&)
    6. bitwise or (|)
    7. bitwise xor (^)
    8. bitwise and (&)
    9. equality (==, !=)
    10. relational (<, >, <=, >=)
    11. additive (+, -)
    12. multiplicative (*, /, %)
    13. unary (!, -, +, ~, ++, --)
    14. postfix (.name, ?.name, [index], ?[index], (call), ++, --)
    15. primary (literals, names, this, parens, new)
    """

    MODIFIERS = {
        'public', 'private', 'protected', 'internal', 'static', 'readonly',
        'sealed', 'abstract', 'virtual', 'override', 'partial', 'async',
        'extern', 'unsafe', 'new', 'volatile',
    }

    PARAMETER_MODIFIERS = {TT.REF, TT.OUT, TT.THIS}

    ASSIGN_OPS = (
        TT.ASSIGN, TT.PLUSEQ, TT.MINUSEQ, TT.STAREQ, TT.SLASHEQ, TT.MODEQ,
        TT.AMPEQ, TT.PIPEEQ, TT.CARETEQ, TT.COALESCEEQ,
    )

    LITERALS = (TT.NUMBER, TT.STRING, TT.CHAR, TT.TRUE, TT.FALSE, TT.NULL)

    def __init__(self, tokens: List[Tok]):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0] if tokens else Tok(TT.EOF, None, 0, 0)
        self.last: Optional[Tok] = None  # Most recently consumed token

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return Tok(TT.EOF, None, 0, 0)

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        self.last = prev
        self.pos += 1
        if self.pos < len(self.tokens):
            self.current = self.tokens[self.pos]
        else:
            self.current = Tok(TT.EOF, None, 0, 0)
        return prev

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def expect(self, token_type: TT, message: Optional[str] = None) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            msg = message or f"Expected {token_type.name}, got {self.current.type.name}"
            raise ParseError(msg, self.current)
        return self.advance()

    def check_word(self, word: str) -> bool:
        """Contextual keyword check (`var`, `namespace`, modifiers...)"""
        return self.current.type == TT.IDENT and self.current.value == word

    def mark(self) -> Tuple[int, Optional[Tok]]:
        return (self.pos, self.last)

    def reset(self, saved: Tuple[int, Optional[Tok]]) -> None:
        self.pos, self.last = saved
        self.current = self.peek(0) if self.pos < len(self.tokens) else Tok(TT.EOF, None, 0, 0)

    # ========================================================================
    # Node construction
    # ========================================================================

    def token(self, tok: Tok, type_name: Optional[str] = None) -> Token:
        """Convert a lexer token into a positioned lark Token"""
        return Token(
            type_name or tok.type.name,
            tok.value,
            start_pos=tok.start,
            line=tok.line,
            column=tok.column,
            end_pos=tok.end,
        )

    def finish(self, tree: Tree, start: Tok) -> Tree:
        """Attach the source span from `start` to the last consumed token"""
        meta = tree.meta
        meta.empty = False
        meta.start_pos = start.start
        meta.line = start.line
        meta.column = start.column
        meta.end_pos = self.last.end if self.last is not None else start.start
        return tree

    def modifiers(self, toks: List[Tok]) -> Tree:
        return Tree('modifiers', [self.token(t, 'MODIFIER') for t in toks])

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Tree:
        """Parse entire compilation unit"""
        start = self.current
        members = []

        while not self.check(TT.EOF):
            members.append(self.parse_top_level())

        return self.finish(Tree('compilation_unit', members), start)

    def parse_top_level(self) -> Tree:
        if self.check(TT.USING) and self.peek(1).type != TT.LPAR:
            return self.parse_using_directive()

        if self.check_word('namespace') and self.peek(1).type == TT.IDENT:
            return self.parse_namespace()

        if self.is_class_start():
            return self.parse_member(None)

        return self.parse_statement()

    def parse_using_directive(self) -> Tree:
        start = self.expect(TT.USING)
        if self.check_word('static'):
            self.advance()
        name = self.parse_dotted_name()
        if self.match(TT.ASSIGN):
            # Alias directive: keep the aliased name
            target = self.parse_type()
            self.expect(TT.SEMI)
            return self.finish(Tree('using_directive', [name, target]), start)
        self.expect(TT.SEMI)
        return self.finish(Tree('using_directive', [name]), start)

    def parse_dotted_name(self) -> Token:
        first = self.expect(TT.IDENT)
        parts = [first.value]
        end = first.end
        while self.check(TT.DOT) and self.peek(1).type == TT.IDENT:
            self.advance()
            tok = self.advance()
            parts.append(tok.value)
            end = tok.end
        return Token('IDENT', '.'.join(parts), start_pos=first.start, line=first.line,
                     column=first.column, end_pos=end)

    def parse_namespace(self) -> Tree:
        start = self.advance()  # namespace
        name = self.parse_dotted_name()
        members = []

        if self.match(TT.SEMI):
            # File-scoped namespace runs to the end of the unit
            while not self.check(TT.EOF):
                members.append(self.parse_top_level())
            return self.finish(Tree('namespace_decl', [name] + members), start)

        self.expect(TT.LBRACE)
        while not self.check(TT.RBRACE, TT.EOF):
            members.append(self.parse_top_level())
        self.expect(TT.RBRACE)
        return self.finish(Tree('namespace_decl', [name] + members), start)

    def is_class_start(self) -> bool:
        offset = 0
        while True:
            tok = self.peek(offset)
            if tok.type == TT.IDENT and tok.value in self.MODIFIERS:
                offset += 1
                continue
            return tok.type == TT.CLASS

    # ========================================================================
    # Declarations
    # ========================================================================

    def parse_member(self, class_name: Optional[str]) -> Tree:
        """Parse a class, field, property, method or constructor"""
        start = self.current
        mods = []
        while self.current.type == TT.IDENT and self.current.value in self.MODIFIERS:
            # `new` as a modifier is a keyword token, so only identifiers land here
            mods.append(self.advance())
        modifiers = self.modifiers(mods)

        if self.check(TT.CLASS):
            return self.parse_class(modifiers, start)

        if class_name is None:
            raise ParseError("Expected class declaration", self.current)

        # Constructor: Name(...)
        if self.check(TT.IDENT) and self.current.value == class_name and self.peek(1).type == TT.LPAR:
            name = self.token(self.advance())
            params = self.parse_param_list()
            body = self.parse_method_body()
            return self.finish(Tree('method_decl', [modifiers, omitted(), name, params, body]), start)

        type_node = self.parse_type()
        name = self.token(self.expect(TT.IDENT))

        if self.check(TT.LPAR):
            params = self.parse_param_list()
            body = self.parse_method_body()
            return self.finish(Tree('method_decl', [modifiers, type_node, name, params, body]), start)

        if self.check(TT.LBRACE):
            self.skip_accessor_list()
            init = omitted()
            if self.match(TT.ASSIGN):
                init = self.parse_variable_initializer()
                self.expect(TT.SEMI)
            return self.finish(Tree('property_decl', [modifiers, type_node, name, init]), start)

        declarators = [self.parse_declarator_rest(name, self.last)]
        while self.match(TT.COMMA):
            declarators.append(self.parse_declarator())
        self.expect(TT.SEMI)
        return self.finish(Tree('field_decl', [modifiers, type_node] + declarators), start)

    def parse_class(self, modifiers: Tree, start: Tok) -> Tree:
        self.expect(TT.CLASS)
        name_tok = self.expect(TT.IDENT)

        # Base list is accepted and dropped
        if self.match(TT.COLON):
            self.parse_type()
            while self.match(TT.COMMA):
                self.parse_type()

        body_start = self.expect(TT.LBRACE)
        members = []
        while not self.check(TT.RBRACE, TT.EOF):
            members.append(self.parse_member(name_tok.value))
        self.expect(TT.RBRACE)
        body = self.finish(Tree('class_body', members), body_start)

        return self.finish(Tree('class_decl', [modifiers, self.token(name_tok), body]), start)

    def skip_accessor_list(self) -> None:
        """Auto-property accessors `{ get; set; }` are not represented"""
        self.expect(TT.LBRACE)
        depth = 1
        while depth and not self.check(TT.EOF):
            tok = self.advance()
            if tok.type == TT.LBRACE:
                depth += 1
            elif tok.type == TT.RBRACE:
                depth -= 1

    def parse_method_body(self) -> Tree:
        if self.check(TT.LBRACE):
            return self.parse_block()

        if self.check(TT.ARROW):
            start = self.advance()
            expr = self.parse_expr()
            self.expect(TT.SEMI)
            return self.finish(Tree('arrow_body', [expr]), start)

        self.expect(TT.SEMI, "Expected method body")
        return omitted()

    def parse_param_list(self) -> Tree:
        start = self.expect(TT.LPAR)
        params = []
        if not self.check(TT.RPAR):
            params.append(self.parse_parameter())
            while self.match(TT.COMMA):
                params.append(self.parse_parameter())
        self.expect(TT.RPAR)
        return self.finish(Tree('param_list', params), start)

    def parse_parameter(self) -> Tree:
        start = self.current
        mods = []
        while self.check(*self.PARAMETER_MODIFIERS) or self.check_word('params'):
            mods.append(self.advance())

        type_node = self.parse_type()
        name = self.token(self.expect(TT.IDENT))
        return self.finish(Tree('parameter', [self.modifiers(mods), type_node, name]), start)

    # ========================================================================
    # Types
    # ========================================================================

    def parse_type(self, allow_array: bool = True) -> Tree:
        """Parse type: Name, A.B, Name<T, U>, T[]"""
        start = self.current
        name = self.parse_dotted_name()
        children = [name]

        if self.check(TT.LT):
            children.append(self.parse_type_args())

        node = self.finish(Tree('type', children), start)

        while allow_array and self.check(TT.LSQB) and self.peek(1).type == TT.RSQB:
            self.advance()
            self.advance()
            node = self.finish(Tree('array_type', [node]), start)

        return node

    def parse_type_args(self) -> Tree:
        start = self.expect(TT.LT)
        args = [self.parse_type()]
        while self.match(TT.COMMA):
            args.append(self.parse_type())
        self.expect(TT.GT)
        return self.finish(Tree('type_args', args), start)

    def looks_like_declaration(self, follow: Tuple[TT, ...] = (TT.ASSIGN, TT.SEMI, TT.COMMA)) -> bool:
        """Speculatively parse `Type Name` followed by one of `follow`"""
        if not self.check(TT.IDENT):
            return False

        saved = self.mark()
        try:
            self.parse_type()
            ok = self.check(TT.IDENT) and self.peek(1).type in follow
        except ParseError:
            ok = False
        self.reset(saved)
        return ok

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_statement(self) -> Tree:
        """Parse a single statement"""
        match self.current.type:
            case TT.LBRACE:
                return self.parse_block()
            case TT.SEMI:
                start = self.advance()
                return self.finish(Tree('empty_stmt', []), start)
            case TT.IF:
                return self.parse_if_stmt()
            case TT.WHILE:
                return self.parse_while_stmt()
            case TT.DO:
                return self.parse_do_stmt()
            case TT.FOR:
                return self.parse_for_stmt()
            case TT.FOREACH:
                return self.parse_foreach_stmt()
            case TT.RETURN:
                return self.parse_jump_with_value('return_stmt')
            case TT.THROW:
                return self.parse_jump_with_value('throw_stmt')
            case TT.BREAK:
                start = self.advance()
                self.expect(TT.SEMI)
                return self.finish(Tree('break_stmt', []), start)
            case TT.CONTINUE:
                start = self.advance()
                self.expect(TT.SEMI)
                return self.finish(Tree('continue_stmt', []), start)

        start = self.current
        if self.check(TT.CONST) or self.looks_like_declaration():
            stmt = self.parse_local_declaration()
            self.expect(TT.SEMI)
            return self.finish(stmt, start)

        expr = self.parse_expr()
        self.expect(TT.SEMI)
        return self.finish(Tree('expr_stmt', [expr]), start)

    def parse_block(self) -> Tree:
        start = self.expect(TT.LBRACE)
        stmts = []
        while not self.check(TT.RBRACE, TT.EOF):
            stmts.append(self.parse_statement())
        self.expect(TT.RBRACE)
        return self.finish(Tree('block', stmts), start)

    def parse_local_declaration(self) -> Tree:
        """Parse `[const] Type a = 1, b` without the trailing semicolon"""
        start = self.current
        mods = []
        if self.check(TT.CONST):
            mods.append(self.advance())

        type_node = self.parse_type()
        declarators = [self.parse_declarator()]
        while self.match(TT.COMMA):
            declarators.append(self.parse_declarator())

        return self.finish(Tree('local_decl', [self.modifiers(mods), type_node] + declarators), start)

    def parse_declarator(self) -> Tree:
        name_tok = self.expect(TT.IDENT)
        return self.parse_declarator_rest(self.token(name_tok), name_tok)

    def parse_declarator_rest(self, name: Token, start: Tok) -> Tree:
        children = [name]
        if self.match(TT.ASSIGN):
            children.append(self.parse_variable_initializer())
        return self.finish(Tree('declarator', children), start)

    def parse_variable_initializer(self) -> Tree:
        if self.check(TT.LBRACE):
            return self.parse_array_initializer()
        return self.parse_expr()

    def parse_if_stmt(self) -> Tree:
        start = self.expect(TT.IF)
        self.expect(TT.LPAR)
        cond = self.parse_expr()
        self.expect(TT.RPAR)
        then_body = self.parse_statement()

        children = [cond, then_body]
        if self.match(TT.ELSE):
            children.append(self.parse_statement())

        return self.finish(Tree('if_stmt', children), start)

    def parse_while_stmt(self) -> Tree:
        start = self.expect(TT.WHILE)
        self.expect(TT.LPAR)
        cond = self.parse_expr()
        self.expect(TT.RPAR)
        body = self.parse_statement()
        return self.finish(Tree('while_stmt', [cond, body]), start)

    def parse_do_stmt(self) -> Tree:
        start = self.expect(TT.DO)
        body = self.parse_statement()
        self.expect(TT.WHILE)
        self.expect(TT.LPAR)
        cond = self.parse_expr()
        self.expect(TT.RPAR)
        self.expect(TT.SEMI)
        return self.finish(Tree('do_stmt', [body, cond]), start)

    def parse_for_stmt(self) -> Tree:
        """Parse for (decl-or-initializers; cond; incrementors) body"""
        start = self.expect(TT.FOR)
        self.expect(TT.LPAR)

        decl: Tree = omitted()
        init_start = self.current
        initializers = []
        if not self.check(TT.SEMI):
            if self.looks_like_declaration():
                decl = self.parse_local_declaration()
            else:
                initializers = self.parse_expr_list()
        init_tree = Tree('for_initializers', initializers)
        if initializers:
            self.finish(init_tree, init_start)
        self.expect(TT.SEMI)

        cond: Tree = omitted()
        if not self.check(TT.SEMI):
            cond = self.parse_expr()
        self.expect(TT.SEMI)

        incr_start = self.current
        incrementors = []
        if not self.check(TT.RPAR):
            incrementors = self.parse_expr_list()
        incr_tree = Tree('for_incrementors', incrementors)
        if incrementors:
            self.finish(incr_tree, incr_start)
        self.expect(TT.RPAR)

        body = self.parse_statement()
        return self.finish(Tree('for_stmt', [decl, init_tree, cond, incr_tree, body]), start)

    def parse_expr_list(self) -> List[Tree]:
        exprs = [self.parse_expr()]
        while self.match(TT.COMMA):
            exprs.append(self.parse_expr())
        return exprs

    def parse_foreach_stmt(self) -> Tree:
        start = self.expect(TT.FOREACH)
        self.expect(TT.LPAR)
        type_node = self.parse_type()
        name = self.token(self.expect(TT.IDENT))
        self.expect(TT.IN)
        collection = self.parse_expr()
        self.expect(TT.RPAR)
        body = self.parse_statement()
        return self.finish(Tree('foreach_stmt', [type_node, name, collection, body]), start)

    def parse_jump_with_value(self, label: str) -> Tree:
        start = self.advance()
        if self.match(TT.SEMI):
            return self.finish(Tree(label, []), start)
        value = self.parse_expr()
        self.expect(TT.SEMI)
        return self.finish(Tree(label, [value]), start)

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expr(self) -> Tree:
        """Parse expression (entry point)"""
        if self.is_lambda_start():
            return self.parse_lambda()
        return self.parse_assignment()

    def parse_assignment(self) -> Tree:
        start = self.current
        target = self.parse_conditional()

        if self.check(*self.ASSIGN_OPS):
            op = self.advance()
            value = self.parse_expr()  # Right associative
            return self.finish(Tree('assignment', [target, self.token(op), value]), start)

        return target

    def is_lambda_start(self) -> bool:
        if self.check(TT.IDENT) and self.peek(1).type == TT.ARROW:
            return True

        if not self.check(TT.LPAR):
            return False

        # Scan to the matching paren and look for =>
        depth = 0
        offset = 0
        while True:
            tok = self.peek(offset)
            if tok.type == TT.EOF:
                return False
            if tok.type == TT.LPAR:
                depth += 1
            elif tok.type == TT.RPAR:
                depth -= 1
                if depth == 0:
                    return self.peek(offset + 1).type == TT.ARROW
            offset += 1

    def parse_lambda(self) -> Tree:
        start = self.current

        if self.check(TT.IDENT):
            name_tok = self.advance()
            param = self.finish(
                Tree('parameter', [self.modifiers([]), omitted(), self.token(name_tok)]),
                name_tok,
            )
            self.expect(TT.ARROW)
            body = self.parse_lambda_body()
            return self.finish(Tree('simple_lambda', [param, body]), start)

        params_start = self.expect(TT.LPAR)
        params = []
        if not self.check(TT.RPAR):
            params.append(self.parse_lambda_parameter())
            while self.match(TT.COMMA):
                params.append(self.parse_lambda_parameter())
        self.expect(TT.RPAR)
        param_list = self.finish(Tree('param_list', params), params_start)
        self.expect(TT.ARROW)
        body = self.parse_lambda_body()
        return self.finish(Tree('paren_lambda', [param_list, body]), start)

    def parse_lambda_parameter(self) -> Tree:
        start = self.current
        mods = []
        while self.check(TT.REF, TT.OUT):
            mods.append(self.advance())

        # Untyped: `(a, b) => ...`
        if self.check(TT.IDENT) and self.peek(1).type in (TT.COMMA, TT.RPAR):
            name = self.token(self.advance())
            return self.finish(Tree('parameter', [self.modifiers(mods), omitted(), name]), start)

        type_node = self.parse_type()
        name = self.token(self.expect(TT.IDENT))
        return self.finish(Tree('parameter', [self.modifiers(mods), type_node, name]), start)

    def parse_lambda_body(self) -> Tree:
        if self.check(TT.LBRACE):
            return self.parse_block()
        return self.parse_expr()

    def parse_conditional(self) -> Tree:
        """Parse conditional: cond ? a : b"""
        start = self.current
        cond = self.parse_null_coalescing()

        if self.match(TT.QMARK):
            then_expr = self.parse_expr()
            self.expect(TT.COLON)
            else_expr = self.parse_expr()  # Right associative
            return self.finish(Tree('conditional', [cond, then_expr, else_expr]), start)

        return cond

    def parse_null_coalescing(self) -> Tree:
        """Parse a ?? b (right associative)"""
        start = self.current
        left = self.parse_or_expr()

        if self.check(TT.COALESCE):
            op = self.advance()
            right = self.parse_null_coalescing()
            return self.finish(Tree('binary', [left, self.token(op), right]), start)

        return left

    def parse_binary_level(self, operand, ops: Tuple[TT, ...]) -> Tree:
        """Left associative binary level"""
        start = self.current
        left = operand()

        while self.check(*ops):
            op = self.advance()
            right = operand()
            left = self.finish(Tree('binary', [left, self.token(op), right]), start)

        return left

    def parse_or_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_and_expr, (TT.OROR,))

    def parse_and_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_bitor_expr, (TT.ANDAND,))

    def parse_bitor_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_xor_expr, (TT.PIPE,))

    def parse_xor_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_bitand_expr, (TT.CARET,))

    def parse_bitand_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_equality_expr, (TT.AMP,))

    def parse_equality_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_relational_expr, (TT.EQ, TT.NEQ))

    def parse_relational_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_additive_expr, (TT.LT, TT.GT, TT.LTE, TT.GTE))

    def parse_additive_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_multiplicative_expr, (TT.PLUS, TT.MINUS))

    def parse_multiplicative_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_unary_expr, (TT.STAR, TT.SLASH, TT.MOD))

    def parse_unary_expr(self) -> Tree:
        """Parse unary: !x, -x, +x, ~x, ++x, --x"""
        if self.check(TT.BANG, TT.MINUS, TT.PLUS, TT.TILDE, TT.INCR, TT.DECR):
            op = self.advance()
            operand = self.parse_unary_expr()
            return self.finish(Tree('prefix_unary', [self.token(op), operand]), op)

        return self.parse_postfix_expr()

    def parse_postfix_expr(self) -> Tree:
        """
        Parse postfix expressions:
        - member access: expr.name
        - null-conditional access: expr?.name, expr?[index]
        - indexing: expr[index]
        - calls: expr(args)
        - postfix incr/decr: expr++
        """
        start = self.current
        expr = self.parse_primary_expr()

        while True:
            if self.match(TT.DOT):
                name = self.token(self.expect(TT.IDENT))
                expr = self.finish(Tree('member_access', [expr, name]), start)
            elif self.match(TT.QDOT):
                name = self.token(self.expect(TT.IDENT))
                expr = self.finish(Tree('conditional_access', [expr, name]), start)
            elif self.check(TT.LSQB):
                args = self.parse_arg_list(TT.LSQB, TT.RSQB)
                expr = self.finish(Tree('element_access', [expr, args]), start)
            elif self.check(TT.QLSQB):
                args = self.parse_arg_list(TT.QLSQB, TT.RSQB)
                expr = self.finish(Tree('conditional_element_access', [expr, args]), start)
            elif self.check(TT.LPAR):
                args = self.parse_arg_list(TT.LPAR, TT.RPAR)
                expr = self.finish(Tree('invocation', [expr, args]), start)
            elif self.check(TT.INCR, TT.DECR):
                op = self.advance()
                expr = self.finish(Tree('postfix_unary', [expr, self.token(op)]), start)
            else:
                return expr

    def parse_arg_list(self, open_type: TT, close_type: TT) -> Tree:
        start = self.expect(open_type)
        args = []
        if not self.check(close_type):
            args.append(self.parse_argument())
            while self.match(TT.COMMA):
                args.append(self.parse_argument())
        self.expect(close_type)
        return self.finish(Tree('arglist', args), start)

    def parse_argument(self) -> Tree:
        start = self.current
        if self.check(TT.REF, TT.OUT):
            modifier = self.token(self.advance())
            value = self.parse_expr()
            return self.finish(Tree('argument', [modifier, value]), start)

        value = self.parse_expr()
        return self.finish(Tree('argument', [value]), start)

    def parse_primary_expr(self) -> Tree:
        """Parse primary expressions"""
        tok = self.current

        if self.check(*self.LITERALS):
            self.advance()
            return self.finish(Tree('literal', [self.token(tok)]), tok)

        if self.check(TT.IDENT):
            self.advance()
            return self.finish(Tree('name', [self.token(tok)]), tok)

        if self.check(TT.THIS):
            self.advance()
            return self.finish(Tree('this_access', []), tok)

        if self.check(TT.LPAR):
            self.advance()
            inner = self.parse_expr()
            self.expect(TT.RPAR)
            return self.finish(Tree('paren', [inner]), tok)

        if self.check(TT.NEW):
            return self.parse_new_expr()

        raise ParseError(f"Unexpected token {tok.type.name}", tok)

    def parse_new_expr(self) -> Tree:
        """Parse new T(args), new T[n], new T[] { ... }, new[] { ... }, new T { ... }"""
        start = self.expect(TT.NEW)

        if self.check(TT.LSQB):
            self.advance()
            self.expect(TT.RSQB)
            init = self.parse_array_initializer()
            return self.finish(Tree('array_creation', [omitted(), omitted(), init]), start)

        type_node = self.parse_type(allow_array=False)

        if self.check(TT.LSQB):
            self.advance()
            sizes: Tree = omitted()
            if not self.check(TT.RSQB):
                size_start = self.current
                sizes = self.finish(
                    Tree('arglist', [Tree('argument', [e]) for e in self.parse_expr_list()]),
                    size_start,
                )
            self.expect(TT.RSQB)
            init: Tree = omitted()
            if self.check(TT.LBRACE):
                init = self.parse_array_initializer()
            return self.finish(Tree('array_creation', [type_node, sizes, init]), start)

        args: Tree = omitted()
        if self.check(TT.LPAR):
            args = self.parse_arg_list(TT.LPAR, TT.RPAR)

        init = omitted()
        if self.check(TT.LBRACE):
            init = self.parse_array_initializer()

        if args.data == 'omitted' and init.data == 'omitted':
            raise ParseError("Expected '(' or '{' after type in object creation", self.current)

        return self.finish(Tree('object_creation', [type_node, args, init]), start)

    def parse_array_initializer(self) -> Tree:
        start = self.expect(TT.LBRACE)
        elements = []
        while not self.check(TT.RBRACE):
            elements.append(self.parse_variable_initializer())
            if not self.match(TT.COMMA):
                break
        self.expect(TT.RBRACE)
        return self.finish(Tree('array_initializer', elements), start)


# ============================================================================
# Entry points
# ============================================================================

def parse_source(source: str) -> Tree:
    """
    Parse source code to a compilation_unit tree.

    Args:
        source: Source code to parse
    """
    from .lexer_rd import tokenize

    tokens = tokenize(source)
    parser = Parser(tokens)
    return parser.parse()


def parse_expr_fragment(source: str) -> Tree:
    """
    Parse a standalone expression fragment.
    """
    from .lexer_rd import tokenize

    tokens = tokenize(source)
    parser = Parser(tokens)
    expr = parser.parse_expr()

    # Ensure we've consumed the entire fragment
    if not parser.check(TT.EOF):
        raise ParseError("Unexpected tokens after expression fragment", parser.current)
    return expr


def parse_statement_fragment(source: str) -> Tree:
    """
    Parse a standalone statement fragment.
    """
    from .lexer_rd import tokenize

    tokens = tokenize(source)
    parser = Parser(tokens)
    stmt = parser.parse_statement()

    if not parser.check(TT.EOF):
        raise ParseError("Unexpected tokens after statement fragment", parser.current)
    return stmt
