"""Canonical source printer.

Turns a tree back into source text with Allman braces. Parentheses come only
from `paren` nodes and from precedence: a synthesized tree that nests a
lower-precedence expression under a higher one is printed with the parentheses
the grammar needs to read it back the same way.
"""
from __future__ import annotations

from typing import List

from lark import Tree

from .tree import Node, is_token, tree_label
from .utils import indent_width

# Binding strength, higher binds tighter; mirrors the parser levels
PREC_LAMBDA = 1
PREC_CONDITIONAL = 2
PREC_UNARY = 13
PREC_POSTFIX = 14

BINARY_PRECEDENCE = {
    '??': 3,
    '||': 4,
    '&&': 5,
    '|': 6,
    '^': 7,
    '&': 8,
    '==': 9, '!=': 9,
    '<': 10, '>': 10, '<=': 10, '>=': 10,
    '+': 11, '-': 11,
    '*': 12, '/': 12, '%': 12,
}

RIGHT_ASSOCIATIVE = {'??'}


def precedence(node: Node) -> int:
    label = tree_label(node)
    if label in ('simple_lambda', 'paren_lambda', 'assignment'):
        return PREC_LAMBDA
    if label == 'conditional':
        return PREC_CONDITIONAL
    if label == 'binary':
        return BINARY_PRECEDENCE[str(node.children[1])]
    if label == 'prefix_unary':
        return PREC_UNARY
    return PREC_POSTFIX


class Printer:
    def __init__(self, indent: int | None = None):
        self.unit = ' ' * (indent_width() if indent is None else indent)

    # ========================================================================
    # Entry
    # ========================================================================

    def render(self, node: Node) -> str:
        if is_token(node):
            return str(node)

        label = tree_label(node)
        if label == 'compilation_unit':
            lines: List[str] = []
            for member in node.children:
                lines.extend(self.lines(member, 0))
            return '\n'.join(lines) + '\n' if lines else ''

        if label in STATEMENT_RENDERERS or label in DECLARATION_RENDERERS:
            return '\n'.join(self.lines(node, 0))

        return self.expr(node)

    def lines(self, node: Tree, level: int) -> List[str]:
        label = tree_label(node)
        if label in DECLARATION_RENDERERS:
            return getattr(self, DECLARATION_RENDERERS[label])(node, level)
        return getattr(self, STATEMENT_RENDERERS[label])(node, level)

    def pad(self, level: int) -> str:
        return self.unit * level

    # ========================================================================
    # Declarations
    # ========================================================================

    def using_directive(self, node: Tree, level: int) -> List[str]:
        if len(node.children) == 2:
            return [f"{self.pad(level)}using {node.children[0]} = {self.type_text(node.children[1])};"]
        return [f"{self.pad(level)}using {node.children[0]};"]

    def namespace_decl(self, node: Tree, level: int) -> List[str]:
        out = [f"{self.pad(level)}namespace {node.children[0]}", f"{self.pad(level)}{{"]
        for member in node.children[1:]:
            out.extend(self.lines(member, level + 1))
        out.append(f"{self.pad(level)}}}")
        return out

    def class_decl(self, node: Tree, level: int) -> List[str]:
        mods, name, body = node.children
        out = [f"{self.pad(level)}{self.modifiers_text(mods)}class {name}", f"{self.pad(level)}{{"]
        for member in body.children:
            out.extend(self.lines(member, level + 1))
        out.append(f"{self.pad(level)}}}")
        return out

    def field_decl(self, node: Tree, level: int) -> List[str]:
        return [f"{self.pad(level)}{self.declaration_text(node)};"]

    def property_decl(self, node: Tree, level: int) -> List[str]:
        mods, type_node, name, init = node.children
        text = f"{self.pad(level)}{self.modifiers_text(mods)}{self.type_text(type_node)} {name} {{ get; set; }}"
        if tree_label(init) != 'omitted':
            text += f" = {self.initializer(init)};"
        return [text]

    def method_decl(self, node: Tree, level: int) -> List[str]:
        mods, ret, name, params, body = node.children
        head = self.modifiers_text(mods)
        if tree_label(ret) != 'omitted':
            head += self.type_text(ret) + ' '
        head += f"{name}({self.params_text(params)})"

        label = tree_label(body)
        if label == 'block':
            return [f"{self.pad(level)}{head}"] + self.block(body, level)
        if label == 'arrow_body':
            return [f"{self.pad(level)}{head} => {self.expr(body.children[0])};"]
        return [f"{self.pad(level)}{head};"]

    # ========================================================================
    # Statements
    # ========================================================================

    def block(self, node: Tree, level: int) -> List[str]:
        out = [f"{self.pad(level)}{{"]
        for stmt in node.children:
            out.extend(self.lines(stmt, level + 1))
        out.append(f"{self.pad(level)}}}")
        return out

    def embedded(self, node: Tree, level: int) -> List[str]:
        """Body of if/while/for: blocks align with the header, others indent."""
        if tree_label(node) == 'block':
            return self.block(node, level)
        return self.lines(node, level + 1)

    def local_decl(self, node: Tree, level: int) -> List[str]:
        return [f"{self.pad(level)}{self.declaration_text(node)};"]

    def expr_stmt(self, node: Tree, level: int) -> List[str]:
        return [f"{self.pad(level)}{self.expr(node.children[0])};"]

    def return_stmt(self, node: Tree, level: int) -> List[str]:
        return self.jump(node, level, 'return')

    def throw_stmt(self, node: Tree, level: int) -> List[str]:
        return self.jump(node, level, 'throw')

    def jump(self, node: Tree, level: int, keyword: str) -> List[str]:
        if node.children:
            return [f"{self.pad(level)}{keyword} {self.expr(node.children[0])};"]
        return [f"{self.pad(level)}{keyword};"]

    def break_stmt(self, node: Tree, level: int) -> List[str]:
        return [f"{self.pad(level)}break;"]

    def continue_stmt(self, node: Tree, level: int) -> List[str]:
        return [f"{self.pad(level)}continue;"]

    def empty_stmt(self, node: Tree, level: int) -> List[str]:
        return [f"{self.pad(level)};"]

    def if_stmt(self, node: Tree, level: int, keyword: str = 'if') -> List[str]:
        cond, then_body = node.children[0], node.children[1]
        out = [f"{self.pad(level)}{keyword} ({self.expr(cond)})"]
        out.extend(self.embedded(then_body, level))

        if len(node.children) == 3:
            else_body = node.children[2]
            if tree_label(else_body) == 'if_stmt':
                out.extend(self.if_stmt(else_body, level, 'else if'))
            else:
                out.append(f"{self.pad(level)}else")
                out.extend(self.embedded(else_body, level))
        return out

    def while_stmt(self, node: Tree, level: int) -> List[str]:
        cond, body = node.children
        return [f"{self.pad(level)}while ({self.expr(cond)})"] + self.embedded(body, level)

    def do_stmt(self, node: Tree, level: int) -> List[str]:
        body, cond = node.children
        out = [f"{self.pad(level)}do"]
        out.extend(self.embedded(body, level))
        out.append(f"{self.pad(level)}while ({self.expr(cond)});")
        return out

    def for_stmt(self, node: Tree, level: int) -> List[str]:
        decl, inits, cond, incrs, body = node.children
        if tree_label(decl) != 'omitted':
            init_text = self.declaration_text(decl)
        else:
            init_text = ', '.join(self.expr(e) for e in inits.children)

        header = 'for (' + init_text + ';'
        if tree_label(cond) != 'omitted':
            header += ' ' + self.expr(cond)
        header += ';'
        if incrs.children:
            header += ' ' + ', '.join(self.expr(e) for e in incrs.children)
        header += ')'

        return [f"{self.pad(level)}{header}"] + self.embedded(body, level)

    def foreach_stmt(self, node: Tree, level: int) -> List[str]:
        type_node, name, coll, body = node.children
        header = f"foreach ({self.type_text(type_node)} {name} in {self.expr(coll)})"
        return [f"{self.pad(level)}{header}"] + self.embedded(body, level)

    # ========================================================================
    # Shared pieces
    # ========================================================================

    def modifiers_text(self, mods: Tree) -> str:
        if not mods.children:
            return ''
        return ' '.join(str(tok) for tok in mods.children) + ' '

    def declaration_text(self, node: Tree) -> str:
        """`[mods] T a = 1, b` for local and field declarations."""
        mods, type_node = node.children[0], node.children[1]
        declarators = ', '.join(self.declarator_text(d) for d in node.children[2:])
        return f"{self.modifiers_text(mods)}{self.type_text(type_node)} {declarators}"

    def declarator_text(self, node: Tree) -> str:
        if len(node.children) == 1:
            return str(node.children[0])
        return f"{node.children[0]} = {self.initializer(node.children[1])}"

    def initializer(self, node: Node) -> str:
        return self.expr(node, PREC_LAMBDA)

    def params_text(self, params: Tree) -> str:
        return ', '.join(self.parameter_text(p) for p in params.children)

    def parameter_text(self, node: Tree) -> str:
        mods, type_node, name = node.children
        text = self.modifiers_text(mods)
        if tree_label(type_node) != 'omitted':
            text += self.type_text(type_node) + ' '
        return text + str(name)

    def type_text(self, node: Tree) -> str:
        if tree_label(node) == 'array_type':
            return self.type_text(node.children[0]) + '[]'

        text = str(node.children[0])
        if len(node.children) > 1:
            text += '<' + ', '.join(self.type_text(t) for t in node.children[1].children) + '>'
        return text

    def args_text(self, arglist: Tree) -> str:
        return ', '.join(self.argument_text(a) for a in arglist.children)

    def argument_text(self, node: Tree) -> str:
        if len(node.children) == 2:
            return f"{node.children[0]} {self.expr(node.children[1], PREC_LAMBDA)}"
        return self.expr(node.children[0], PREC_LAMBDA)

    def lambda_body_text(self, body: Node) -> str:
        if tree_label(body) == 'block':
            if not body.children:
                return '{ }'
            inner = []
            for stmt in body.children:
                inner.extend(line.strip() for line in self.lines(stmt, 0))
            return '{ ' + ' '.join(inner) + ' }'
        return self.expr(body, PREC_LAMBDA)

    # ========================================================================
    # Expressions
    # ========================================================================

    def expr(self, node: Node, min_prec: int = PREC_LAMBDA) -> str:
        """Render `node`, parenthesized when it binds looser than `min_prec`."""
        text = self.expr_text(node)
        if precedence(node) < min_prec:
            return f"({text})"
        return text

    def expr_text(self, node: Node) -> str:
        label = tree_label(node)

        match label:
            case 'name':
                return str(node.children[0])
            case 'literal':
                return str(node.children[0])
            case 'this_access':
                return 'this'
            case 'paren':
                return f"({self.expr(node.children[0])})"
            case 'member_access':
                return f"{self.expr(node.children[0], PREC_POSTFIX)}.{node.children[1]}"
            case 'conditional_access':
                return f"{self.expr(node.children[0], PREC_POSTFIX)}?.{node.children[1]}"
            case 'element_access':
                return f"{self.expr(node.children[0], PREC_POSTFIX)}[{self.args_text(node.children[1])}]"
            case 'conditional_element_access':
                return f"{self.expr(node.children[0], PREC_POSTFIX)}?[{self.args_text(node.children[1])}]"
            case 'invocation':
                return f"{self.expr(node.children[0], PREC_POSTFIX)}({self.args_text(node.children[1])})"
            case 'postfix_unary':
                return f"{self.expr(node.children[0], PREC_POSTFIX)}{node.children[1]}"
            case 'prefix_unary':
                return self.prefix_text(node)
            case 'binary':
                return self.binary_text(node)
            case 'assignment':
                target, op, value = node.children
                return f"{self.expr(target, PREC_UNARY)} {op} {self.expr(value, PREC_LAMBDA)}"
            case 'conditional':
                cond, then_expr, else_expr = node.children
                return (
                    f"{self.expr(cond, PREC_CONDITIONAL + 1)} ? "
                    f"{self.expr(then_expr, PREC_CONDITIONAL)} : {self.expr(else_expr, PREC_CONDITIONAL)}"
                )
            case 'simple_lambda':
                return f"{node.children[0].children[2]} => {self.lambda_body_text(node.children[1])}"
            case 'paren_lambda':
                return f"({self.params_text(node.children[0])}) => {self.lambda_body_text(node.children[1])}"
            case 'object_creation':
                return self.object_creation_text(node)
            case 'array_creation':
                return self.array_creation_text(node)
            case 'array_initializer':
                return self.array_initializer_text(node)

        raise ValueError(f"Cannot render node {label!r}")

    def prefix_text(self, node: Tree) -> str:
        op, operand = str(node.children[0]), node.children[1]
        text = self.expr(operand, PREC_UNARY)
        # `- -x` / `+ +x` would lex as `--x` / `++x`
        if op in ('-', '+') and text.startswith(op):
            text = f"({text})"
        return f"{op}{text}"

    def binary_text(self, node: Tree) -> str:
        left, op, right = node.children
        prec = BINARY_PRECEDENCE[str(op)]
        if str(op) in RIGHT_ASSOCIATIVE:
            left_min, right_min = prec + 1, prec
        else:
            left_min, right_min = prec, prec + 1
        return f"{self.expr(left, left_min)} {op} {self.expr(right, right_min)}"

    def object_creation_text(self, node: Tree) -> str:
        type_node, args, init = node.children
        text = f"new {self.type_text(type_node)}"
        if tree_label(args) != 'omitted':
            text += f"({self.args_text(args)})"
        if tree_label(init) != 'omitted':
            text += ' ' + self.array_initializer_text(init)
        return text

    def array_creation_text(self, node: Tree) -> str:
        type_node, sizes, init = node.children
        text = 'new'
        if tree_label(type_node) != 'omitted':
            text += ' ' + self.type_text(type_node)
        if tree_label(sizes) != 'omitted':
            text += f"[{self.args_text(sizes)}]"
        else:
            text += '[]'
        if tree_label(init) != 'omitted':
            text += ' ' + self.array_initializer_text(init)
        return text

    def array_initializer_text(self, node: Tree) -> str:
        if not node.children:
            return '{ }'
        return '{ ' + ', '.join(self.initializer(e) for e in node.children) + ' }'


STATEMENT_RENDERERS = {
    'block': 'block',
    'local_decl': 'local_decl',
    'expr_stmt': 'expr_stmt',
    'return_stmt': 'return_stmt',
    'throw_stmt': 'throw_stmt',
    'if_stmt': 'if_stmt',
    'while_stmt': 'while_stmt',
    'do_stmt': 'do_stmt',
    'for_stmt': 'for_stmt',
    'foreach_stmt': 'foreach_stmt',
    'break_stmt': 'break_stmt',
    'continue_stmt': 'continue_stmt',
    'empty_stmt': 'empty_stmt',
}

DECLARATION_RENDERERS = {
    'using_directive': 'using_directive',
    'namespace_decl': 'namespace_decl',
    'class_decl': 'class_decl',
    'field_decl': 'field_decl',
    'property_decl': 'property_decl',
    'method_decl': 'method_decl',
}


def render(node: Node, indent: int | None = None) -> str:
    """Render a tree, statement or expression as source text."""
    return Printer(indent).render(node)
