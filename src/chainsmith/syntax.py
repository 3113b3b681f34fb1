"""Node factory and structural predicates over the chainsmith AST.

Factories build fresh nodes without span metadata. Accessors name the child
positions fixed by the parser so refactorings never index children directly.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from lark import Token, Tree

from .lexer_rd import Lexer
from .tree import Cursor, Node, is_token, is_tree, tree_label

# ---------- Label tables ----------

STATEMENT_LABELS = {
    'block', 'local_decl', 'expr_stmt', 'return_stmt', 'throw_stmt', 'if_stmt',
    'while_stmt', 'do_stmt', 'for_stmt', 'foreach_stmt', 'break_stmt',
    'continue_stmt', 'empty_stmt',
}

BLOCK_LIKE_LABELS = {'block', 'compilation_unit'}

LAMBDA_LABELS = {'simple_lambda', 'paren_lambda'}

ACCESS_LABELS = {'member_access', 'conditional_access'}

# Nodes that continue a postfix chain through their first child
POSTFIX_LABELS = {
    'member_access', 'conditional_access', 'element_access',
    'conditional_element_access', 'invocation',
}

CONDITIONAL_LABELS = {'conditional_access', 'conditional_element_access'}

COMPARISON_OPERATORS = {'==', '!=', '<', '<=', '>', '>='}

# Spelling -> token type, taken from the lexer so both always agree
OPERATOR_TOKEN_TYPES = {op: tt.name for op, tt in Lexer.OPERATORS}


# ---------- Predicates and accessors ----------

def is_statement(cursor: Cursor) -> bool:
    if cursor.label not in STATEMENT_LABELS:
        return False
    # The declaration in a for header is not a statement of its own
    parent = cursor.parent
    return not (cursor.label == 'local_decl' and parent is not None and parent.label == 'for_stmt')

def find_parent_statement(cursor: Cursor) -> Optional[Cursor]:
    """Nearest statement at or above `cursor`."""
    current: Optional[Cursor] = cursor
    while current is not None:
        if is_statement(current):
            return current
        current = current.parent
    return None

def in_lambda(cursor: Cursor, stop: Optional[Cursor] = None) -> bool:
    """True when a lambda lies between `cursor` and `stop` (exclusive)."""
    for ancestor in cursor.ancestors():
        if stop is not None and ancestor == stop:
            return False
        if ancestor.label in LAMBDA_LABELS:
            return True
    return False

def name_text(node: Node) -> Optional[str]:
    if tree_label(node) == 'name':
        return str(node.children[0])
    return None

def member_receiver(node: Tree) -> Node:
    return node.children[0]

def member_name(node: Tree) -> str:
    return str(node.children[1])

def invocation_callee(node: Tree) -> Node:
    return node.children[0]

def invocation_arguments(node: Tree) -> List[Tree]:
    """Argument nodes of an invocation or element access."""
    return list(node.children[1].children)

def argument_expression(argument: Tree) -> Node:
    return argument.children[-1]

def argument_modifier(argument: Tree) -> Optional[str]:
    if len(argument.children) == 2:
        return str(argument.children[0])
    return None

def binary_operator(node: Tree) -> str:
    return str(node.children[1])

def binary_left(node: Tree) -> Node:
    return node.children[0]

def binary_right(node: Tree) -> Node:
    return node.children[2]

def is_binary(node: Node, *operators: str) -> bool:
    return tree_label(node) == 'binary' and binary_operator(node) in operators

def unary_operator(node: Tree) -> str:
    if tree_label(node) == 'prefix_unary':
        return str(node.children[0])
    return str(node.children[1])

def unary_operand(node: Tree) -> Node:
    if tree_label(node) == 'prefix_unary':
        return node.children[1]
    return node.children[0]

def is_negation(node: Node) -> bool:
    return tree_label(node) == 'prefix_unary' and unary_operator(node) == '!'

def literal_kind(node: Tree) -> str:
    return node.children[0].type

def is_null_literal(node: Node) -> bool:
    return tree_label(node) == 'literal' and literal_kind(node) == 'NULL'

def lambda_body(node: Tree) -> Node:
    return node.children[1]

def parameter_name(parameter: Tree) -> str:
    return str(parameter.children[2])

def simple_lambda_parameter_name(node: Tree) -> str:
    return parameter_name(node.children[0])

def declarator_initializer(declarator: Tree) -> Optional[Node]:
    if len(declarator.children) > 1:
        return declarator.children[1]
    return None

def decl_modifiers(node: Tree) -> List[str]:
    return [str(tok) for tok in node.children[0].children]

def decl_type(node: Tree) -> Tree:
    """Declared type of a local_decl / field_decl."""
    return node.children[1]

def decl_declarators(node: Tree) -> List[Tree]:
    return [ch for ch in node.children[2:] if tree_label(ch) == 'declarator']

def is_var_type(node: Node) -> bool:
    return (
        tree_label(node) == 'type'
        and len(node.children) == 1
        and str(node.children[0]) == 'var'
    )

def postfix_spine(node: Node) -> List[Node]:
    """Receiver chain of a postfix expression, outermost first."""
    spine = [node]
    while tree_label(spine[-1]) in POSTFIX_LABELS:
        spine.append(spine[-1].children[0])
    return spine

def is_simple_member_path(node: Node) -> bool:
    """Names, `this` and plain member accesses over them."""
    label = tree_label(node)
    if label in ('name', 'this_access'):
        return True
    if label == 'member_access':
        return is_simple_member_path(member_receiver(node))
    return False


# ---------- Factory ----------

def make_ident(name: str) -> Token:
    return Token('IDENT', name)

def make_operator(op: str) -> Token:
    return Token(OPERATOR_TOKEN_TYPES[op], op)

def make_name(name: str) -> Tree:
    return Tree('name', [make_ident(name)])

def make_literal(kind: str, text: str) -> Tree:
    return Tree('literal', [Token(kind, text)])

def make_int_literal(value: int) -> Tree:
    return make_literal('NUMBER', str(value))

def make_member_access(receiver: Node, name: str) -> Tree:
    return Tree('member_access', [receiver, make_ident(name)])

def make_argument(expr: Node, modifier: Optional[str] = None) -> Tree:
    if modifier is None:
        return Tree('argument', [expr])
    return Tree('argument', [Token(modifier.upper(), modifier), expr])

def make_arglist(exprs: Iterable[Node]) -> Tree:
    return Tree('arglist', [make_argument(e) for e in exprs])

def make_invocation(callee: Node, args: Sequence[Node] = ()) -> Tree:
    return Tree('invocation', [callee, make_arglist(args)])

def make_element_access(receiver: Node, indices: Sequence[Node]) -> Tree:
    return Tree('element_access', [receiver, make_arglist(indices)])

def make_parameter(name: str) -> Tree:
    return Tree('parameter', [Tree('modifiers', []), Tree('omitted', []), make_ident(name)])

def make_simple_lambda(parameter: str, body: Node) -> Tree:
    return Tree('simple_lambda', [make_parameter(parameter), body])

def make_binary(left: Node, op: str, right: Node) -> Tree:
    return Tree('binary', [left, make_operator(op), right])

def make_paren(expr: Node) -> Tree:
    return Tree('paren', [expr])

def make_not(expr: Node) -> Tree:
    return Tree('prefix_unary', [make_operator('!'), expr])

def make_postfix_increment(expr: Node) -> Tree:
    return Tree('postfix_unary', [expr, make_operator('++')])

def make_type(name: str, args: Sequence[Tree] = ()) -> Tree:
    children: List[Node] = [make_ident(name)]
    if args:
        children.append(Tree('type_args', list(args)))
    return Tree('type', children)

def make_var_type() -> Tree:
    return make_type('var')

def make_declarator(name: str, init: Optional[Node] = None) -> Tree:
    children: List[Node] = [make_ident(name)]
    if init is not None:
        children.append(init)
    return Tree('declarator', children)

def make_local_decl(type_node: Tree, name: str, init: Optional[Node] = None) -> Tree:
    return Tree('local_decl', [Tree('modifiers', []), type_node, make_declarator(name, init)])

def make_block(statements: Sequence[Node]) -> Tree:
    return Tree('block', list(statements))

def make_for_stmt(decl: Tree, condition: Node, incrementors: Sequence[Node], body: Node) -> Tree:
    return Tree('for_stmt', [
        decl,
        Tree('for_initializers', []),
        condition,
        Tree('for_incrementors', list(incrementors)),
        body,
    ])

def make_foreach_stmt(type_node: Tree, name: str, collection: Node, body: Node) -> Tree:
    return Tree('foreach_stmt', [type_node, make_ident(name), collection, body])

def make_invocation_with_lambda_argument(callee: Node, parameter: str, body: Node) -> Tree:
    """`callee(p => body)`, eta-reduced to `callee(f)` when body is `f(p)`.

    The reduction only applies when `f` is a plain member path that does not
    mention `p`, so that evaluating `f` once up front cannot change meaning.
    """
    if tree_label(body) == 'invocation':
        target = invocation_callee(body)
        args = invocation_arguments(body)
        if (
            len(args) == 1
            and argument_modifier(args[0]) is None
            and name_text(argument_expression(args[0])) == parameter
            and is_simple_member_path(target)
            and not mentions_name(target, parameter)
        ):
            return make_invocation(callee, [target])

    return make_invocation(callee, [make_simple_lambda(parameter, body)])

def mentions_name(node: Node, name: str) -> bool:
    """Spelling check: any `name` node spelled `name` below `node`."""
    if is_token(node):
        return False
    if name_text(node) == name:
        return True
    return any(mentions_name(ch, name) for ch in node.children if is_tree(ch))
