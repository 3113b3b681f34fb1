"""Semantic model: symbol binding and type queries over one parsed tree.

A `SemanticModel` binds every name of its root once. Queries take cursors
into that same root object; cursors from any other root raise
`StaleTreeError`, since a rewritten tree needs a fresh model.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Set

from lark import Tree

from . import types as T
from .errors import StaleTreeError
from .syntax import (
    ACCESS_LABELS,
    binary_operator,
    is_var_type,
    member_name,
    parameter_name,
)
from .tree import Cursor, Path, tree_label
from .types import TypeRef


class Symbol:
    """Identity of a declared entity. Two symbols are equal only if identical."""

    __slots__ = ('kind', 'name', 'path', 'type_node', 'members', 'owner')

    def __init__(self, kind: str, name: str, path: Path, type_node: Optional[Tree] = None,
                 owner: Optional[Symbol] = None):
        self.kind = kind  # local | parameter | field | property | method | class
        self.name = name
        self.path = path
        self.type_node = type_node
        self.members: Dict[str, Symbol] = {}
        self.owner = owner

    def __repr__(self) -> str:
        return f"Symbol({self.kind} {self.name} @ {self.path})"


class Env:
    def __init__(self, table: Dict[str, Symbol], parent: Optional[Env] = None):
        self.table = table
        self.parent = parent

    def lookup(self, name: str) -> Optional[Symbol]:
        env: Optional[Env] = self
        while env is not None:
            found = env.table.get(name)
            if found is not None:
                return found
            env = env.parent
        return None


# LINQ operators whose lambda parameter receives the receiver's element type
ELEMENT_LAMBDA_METHODS = {
    'Where', 'Select', 'SelectMany', 'All', 'Any', 'Count', 'First',
    'FirstOrDefault', 'Last', 'LastOrDefault', 'Single', 'SingleOrDefault',
    'OrderBy', 'OrderByDescending', 'ThenBy', 'ThenByDescending', 'Sum', 'Min',
    'Max', 'Average', 'TakeWhile', 'SkipWhile', 'GroupBy', 'ToDictionary',
}

# LINQ operators returning a sequence of the receiver's element type
ELEMENT_PRESERVING_METHODS = {
    'Where', 'OrderBy', 'OrderByDescending', 'ThenBy', 'ThenByDescending',
    'Skip', 'Take', 'SkipWhile', 'TakeWhile', 'Distinct', 'Reverse', 'Concat',
    'Union', 'Intersect', 'Except', 'AsEnumerable',
}

ELEMENT_RETURNING_METHODS = {
    'First', 'FirstOrDefault', 'Last', 'LastOrDefault', 'Single',
    'SingleOrDefault', 'ElementAt', 'ElementAtOrDefault',
}

BOOLEAN_OPERATORS = {'==', '!=', '<', '<=', '>', '>=', '&&', '||'}

NUMERIC_ORDER = ['char', 'int', 'uint', 'long', 'ulong', 'float', 'double', 'decimal']


class SemanticModel:
    def __init__(self, root: Tree):
        self.root = root
        self.classes: Dict[str, Symbol] = {}
        self._declared: Dict[Path, Symbol] = {}
        self._names: Dict[Path, Optional[Symbol]] = {}
        self._tables: Dict[Path, Dict[str, Symbol]] = {}
        self._members: Dict[Path, Optional[Symbol]] = {}
        self._types: Dict[Path, Optional[TypeRef]] = {}
        self._symbol_types: Dict[int, Optional[TypeRef]] = {}
        self._pending: Set[int] = set()

        root_cursor = Cursor(root)
        self._collect_classes(root_cursor)
        self._visit(root_cursor, None)

    # ========================================================================
    # Binding
    # ========================================================================

    def _collect_classes(self, cursor: Cursor, owner: Optional[Symbol] = None) -> None:
        for child in cursor.tree_children():
            if child.label == 'class_decl':
                name = str(child.node.children[1])
                cls = Symbol('class', name, child.path, owner=owner)
                self._declared[child.path] = cls
                self.classes.setdefault(name, cls)
                if owner is not None:
                    owner.members[name] = cls
                self._collect_members(child.child(2), cls)
            elif child.label == 'namespace_decl':
                self._collect_classes(child, owner)

    def _collect_members(self, body: Cursor, cls: Symbol) -> None:
        for member in body.tree_children():
            node = member.node
            match member.label:
                case 'field_decl':
                    for idx, declarator in enumerate(node.children):
                        if tree_label(declarator) != 'declarator':
                            continue
                        sym = Symbol('field', str(declarator.children[0]), member.path + (idx,),
                                     node.children[1], owner=cls)
                        self._declared[sym.path] = sym
                        cls.members[sym.name] = sym
                case 'property_decl':
                    sym = Symbol('property', str(node.children[2]), member.path, node.children[1], owner=cls)
                    self._declared[sym.path] = sym
                    cls.members[sym.name] = sym
                case 'method_decl':
                    ret = node.children[1]
                    if tree_label(ret) == 'omitted':
                        continue  # Constructor
                    sym = Symbol('method', str(node.children[2]), member.path, ret, owner=cls)
                    self._declared[sym.path] = sym
                    cls.members.setdefault(sym.name, sym)
        self._collect_classes(body, cls)

    def _open(self, cursor: Cursor, env: Optional[Env]) -> Env:
        table: Dict[str, Symbol] = {}
        self._tables[cursor.path] = table
        return Env(table, env)

    def _declare(self, env: Env, sym: Symbol) -> None:
        self._declared[sym.path] = sym
        env.table[sym.name] = sym

    def _declare_locals(self, env: Env, decl: Cursor) -> None:
        for idx, declarator in enumerate(decl.node.children):
            if tree_label(declarator) == 'declarator':
                path = decl.path + (idx,)
                self._declare(env, Symbol('local', str(declarator.children[0]), path, decl.node.children[1]))

    def _visit(self, cursor: Cursor, env: Optional[Env]) -> None:
        label = cursor.label
        if label is None:
            return

        match label:
            case 'compilation_unit' | 'namespace_decl':
                scope = self._open(cursor, env)
                for child in cursor.tree_children():
                    if child.label == 'class_decl':
                        scope.table[str(child.node.children[1])] = self._declared[child.path]
                    elif child.label == 'local_decl':
                        self._declare_locals(scope, child)
                self._visit_children(cursor, scope)

            case 'class_decl':
                cls = self._declared[cursor.path]
                self._tables[cursor.path] = cls.members
                self._visit_children(cursor.child(2), Env(cls.members, env))

            case 'method_decl':
                scope = self._open(cursor, env)
                for idx, param in enumerate(cursor.node.children[3].children):
                    path = cursor.path + (3, idx)
                    self._declare(scope, Symbol('parameter', parameter_name(param), path, param.children[1]))
                self._visit(cursor.child(4), scope)

            case 'property_decl':
                self._visit(cursor.child(3), env)

            case 'block':
                scope = self._open(cursor, env)
                for child in cursor.tree_children():
                    if child.label == 'local_decl':
                        self._declare_locals(scope, child)
                self._visit_children(cursor, scope)

            case 'for_stmt':
                scope = self._open(cursor, env)
                decl = cursor.child(0)
                if decl.label == 'local_decl':
                    self._declare_locals(scope, decl)
                self._visit_children(cursor, scope)

            case 'foreach_stmt':
                self._visit(cursor.child(2), env)
                scope = self._open(cursor, env)
                name = str(cursor.node.children[1])
                self._declare(scope, Symbol('local', name, cursor.path, cursor.node.children[0]))
                self._visit(cursor.child(3), scope)

            case 'simple_lambda' | 'paren_lambda':
                scope = self._open(cursor, env)
                if label == 'simple_lambda':
                    params = [(cursor.path + (0,), cursor.node.children[0])]
                else:
                    params = [(cursor.path + (0, idx), p) for idx, p in enumerate(cursor.node.children[0].children)]
                for path, param in params:
                    self._declare(scope, Symbol('parameter', parameter_name(param), path, param.children[1]))
                self._visit(cursor.child(1), scope)

            case 'name':
                name = str(cursor.node.children[0])
                sym = env.lookup(name) if env is not None else None
                self._names[cursor.path] = sym if sym is not None else self.classes.get(name)

            case 'member_access' | 'conditional_access':
                # Member names are resolved lazily through the receiver
                self._visit(cursor.child(0), env)

            case 'type' | 'array_type' | 'parameter' | 'modifiers' | 'using_directive':
                return

            case _:
                self._visit_children(cursor, env)

    def _visit_children(self, cursor: Cursor, env: Optional[Env]) -> None:
        for child in cursor.tree_children():
            self._visit(child, env)

    # ========================================================================
    # Queries
    # ========================================================================

    def _check(self, cursor: Cursor) -> None:
        if cursor.root.node is not self.root:
            raise StaleTreeError("Cursor does not belong to the tree this model was built for")

    def cursor(self, path: Path) -> Cursor:
        return Cursor.at(self.root, path)

    def symbol_of(self, cursor: Cursor) -> Optional[Symbol]:
        """Symbol a name, member access or invocation refers to."""
        self._check(cursor)
        label = cursor.label

        if label == 'name':
            return self._names.get(cursor.path)
        if label in ACCESS_LABELS:
            if cursor.path not in self._members:
                self._members[cursor.path] = self._resolve_member(cursor)
            return self._members[cursor.path]
        if label == 'invocation':
            return self.symbol_of(cursor.child(0))
        return None

    def _resolve_member(self, cursor: Cursor) -> Optional[Symbol]:
        receiver = cursor.child(0)
        name = member_name(cursor.node)

        cls: Optional[Symbol] = None
        if receiver.label == 'this_access':
            cls = self.enclosing_class(cursor)
        else:
            target = self.symbol_of(receiver)
            if target is not None and target.kind == 'class':
                cls = target
            else:
                receiver_type = self.type_of(receiver)
                if receiver_type is not None and not receiver_type.is_array:
                    cls = self.classes.get(T.short_name(receiver_type.name))

        if cls is None:
            return None
        return cls.members.get(name)

    def declared_symbol(self, cursor: Cursor) -> Optional[Symbol]:
        """Symbol introduced by a declarator, parameter, foreach or member declaration."""
        self._check(cursor)
        return self._declared.get(cursor.path)

    def enclosing_class(self, cursor: Cursor) -> Optional[Symbol]:
        for ancestor in cursor.ancestors():
            if ancestor.label == 'class_decl':
                return self._declared.get(ancestor.path)
        return None

    def is_name_bound(self, name: str, position: Cursor) -> bool:
        """Whether `name` would resolve to something when written at `position`."""
        self._check(position)
        current: Optional[Cursor] = position
        while current is not None:
            table = self._tables.get(current.path)
            if table is not None and name in table:
                return True
            current = current.parent

        return name in self.classes or name in T.SPECIAL_TYPES or name in T.WELL_KNOWN_TYPES

    def declares_name_within(self, name: str, within: Cursor) -> bool:
        """Whether any declaration inside `within` introduces `name`."""
        for cursor in within.walk():
            label = cursor.label
            if label == 'declarator' and str(cursor.node.children[0]) == name:
                return True
            if label == 'parameter' and parameter_name(cursor.node) == name:
                return True
            if label == 'foreach_stmt' and str(cursor.node.children[1]) == name:
                return True
        return False

    def references(self, symbol: Symbol, within: Cursor) -> List[Cursor]:
        """Every name or member access under `within` bound to `symbol`."""
        self._check(within)
        found = []
        for cursor in within.walk():
            if cursor.label == 'name' or cursor.label in ACCESS_LABELS:
                if self.symbol_of(cursor) is symbol:
                    found.append(cursor)
        return found

    def is_referenced(self, symbol: Symbol, within: Cursor) -> bool:
        return any(True for _ in self._iter_references(symbol, within))

    def _iter_references(self, symbol: Symbol, within: Cursor) -> Iterator[Cursor]:
        for cursor in within.walk():
            if cursor.label == 'name' and self._names.get(cursor.path) is symbol:
                yield cursor
            elif cursor.label in ACCESS_LABELS and self.symbol_of(cursor) is symbol:
                yield cursor

    # ========================================================================
    # Types
    # ========================================================================

    def symbol_type(self, symbol: Symbol) -> Optional[TypeRef]:
        key = id(symbol)
        if key in self._symbol_types:
            return self._symbol_types[key]
        if key in self._pending:
            return None

        self._pending.add(key)
        try:
            result = self._compute_symbol_type(symbol)
        finally:
            self._pending.discard(key)
        self._symbol_types[key] = result
        return result

    def _compute_symbol_type(self, symbol: Symbol) -> Optional[TypeRef]:
        if symbol.kind == 'class':
            return T.named(symbol.name)

        type_node = symbol.type_node
        if type_node is not None and tree_label(type_node) in ('type', 'array_type') and not is_var_type(type_node):
            return T.type_from_node(type_node)

        declaring = self.cursor(symbol.path)
        if symbol.kind == 'local' and declaring.label == 'declarator':
            if len(declaring.node.children) > 1:
                return self.type_of(declaring.child(1))
            return None

        if symbol.kind == 'local' and declaring.label == 'foreach_stmt':
            return T.element_type(self.type_of(declaring.child(2)))

        if symbol.kind == 'parameter':
            return self._lambda_parameter_type(declaring)

        return None

    def _lambda_parameter_type(self, param: Cursor) -> Optional[TypeRef]:
        lam = param.parent
        if lam is None or lam.label != 'simple_lambda':
            return None

        argument = lam.parent
        if argument is None or argument.label != 'argument':
            return None
        invocation = argument.parent.parent if argument.parent is not None else None
        if invocation is None or invocation.label != 'invocation':
            return None

        callee = invocation.child(0)
        if callee.label not in ACCESS_LABELS or member_name(callee.node) not in ELEMENT_LAMBDA_METHODS:
            return None
        return T.element_type(self.type_of(callee.child(0)))

    def type_of(self, cursor: Cursor) -> Optional[TypeRef]:
        """Static type of an expression, when it can be inferred."""
        self._check(cursor)
        if cursor.path not in self._types:
            self._types[cursor.path] = None  # Break cycles
            self._types[cursor.path] = self._compute_type(cursor)
        return self._types[cursor.path]

    def _compute_type(self, cursor: Cursor) -> Optional[TypeRef]:
        node = cursor.node
        label = cursor.label

        match label:
            case 'literal':
                tok = node.children[0]
                return T.literal_type(tok.type, str(tok))
            case 'name':
                sym = self.symbol_of(cursor)
                return self.symbol_type(sym) if sym is not None else None
            case 'this_access':
                cls = self.enclosing_class(cursor)
                return T.named(cls.name) if cls is not None else None
            case 'paren':
                return self.type_of(cursor.child(0))
            case 'member_access' | 'conditional_access':
                return self._member_type(cursor)
            case 'element_access' | 'conditional_element_access':
                receiver_type = self.type_of(cursor.child(0))
                if receiver_type is not None and T.short_name(receiver_type.name) == 'Dictionary' \
                        and len(receiver_type.args) == 2:
                    return receiver_type.args[1]
                return T.element_type(receiver_type)
            case 'invocation':
                return self._invocation_type(cursor)
            case 'object_creation':
                return T.type_from_node(node.children[0])
            case 'array_creation':
                return self._array_creation_type(cursor)
            case 'binary':
                return self._binary_type(cursor)
            case 'conditional':
                then_type = self.type_of(cursor.child(1))
                else_type = self.type_of(cursor.child(2))
                if then_type is None or then_type == T.NULL:
                    return else_type if else_type != T.NULL else None
                return then_type
            case 'prefix_unary':
                if str(node.children[0]) == '!':
                    return T.BOOL
                operand = self.type_of(cursor.child(1))
                return T.INT if operand == T.CHAR else operand
            case 'postfix_unary':
                return self.type_of(cursor.child(0))
            case 'assignment':
                return self.type_of(cursor.child(0))
        return None

    def _member_type(self, cursor: Cursor) -> Optional[TypeRef]:
        name = member_name(cursor.node)
        sym = self.symbol_of(cursor)
        if sym is not None:
            return self.symbol_type(sym)

        receiver_type = self.type_of(cursor.child(0))
        if name in T.LENGTH_MEMBERS and T.is_collection(receiver_type):
            return T.INT
        return None

    def _invocation_type(self, cursor: Cursor) -> Optional[TypeRef]:
        callee = cursor.child(0)
        args = cursor.node.children[1].children

        if callee.label in ACCESS_LABELS:
            name = member_name(callee.node)
            receiver = callee.child(0)

            if name == 'ToString' and not args:
                return T.STRING

            if receiver.label == 'name' and str(receiver.node.children[0]) == 'Tuple' and name == 'Create':
                if self.symbol_of(receiver) is None and args:
                    arg_types = [self.type_of(Cursor.at(self.root, cursor.path + (1, idx, len(a.children) - 1)))
                                 for idx, a in enumerate(args)]
                    if all(t is not None and t != T.NULL for t in arg_types):
                        return T.named('Tuple', *arg_types)
                return None

            sym = self.symbol_of(callee)
            if sym is not None and sym.kind == 'method':
                return self.symbol_type(sym)

            return self._linq_type(name, self.type_of(receiver))

        sym = self.symbol_of(callee)
        if sym is not None and sym.kind == 'method':
            return self.symbol_type(sym)
        return None

    def _linq_type(self, name: str, receiver_type: Optional[TypeRef]) -> Optional[TypeRef]:
        if not T.is_collection(receiver_type):
            return None

        element = T.element_type(receiver_type)
        if name in ('Count', 'LongCount'):
            return T.INT if name == 'Count' else T.LONG
        if name in ('Any', 'All', 'Contains'):
            return T.BOOL
        if element is None:
            return None
        if name in ELEMENT_PRESERVING_METHODS:
            return T.named('IEnumerable', element)
        if name == 'ToArray':
            return T.array_of(element)
        if name == 'ToList':
            return T.named('List', element)
        if name in ELEMENT_RETURNING_METHODS:
            return element
        return None

    def _array_creation_type(self, cursor: Cursor) -> Optional[TypeRef]:
        type_node, _, init = cursor.node.children
        if tree_label(type_node) != 'omitted':
            element = T.type_from_node(type_node)
            return T.array_of(element) if element is not None else None

        if tree_label(init) == 'array_initializer' and init.children:
            element = self.type_of(cursor.child(2).child(0))
            if element is not None and element != T.NULL:
                return T.array_of(element)
        return None

    def _binary_type(self, cursor: Cursor) -> Optional[TypeRef]:
        op = binary_operator(cursor.node)
        if op in BOOLEAN_OPERATORS:
            return T.BOOL

        left = self.type_of(cursor.child(0))
        right = self.type_of(cursor.child(2))

        if op == '??':
            return left if left is not None and left != T.NULL else right

        if op == '+' and (left == T.STRING or right == T.STRING):
            return T.STRING

        if left is None or right is None:
            return None
        if left == right and left != T.CHAR:
            return left
        if left.name in NUMERIC_ORDER and right.name in NUMERIC_ORDER and not left.args and not right.args:
            wider = max(NUMERIC_ORDER.index(left.name), NUMERIC_ORDER.index(right.name), 1)
            return T.named(NUMERIC_ORDER[wider])
        if left == right:
            return left
        return None
