from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from lark import Tree

from .syntax import make_type
from .tree import tree_label

# ---------- Type model ----------

@dataclass(frozen=True)
class TypeRef:
    """A resolved type: `name<args>` or, for arrays, `element[]`."""

    name: str
    args: Tuple[TypeRef, ...] = ()
    element: Optional[TypeRef] = None

    @property
    def is_array(self) -> bool:
        return self.element is not None

    def display(self) -> str:
        if self.element is not None:
            return self.element.display() + '[]'
        if self.args:
            return f"{self.name}<{', '.join(a.display() for a in self.args)}>"
        return self.name

    def __repr__(self) -> str:
        return f"TypeRef({self.display()})"


def named(name: str, *args: TypeRef) -> TypeRef:
    return TypeRef(name, tuple(args))

def array_of(element: TypeRef) -> TypeRef:
    return TypeRef('', (), element)


INT = named('int')
LONG = named('long')
BOOL = named('bool')
STRING = named('string')
CHAR = named('char')
DOUBLE = named('double')
FLOAT = named('float')
DECIMAL = named('decimal')
UINT = named('uint')
ULONG = named('ulong')
OBJECT = named('object')
NULL = named('null')  # Type of the `null` literal; never displayed

# ---------- Tables ----------

INTEGRAL_TYPES = {
    'sbyte', 'byte', 'short', 'ushort', 'int', 'uint', 'long', 'ulong', 'char',
    'Int16', 'Int32', 'Int64', 'UInt16', 'UInt32', 'UInt64', 'Byte', 'SByte',
    'System.Int32', 'System.Int64',
}

SPECIAL_TYPES = {
    'bool', 'byte', 'sbyte', 'char', 'decimal', 'double', 'float', 'int',
    'uint', 'long', 'ulong', 'object', 'short', 'ushort', 'string', 'void',
    'dynamic',
}

# Predefined names that resolve as type or static receivers
WELL_KNOWN_TYPES = {
    'Console', 'Math', 'Tuple', 'String', 'Enumerable', 'Convert', 'Object',
    'Int32', 'Int64', 'Boolean', 'Double', 'Char', 'Array', 'Environment',
    'Exception', 'ArgumentException', 'ArgumentNullException',
    'InvalidOperationException', 'NotImplementedException', 'System',
    'List', 'IList', 'IEnumerable', 'Dictionary', 'HashSet',
}


@dataclass(frozen=True)
class CollectionInfo:
    count_member: Optional[str]
    indexable: bool


COLLECTION_TYPES = {
    'List': CollectionInfo('Count', True),
    'IList': CollectionInfo('Count', True),
    'IReadOnlyList': CollectionInfo('Count', True),
    'Collection': CollectionInfo('Count', True),
    'ReadOnlyCollection': CollectionInfo('Count', True),
    'ICollection': CollectionInfo('Count', False),
    'IReadOnlyCollection': CollectionInfo('Count', False),
    'HashSet': CollectionInfo('Count', False),
    'SortedSet': CollectionInfo('Count', False),
    'Queue': CollectionInfo('Count', False),
    'Stack': CollectionInfo('Count', False),
    'LinkedList': CollectionInfo('Count', False),
    'Dictionary': CollectionInfo('Count', False),
    'IEnumerable': CollectionInfo(None, False),
}

LENGTH_MEMBERS = ('Length', 'Count')


def short_name(name: str) -> str:
    """`System.Collections.Generic.List` -> `List`."""
    return name.rsplit('.', 1)[-1]

def is_integral(t: Optional[TypeRef]) -> bool:
    return t is not None and not t.is_array and not t.args and t.name in INTEGRAL_TYPES

def is_special(t: Optional[TypeRef]) -> bool:
    return t is not None and not t.is_array and t.name in SPECIAL_TYPES

def collection_info(t: Optional[TypeRef]) -> Optional[CollectionInfo]:
    if t is None:
        return None
    if t.is_array:
        return CollectionInfo('Length', True)
    if t.name == 'string':
        return CollectionInfo('Length', True)
    return COLLECTION_TYPES.get(short_name(t.name))

def is_collection(t: Optional[TypeRef]) -> bool:
    return collection_info(t) is not None

def element_type(t: Optional[TypeRef]) -> Optional[TypeRef]:
    """Element type of an array, string or generic collection."""
    if t is None:
        return None
    if t.element is not None:
        return t.element
    if t.name == 'string':
        return CHAR

    info = COLLECTION_TYPES.get(short_name(t.name))
    if info is None:
        return None
    if short_name(t.name) == 'Dictionary' and len(t.args) == 2:
        return named('KeyValuePair', *t.args)
    if len(t.args) == 1:
        return t.args[0]
    return None

def length_member(t: Optional[TypeRef]) -> Optional[str]:
    """`Length` for arrays, `Count` for indexable collections, else None."""
    info = collection_info(t)
    if info is None or not info.indexable:
        return None
    return info.count_member

# ---------- Syntax conversion ----------

def type_from_node(node: Tree) -> Optional[TypeRef]:
    """TypeRef for a `type` / `array_type` node; `var` has no type of its own."""
    label = tree_label(node)
    if label == 'array_type':
        inner = type_from_node(node.children[0])
        return array_of(inner) if inner is not None else None
    if label != 'type':
        return None

    name = str(node.children[0])
    if name == 'var':
        return None

    args: Tuple[TypeRef, ...] = ()
    if len(node.children) > 1:
        converted = [type_from_node(t) for t in node.children[1].children]
        if any(a is None for a in converted):
            return None
        args = tuple(converted)
    return TypeRef(name, args)

def type_node_from_ref(t: TypeRef) -> Tree:
    if t.element is not None:
        return Tree('array_type', [type_node_from_ref(t.element)])
    return make_type(t.name, [type_node_from_ref(a) for a in t.args])

# ---------- Literal typing ----------

def literal_type(kind: str, text: str) -> Optional[TypeRef]:
    match kind:
        case 'STRING':
            return STRING
        case 'CHAR':
            return CHAR
        case 'TRUE' | 'FALSE':
            return BOOL
        case 'NULL':
            return NULL
        case 'NUMBER':
            return number_literal_type(text)
    return None

def number_literal_type(text: str) -> TypeRef:
    lowered = text.lower()
    if lowered.startswith('0x'):
        suffix = ''.join(ch for ch in lowered[2:] if ch in 'ul')
        lowered_body = ''
    else:
        suffix = ''
        while lowered and lowered[-1] in 'fdmlu':
            suffix = lowered[-1] + suffix
            lowered = lowered[:-1]
        lowered_body = lowered

    if 'f' in suffix:
        return FLOAT
    if 'd' in suffix:
        return DOUBLE
    if 'm' in suffix:
        return DECIMAL
    if 'u' in suffix and 'l' in suffix:
        return ULONG
    if 'l' in suffix:
        return LONG
    if 'u' in suffix:
        return UINT
    if '.' in lowered_body or 'e' in lowered_body:
        return DOUBLE
    return INT
