from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

BASE_DIR = Path(__file__).resolve().parent.parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))

from lark import Tree

from chainsmith.actions import Action
from chainsmith.parser_rd import parse_source
from chainsmith.printer import render
from chainsmith.semantic import SemanticModel, Symbol
from chainsmith.syntax import find_parent_statement, is_statement
from chainsmith.tree import Cursor, find_node


@dataclass
class Workspace:
    """A parsed source together with its semantic model."""

    source: str
    root: Tree
    model: SemanticModel

    @property
    def top(self) -> Cursor:
        return Cursor(self.root)

    def span_of(self, snippet: str) -> tuple[int, int]:
        start = self.source.index(snippet)
        return start, start + len(snippet)

    def node_at(self, snippet: str) -> Cursor:
        start, end = self.span_of(snippet)
        return find_node(self.root, start, end)

    def statement_at(self, snippet: str) -> Cursor:
        """Innermost statement around the first occurrence of `snippet`."""
        statement = find_parent_statement(self.node_at(snippet))
        assert statement is not None, f"no statement around {snippet!r}"
        return statement

    def first(self, label: str, nth: int = 0) -> Cursor:
        found = [c for c in self.top.walk() if c.label == label]
        assert len(found) > nth, f"fewer than {nth + 1} {label!r} nodes"
        return found[nth]

    def statements(self) -> List[Cursor]:
        return [c for c in self.top.walk() if is_statement(c)]

    def local(self, name: str) -> Symbol:
        """Symbol of the first local declarator spelled `name`."""
        for cursor in self.top.walk():
            if cursor.label == 'declarator' and str(cursor.node.children[0]) == name:
                symbol = self.model.declared_symbol(cursor)
                assert symbol is not None
                return symbol
        raise AssertionError(f"no declarator {name!r}")

    def names(self, text: str) -> List[Cursor]:
        return [
            c for c in self.top.walk()
            if c.label == 'name' and str(c.node.children[0]) == text
        ]

    def apply(self, action: Action) -> str:
        return render(action(self.root))


def load(source: str) -> Workspace:
    root = parse_source(source)
    return Workspace(source, root, SemanticModel(root))


def canonical(source: str) -> str:
    """Printer output for `source`; refactoring results are compared against it."""
    return render(parse_source(source))


def in_method(body: str, params: str = "", members: str = "") -> str:
    """Wrap statements in `class C { void M(params) { body } }`."""
    return f"class C\n{{\n{members}\n    void M({params})\n    {{\n{body}\n    }}\n}}\n"


def refactor_statement(refactoring, source: str, snippet: Optional[str] = None) -> Optional[str]:
    """Run `refactoring` on the statement around `snippet` (default: first statement)."""
    ws = load(source)
    statement = ws.statement_at(snippet) if snippet is not None else ws.statements()[0]
    action = refactoring.try_get_action(statement, ws.model)
    if action is None:
        return None
    return ws.apply(action)
