from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .semantic import SemanticModel, Symbol
from .syntax import argument_modifier
from .tree import Cursor


@dataclass
class Layer:
    """One call of a composed body; `hole` is the argument holding the next layer."""

    invocation: Cursor
    hole: Optional[int] = None


class FunctionCompositionChecker:
    """Decides whether a lambda body such as `h(g(f(x)))` is a plain composition.

    Every layer must take at most one invocation argument; the layer above a
    nested call may not mention the parameter anywhere but inside that call,
    neither in its callee nor in its other arguments.
    """

    def __init__(self, parameter: Symbol, model: SemanticModel):
        self.parameter = parameter
        self.model = model

    def references_parameter(self, cursor: Cursor) -> bool:
        return self.model.is_referenced(self.parameter, cursor)

    def layers(self, body: Cursor) -> Optional[List[Layer]]:
        """Layers innermost first, or None when `body` is not a composition."""
        stack: List[Layer] = []
        current = body

        while True:
            if current.label != 'invocation':
                return None
            if self.references_parameter(current.child(0)):
                return None

            arguments = current.child(1).children()
            if any(argument_modifier(arg.node) is not None for arg in arguments):
                return None

            expressions = [arg.child(len(arg.node.children) - 1) for arg in arguments]
            nested = [idx for idx, expr in enumerate(expressions) if expr.label == 'invocation']
            if len(nested) > 1:
                return None

            if nested and self.references_parameter(expressions[nested[0]]):
                hole = nested[0]
                others = [expr for idx, expr in enumerate(expressions) if idx != hole]
                if any(self.references_parameter(expr) for expr in others):
                    return None
                stack.append(Layer(current, hole))
                current = expressions[hole]
                continue

            stack.append(Layer(current))
            break

        stack.reverse()
        return stack
