from __future__ import annotations

from typing import Optional


class RefactoringError(Exception):
    """Base class for failures raised by the refactoring engine."""

    pass


class InvariantViolation(RefactoringError):
    """A pattern pre-filter and the code consuming its result disagree.

    Raised only for programming defects, e.g. an operator that is not in the
    inversion table reaching the quantifier inverter.
    """

    def __init__(self, message: str, node: Optional[object] = None):
        super().__init__(message)
        self.node = node


class StaleTreeError(RefactoringError):
    def __init__(self, message: str = "Action applied to a tree it was not derived from"):
        super().__init__(message)
