"""Refactoring orchestrators: each finds its pattern and returns an Action or None."""

__all__ = [
    "where",
    "select",
    "quantifiers",
    "loops",
    "calls",
    "declarations",
    "tuples",
]
