"""Property predicates used by ``has()`` filters."""

from __future__ import annotations

from typing import Any, Callable


class P:
    """A named comparison applied to a single property value.

    Usage:
        traversal.has("rating", P.gt(5))
        traversal.has("age", P.between(18, 30))

    A missing property (None) never satisfies a predicate.
    """

    def __init__(self, name: str, test: Callable[[Any], bool], *args: Any):
        self.name = name
        self.args = args
        self._test = test

    def __call__(self, value: Any) -> bool:
        return self.test(value)

    def __repr__(self) -> str:
        return f"{self.name}({', '.join(repr(a) for a in self.args)})"

    def test(self, value: Any) -> bool:
        if value is None:
            return False
        try:
            return bool(self._test(value))
        except TypeError:
            return False

    @classmethod
    def eq(cls, other: Any) -> "P":
        return cls("eq", lambda v: v == other, other)

    @classmethod
    def neq(cls, other: Any) -> "P":
        return cls("neq", lambda v: v != other, other)

    @classmethod
    def gt(cls, bound: Any) -> "P":
        return cls("gt", lambda v: v > bound, bound)

    @classmethod
    def gte(cls, bound: Any) -> "P":
        return cls("gte", lambda v: v >= bound, bound)

    @classmethod
    def lt(cls, bound: Any) -> "P":
        return cls("lt", lambda v: v < bound, bound)

    @classmethod
    def lte(cls, bound: Any) -> "P":
        return cls("lte", lambda v: v <= bound, bound)

    @classmethod
    def between(cls, low: Any, high: Any) -> "P":
        """Inclusive on both ends."""
        return cls("between", lambda v: low <= v <= high, low, high)

    @classmethod
    def within(cls, *values: Any) -> "P":
        members = set(values)
        return cls("within", lambda v: v in members, *values)

    @classmethod
    def without(cls, *values: Any) -> "P":
        members = set(values)
        return cls("without", lambda v: v not in members, *values)


def as_predicate(value: Any) -> P:
    """Wrap a plain value as an equality predicate; predicates pass through."""
    if isinstance(value, P):
        return value
    return P.eq(value)
