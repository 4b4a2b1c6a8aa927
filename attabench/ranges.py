from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ClosedRange(Generic[T]):
    """An inclusive `lower ... upper` range. Always built through `of()`."""

    lower: T
    upper: T

    @staticmethod
    def of(a: Any, b: Any) -> "ClosedRange[Any]":
        # Endpoints are always replaced together and re-sorted.
        return ClosedRange(a, b) if a <= b else ClosedRange(b, a)

    def __contains__(self, value: object) -> bool:
        return self.lower <= value <= self.upper  # type: ignore[operator]

    def union(self, other: "ClosedRange[T]") -> "ClosedRange[T]":
        return ClosedRange(min(self.lower, other.lower), max(self.upper, other.upper))  # type: ignore[type-var]

    def clamped(self, limits: "ClosedRange[T]") -> "ClosedRange[T]":
        lo = min(max(self.lower, limits.lower), limits.upper)  # type: ignore[type-var]
        hi = min(max(self.upper, limits.lower), limits.upper)  # type: ignore[type-var]
        return ClosedRange(lo, hi)


class Bounds(Generic[T]):
    """Accumulates the smallest range covering everything inserted so far."""

    def __init__(self, initial: ClosedRange[T] | None = None) -> None:
        self.range: ClosedRange[T] | None = initial

    def insert(self, value: T) -> None:
        self.form_union(ClosedRange(value, value))

    def form_union(self, other: ClosedRange[T] | None) -> None:
        if other is None:
            return
        self.range = other if self.range is None else self.range.union(other)

    def __bool__(self) -> bool:
        return self.range is not None

    def __repr__(self) -> str:
        return f"Bounds({self.range!r})"
