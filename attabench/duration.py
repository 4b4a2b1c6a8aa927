from __future__ import annotations

"""Fixed-point durations.

`Time` counts whole picoseconds in a Python int, so sums of millions of tiny
measurements (and their squares) never lose precision. Every division in this
module rounds half up: `floor((2a + b) / 2b)` for a positive divisor.
"""

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation, localcontext

_PS_PER_UNIT: dict[str, int] = {
    "ps": 1,
    "ns": 10**3,
    "µs": 10**6,
    "us": 10**6,
    "ms": 10**9,
    "s": 10**12,
}

# Largest first; used for formatting.
_DISPLAY_UNITS: tuple[tuple[str, int], ...] = (
    ("s", 10**12),
    ("ms", 10**9),
    ("µs", 10**6),
    ("ns", 10**3),
    ("ps", 1),
)

_TIME_RE = re.compile(
    r"^\s*(?P<number>[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)\s*(?P<unit>ps|ns|µs|us|ms|s)?\s*$"
)


def div_round_half_up(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("division of a duration by zero")
    if b < 0:
        a, b = -a, -b
    return (2 * a + b) // (2 * b)


def _decimal_to_ps(value: Decimal, scale: int = 10**12) -> int:
    """Round `value * scale` half up to whole picoseconds.

    Raises ValueError when the result has more digits than the context holds.
    """

    with localcontext() as ctx:
        ctx.prec = 200
        try:
            return int((value * scale).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        except DecimalException as e:
            raise ValueError(f"duration out of range: {value}") from e


@dataclass(frozen=True, order=True)
class Time:
    picoseconds: int

    @staticmethod
    def from_seconds(seconds: float) -> "Time":
        if not math.isfinite(seconds):
            raise ValueError(f"duration must be finite (got {seconds!r})")
        # str() gives the shortest repr, so 0.01 means exactly 10ms.
        return Time(_decimal_to_ps(Decimal(str(seconds))))

    @staticmethod
    def parse(text: str) -> "Time":
        """Parse `"12.5ms"`, `"3s"`, `"250 ns"` or a bare number of seconds."""

        m = _TIME_RE.match(text)
        if m is None:
            raise ValueError(f"invalid duration: {text!r}")
        try:
            number = Decimal(m.group("number"))
        except InvalidOperation as e:  # pragma: no cover - regex already guards this
            raise ValueError(f"invalid duration: {text!r}") from e
        unit = m.group("unit") or "s"
        return Time(_decimal_to_ps(number, _PS_PER_UNIT[unit]))

    @staticmethod
    def order_of_magnitude(exponent: int) -> "Time":
        """10**exponent seconds."""

        if exponent >= -12:
            return Time(10 ** (exponent + 12))
        return Time(div_round_half_up(1, 10 ** (-exponent - 12)))

    @property
    def seconds(self) -> float:
        return self.picoseconds / 10**12

    def __add__(self, other: "Time") -> "Time":
        if not isinstance(other, Time):
            return NotImplemented
        return Time(self.picoseconds + other.picoseconds)

    def __sub__(self, other: "Time") -> "Time":
        if not isinstance(other, Time):
            return NotImplemented
        return Time(self.picoseconds - other.picoseconds)

    def __neg__(self) -> "Time":
        return Time(-self.picoseconds)

    def __mul__(self, factor: int) -> "Time":
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Time(self.picoseconds * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: int) -> "Time":
        if isinstance(divisor, bool) or not isinstance(divisor, int):
            return NotImplemented
        return Time(div_round_half_up(self.picoseconds, divisor))

    def squared(self) -> "TimeSquared":
        return TimeSquared(self.picoseconds * self.picoseconds)

    def __str__(self) -> str:
        """Exact representation; `Time.parse(str(t)) == t` always holds."""

        ps = self.picoseconds
        if ps == 0:
            return "0s"
        sign = "-" if ps < 0 else ""
        ps = abs(ps)
        for unit, scale in _DISPLAY_UNITS:
            if ps >= scale:
                whole, frac = divmod(ps, scale)
                digits = len(str(scale)) - 1
                if frac == 0 or digits == 0:
                    return f"{sign}{whole}{unit}"
                frac_text = str(frac).rjust(digits, "0").rstrip("0")
                return f"{sign}{whole}.{frac_text}{unit}"
        raise AssertionError("unreachable")  # pragma: no cover

    def label(self) -> str:
        """Short (3 significant digits) label for axes and status lines."""

        ps = self.picoseconds
        if ps == 0:
            return "0s"
        magnitude = abs(ps)
        for unit, scale in _DISPLAY_UNITS:
            if magnitude >= scale:
                text = f"{ps / scale:.3g}"
                if "e" in text:
                    text = f"{ps / scale:.0f}"
                return f"{text}{unit}"
        raise AssertionError("unreachable")  # pragma: no cover


@dataclass(frozen=True, order=True)
class TimeSquared:
    """A squared duration in picoseconds²."""

    value: int

    def __add__(self, other: "TimeSquared") -> "TimeSquared":
        if not isinstance(other, TimeSquared):
            return NotImplemented
        return TimeSquared(self.value + other.value)

    def __sub__(self, other: "TimeSquared") -> "TimeSquared":
        if not isinstance(other, TimeSquared):
            return NotImplemented
        return TimeSquared(self.value - other.value)

    def __mul__(self, factor: int) -> "TimeSquared":
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return TimeSquared(self.value * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: int) -> "TimeSquared":
        if isinstance(divisor, bool) or not isinstance(divisor, int):
            return NotImplemented
        return TimeSquared(div_round_half_up(self.value, divisor))

    def square_root(self) -> Time:
        if self.value < 0:
            raise ValueError("square root of a negative squared duration")
        root = math.isqrt(self.value)
        # (root + 1/2)² = root² + root + 1/4
        if self.value - root * root > root:
            root += 1
        return Time(root)

    def __str__(self) -> str:
        return str(self.value)


ZERO = Time(0)
PICOSECOND = Time(1)
NANOSECOND = Time(10**3)
MICROSECOND = Time(10**6)
MILLISECOND = Time(10**9)
SECOND = Time(10**12)
