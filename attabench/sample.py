from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from attabench.duration import ZERO, Time, TimeSquared
from attabench.errors import ResultFormatError
from attabench.ranges import ClosedRange

_SIGMA_RE = re.compile(r"^(\d+)sigma$", re.ASCII)
_NAMED_BANDS = ("maximum", "minimum", "average", "count")


@dataclass(frozen=True)
class Band:
    """A statistic extracted from a TimeSample.

    `kind` is one of "maximum", "minimum", "average", "count" or "sigma";
    `k` is only meaningful for sigma bands (average + k standard deviations).
    """

    kind: str
    k: int = 0

    @staticmethod
    def sigma(k: int) -> "Band":
        if k < 0:
            raise ValueError(f"sigma band multiplier must be >= 0 (got {k})")
        return Band("sigma", k)

    @staticmethod
    def parse(text: str) -> "Band":
        if text in _NAMED_BANDS:
            return Band(text)
        m = _SIGMA_RE.match(text)
        if m is None:
            raise ValueError(f"invalid band: {text!r}")
        return Band.sigma(int(m.group(1)))

    def __str__(self) -> str:
        if self.kind == "sigma":
            return f"{self.k}sigma"
        return self.kind


MAXIMUM = Band("maximum")
MINIMUM = Band("minimum")
AVERAGE = Band("average")
COUNT = Band("count")


class TimeSample:
    """Sufficient statistics for one (task, size) cell.

    Individual measurements are never stored: count, minimum, maximum, sum
    and sum of squares are enough to derive the mean and the variance.
    """

    __slots__ = ("count", "minimum", "maximum", "sum", "sum_squared")

    def __init__(
        self,
        *,
        count: int,
        minimum: Time,
        maximum: Time,
        sum: Time,
        sum_squared: TimeSquared,
    ) -> None:
        self.count = count
        self.minimum = minimum
        self.maximum = maximum
        self.sum = sum
        self.sum_squared = sum_squared

    @staticmethod
    def from_time(time: Time) -> "TimeSample":
        return TimeSample(
            count=1,
            minimum=time,
            maximum=time,
            sum=time,
            sum_squared=time.squared(),
        )

    def add_measurement(self, time: Time) -> None:
        self.minimum = min(self.minimum, time)
        self.maximum = max(self.maximum, time)
        self.sum += time
        self.sum_squared += time.squared()
        self.count += 1

    def add_sample(self, other: "TimeSample") -> None:
        self.minimum = min(self.minimum, other.minimum)
        self.maximum = max(self.maximum, other.maximum)
        self.count += other.count
        self.sum += other.sum
        self.sum_squared += other.sum_squared

    @property
    def average(self) -> Time | None:
        if self.count == 0:
            return None
        return self.sum / self.count

    @property
    def standard_deviation(self) -> Time | None:
        """Unbiased sample standard deviation; None below two measurements."""

        if self.count < 2:
            return None
        c = self.count
        variance = (self.sum_squared * c - self.sum.squared()) / (c * (c - 1))
        return variance.square_root()

    def band_value(self, band: Band) -> Time | None:
        if band.kind == "maximum":
            return self.maximum
        if band.kind == "minimum":
            return self.minimum
        if band.kind == "average":
            return self.average
        if band.kind == "count":
            return Time.from_seconds(float(self.count))
        if band.kind == "sigma":
            average = self.average
            if average is None:
                return None
            return average + band.k * (self.standard_deviation or ZERO)
        raise ValueError(f"unknown band kind: {band.kind!r}")

    def bounds(self, bands: Iterable[Band]) -> ClosedRange[Time] | None:
        times = [t for t in (self.band_value(b) for b in bands) if t is not None]
        if not times:
            return None
        return ClosedRange(min(times), max(times))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeSample):
            return NotImplemented
        return (
            self.count == other.count
            and self.minimum == other.minimum
            and self.maximum == other.maximum
            and self.sum == other.sum
            and self.sum_squared == other.sum_squared
        )

    def __repr__(self) -> str:
        return (
            f"TimeSample(count={self.count}, minimum={self.minimum}, "
            f"maximum={self.maximum}, average={self.average})"
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "minimum": str(self.minimum),
            "maximum": str(self.maximum),
            "count": self.count,
            "sum": str(self.sum),
            "sumSquared": str(self.sum_squared),
        }

    @staticmethod
    def from_json(obj: dict[str, Any]) -> "TimeSample":
        try:
            count = int(obj["count"])
            sample = TimeSample(
                count=count,
                minimum=Time.parse(str(obj["minimum"])),
                maximum=Time.parse(str(obj["maximum"])),
                sum=Time.parse(str(obj["sum"])),
                sum_squared=TimeSquared(int(str(obj["sumSquared"]))),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResultFormatError(f"invalid time sample: {e}") from e
        if count <= 0:
            raise ResultFormatError(f"time sample has negative or empty count ({count})")
        return sample
