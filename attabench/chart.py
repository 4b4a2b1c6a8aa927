from __future__ import annotations

"""Chart data selection and scaling.

`build_chart()` is a pure function from tasks and display options to a
`Chart`: curves whose points are already projected into the unit square
(x = size axis, y = time axis). Drawing is left to the renderer.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence

import numpy as np

from attabench.duration import Time
from attabench.ranges import Bounds, ClosedRange
from attabench.result import ResultStore
from attabench.sample import AVERAGE, Band
from attabench.task import Task

_SIZE_SUFFIXES = ("", "K", "M", "G", "T", "P")


def size_label(size: int) -> str:
    """`1024` -> "1K", `1 << 20` -> "1M"; sizes that aren't exact multiples stay numeric."""

    for power in range(len(_SIZE_SUFFIXES) - 1, 0, -1):
        unit = 1 << (10 * power)
        if size >= unit and size % unit == 0:
            return f"{size // unit}{_SIZE_SUFFIXES[power]}"
    return str(size)


class BandIndex(Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


@dataclass
class ChartOptions:
    amortized_time: bool = True
    logarithmic_time: bool = True
    logarithmic_size: bool = True
    bands: dict[BandIndex, Band | None] = field(
        default_factory=lambda: {BandIndex.CENTER: AVERAGE}
    )
    display_size_range: ClosedRange[int] | None = None
    display_all_measured_sizes: bool = True
    display_time_range: ClosedRange[Time] | None = None
    display_all_measured_times: bool = True


@dataclass(frozen=True)
class Tick:
    position: float
    label: str


class ChartScale:
    is_empty = False

    def positions(self, values: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def position(self, value: float) -> float:
        return float(self.positions(np.asarray([value], dtype=float))[0])

    def ticks(self) -> list[Tick]:
        raise NotImplementedError


class EmptyScale(ChartScale):
    """Axis of a chart with nothing to show."""

    is_empty = True

    def positions(self, values: np.ndarray) -> np.ndarray:
        return np.full(np.shape(values), np.nan)

    def ticks(self) -> list[Tick]:
        return []


class LinearScale(ChartScale):
    def __init__(
        self, lo: float, hi: float, *, decimal: bool, labeler: Callable[[float], str]
    ) -> None:
        self.lo = float(lo)
        self.hi = float(hi)
        self.decimal = decimal
        self.labeler = labeler

    def positions(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=float)
        span = self.hi - self.lo
        if span <= 0:
            return np.full(values.shape, 0.5)
        return (values - self.lo) / span

    def _step(self) -> float:
        span = self.hi - self.lo
        if span <= 0:
            return 0.0
        if not self.decimal:
            return float(2 ** max(0, math.ceil(math.log2(span / 10))))
        magnitude = 10 ** math.floor(math.log10(span / 10))
        for factor in (1, 2, 5, 10):
            if span / (factor * magnitude) <= 10:
                return factor * magnitude
        return 10 * magnitude  # pragma: no cover

    def ticks(self) -> list[Tick]:
        step = self._step()
        if step <= 0:
            return [Tick(0.5, self.labeler(self.lo))]
        values = np.arange(math.ceil(self.lo / step), math.floor(self.hi / step) + 1) * step
        return [Tick(float(p), self.labeler(float(v))) for v, p in zip(values, self.positions(values))]


class LogarithmicScale(ChartScale):
    """Log axis expanded to whole powers of the base (10 if decimal, else 2)."""

    def __init__(
        self, lo: float, hi: float, *, decimal: bool, labeler: Callable[[int], str]
    ) -> None:
        self.base = 10.0 if decimal else 2.0
        smallest = 1e-12 if decimal else 1.0
        lo = max(float(lo), smallest)
        hi = max(float(hi), lo)
        self.min_exponent = math.floor(self._log(lo))
        self.max_exponent = math.ceil(self._log(hi))
        if self.max_exponent == self.min_exponent:
            self.max_exponent += 1
        self.labeler = labeler

    def _log(self, value: float) -> float:
        return math.log10(value) if self.base == 10.0 else math.log2(value)

    def positions(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            logs = np.log10(values) if self.base == 10.0 else np.log2(values)
        return (logs - self.min_exponent) / (self.max_exponent - self.min_exponent)

    def ticks(self) -> list[Tick]:
        exponents = range(self.min_exponent, self.max_exponent + 1)
        span = self.max_exponent - self.min_exponent
        return [Tick((e - self.min_exponent) / span, self.labeler(e)) for e in exponents]


@dataclass(frozen=True)
class Curve:
    title: str
    bands: dict[BandIndex, tuple[tuple[float, float], ...]]

    def __getitem__(self, band_index: BandIndex) -> tuple[tuple[float, float], ...]:
        return self.bands.get(band_index, ())


@dataclass(frozen=True)
class Chart:
    title: str
    tasks: tuple[str, ...]
    options: ChartOptions
    curves: tuple[Curve, ...]
    size_scale: ChartScale
    time_scale: ChartScale

    def to_json(self) -> dict[str, Any]:
        def axis(scale: ChartScale) -> dict[str, Any]:
            return {
                "empty": scale.is_empty,
                "ticks": [{"position": t.position, "label": t.label} for t in scale.ticks()],
            }

        return {
            "title": self.title,
            "tasks": list(self.tasks),
            "sizeAxis": axis(self.size_scale),
            "timeAxis": axis(self.time_scale),
            "curves": [
                {
                    "title": c.title,
                    "bands": {bi.value: [list(p) for p in pts] for bi, pts in c.bands.items()},
                }
                for c in self.curves
            ],
        }


def _size_scale(bounds: Bounds[int], logarithmic: bool) -> ChartScale:
    if bounds.range is None:
        return EmptyScale()
    lo, hi = bounds.range.lower, bounds.range.upper
    if logarithmic:
        return LogarithmicScale(lo, hi, decimal=False, labeler=lambda e: size_label(1 << e))
    return LinearScale(lo, hi, decimal=False, labeler=lambda v: size_label(int(v)))


def _time_scale(bounds: Bounds[Time], logarithmic: bool) -> ChartScale:
    if bounds.range is None:
        return EmptyScale()
    lo, hi = bounds.range.lower.seconds, bounds.range.upper.seconds
    if logarithmic:
        return LogarithmicScale(
            lo, hi, decimal=True, labeler=lambda e: Time.order_of_magnitude(e).label()
        )
    return LinearScale(lo, hi, decimal=True, labeler=lambda v: Time.from_seconds(v).label())


def build_chart(tasks: Sequence[Task], options: ChartOptions, *, title: str = "") -> Chart:
    """Chart the checked tasks among `tasks`; unchecked ones are skipped."""

    tasks = [t for t in tasks if t.checked]
    size_bounds: Bounds[int] = Bounds(options.display_size_range)
    time_bounds: Bounds[Time] = Bounds(options.display_time_range)

    raw: list[tuple[str, dict[BandIndex, list[tuple[int, Time]]]]] = []
    for task in tasks:
        bands: dict[BandIndex, list[tuple[int, Time]]] = {}
        for size in sorted(task.samples):
            sample = task.samples[size]
            for band_index in BandIndex:
                band = options.bands.get(band_index)
                if band is None:
                    continue
                t = sample.band_value(band)
                if t is None:
                    continue
                if options.amortized_time:
                    if size == 0:
                        continue
                    t = t / size
                bands.setdefault(band_index, []).append((size, t))
                if options.display_all_measured_sizes:
                    size_bounds.insert(size)
                if options.display_all_measured_times:
                    time_bounds.insert(t)
        raw.append((task.name, bands))

    size_scale = _size_scale(size_bounds, options.logarithmic_size)
    time_scale = _time_scale(time_bounds, options.logarithmic_time)

    curves: list[Curve] = []
    for name, bands in raw:
        projected: dict[BandIndex, tuple[tuple[float, float], ...]] = {}
        for band_index, samples in bands.items():
            xs = size_scale.positions(np.array([s for s, _ in samples], dtype=float))
            ys = time_scale.positions(np.array([t.seconds for _, t in samples], dtype=float))
            keep = np.isfinite(xs) & np.isfinite(ys)
            projected[band_index] = tuple(zip(xs[keep].tolist(), ys[keep].tolist()))
        curves.append(Curve(title=name, bands=projected))

    return Chart(
        title=title,
        tasks=tuple(t.name for t in tasks),
        options=options,
        curves=tuple(curves),
        size_scale=size_scale,
        time_scale=time_scale,
    )


def tasks_to_chart(store: ResultStore, filter: Callable[[Task], bool] | None = None) -> list[Task]:
    """Checked tasks (optionally also passing `filter`), in document order."""

    return [t for t in store.tasks if t.checked and (filter is None or filter(t))]


def chart_options_for(store: ResultStore) -> ChartOptions:
    options = ChartOptions(
        amortized_time=store.amortized_time,
        logarithmic_size=store.logarithmic_size_scale,
        logarithmic_time=store.logarithmic_time_scale,
        bands={
            BandIndex.TOP: store.top_band,
            BandIndex.CENTER: store.center_band,
            BandIndex.BOTTOM: store.bottom_band,
        },
    )

    size_bounds: Bounds[int] = Bounds()
    if store.highlight_selected_size_range:
        size_bounds.form_union(store.selected_size_range())
    if store.display_include_size_scale_range:
        r = store.display_size_scale_range
        size_bounds.form_union(ClosedRange(1 << r.lower, 1 << r.upper))
    options.display_size_range = size_bounds.range
    options.display_all_measured_sizes = store.display_include_all_measured_sizes

    if store.display_include_time_range:
        options.display_time_range = store.display_time_range
    options.display_all_measured_times = store.display_include_all_measured_times
    return options
