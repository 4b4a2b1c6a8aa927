from __future__ import annotations

from typing import Any, Callable

from attabench.duration import Time
from attabench.errors import ResultFormatError
from attabench.ranges import ClosedRange
from attabench.sample import Band, TimeSample

MeasurementListener = Callable[["Task", int, Time], None]


class Task:
    """A named benchmark subject with one TimeSample per measured size.

    Identity is the name: two Task objects with the same name compare equal.
    """

    def __init__(self, name: str, *, checked: bool = True) -> None:
        self.name = name
        self.samples: dict[int, TimeSample] = {}
        self.checked = checked
        self.is_runnable = False
        self._sample_count = 0
        self._listeners: list[MeasurementListener] = []

    @property
    def sample_count(self) -> int:
        return self._sample_count

    def add_listener(self, listener: MeasurementListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MeasurementListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_measurement(self, time: Time, size: int) -> None:
        sample = self.samples.get(size)
        if sample is None:
            self.samples[size] = TimeSample.from_time(time)
        else:
            sample.add_measurement(time)
        self._sample_count += 1
        for listener in list(self._listeners):
            listener(self, size, time)

    def bounds(
        self, band: Band, *, amortized: bool
    ) -> tuple[ClosedRange[int], ClosedRange[Time]] | None:
        sizes: list[int] = []
        times: list[Time] = []
        for size, sample in self.samples.items():
            if amortized and size == 0:
                continue
            t = sample.band_value(band)
            if t is None:
                continue
            sizes.append(size)
            times.append(t / size if amortized else t)
        if not sizes:
            return None
        return ClosedRange(min(sizes), max(sizes)), ClosedRange(min(times), max(times))

    def delete_results(self, size_range: ClosedRange[int] | None = None) -> None:
        if size_range is None:
            self.samples = {}
        else:
            self.samples = {
                size: sample
                for size, sample in self.samples.items()
                if size not in size_range
            }
        self._sample_count = sum(s.count for s in self.samples.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Task):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Task({self.name!r}, sizes={len(self.samples)}, samples={self._sample_count})"

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            # JSON object keys are strings; sizes are written in ascending order.
            "samples": {str(size): self.samples[size].to_json() for size in sorted(self.samples)},
            "checked": self.checked,
        }

    @staticmethod
    def from_json(obj: dict[str, Any]) -> "Task":
        try:
            name = str(obj["name"])
            raw_samples = obj["samples"]
            if not isinstance(raw_samples, dict):
                raise TypeError("samples must be an object")
            samples = {int(size): TimeSample.from_json(s) for size, s in raw_samples.items()}
            checked = obj.get("checked", True)
            if not isinstance(checked, bool):
                raise TypeError(f"checked must be a boolean, got {checked!r}")
        except ResultFormatError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ResultFormatError(f"invalid task: {e}") from e

        task = Task(name, checked=checked)
        task.samples = samples
        task._sample_count = sum(s.count for s in samples.values())
        return task
