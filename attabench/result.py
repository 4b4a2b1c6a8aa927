from __future__ import annotations

"""The result document: tasks, run options and chart options.

Every mutation goes through `ResultStore`, which keeps the ordered task list
and the name index together and notifies subscribers after the new value is
stored. Subscribers register per topic:

- "tasks": the task list, task checkmarks or runnability changed
- "run_options": iterations, duration range, size scale range, subdivisions
- "chart_options": anything that only affects chart display
- "measurements": a task received a measurement (args: task, size, time)
- "source": the benchmark path changed
"""

from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from attabench.duration import MILLISECOND, NANOSECOND, PICOSECOND, SECOND, Time
from attabench.ranges import Bounds, ClosedRange
from attabench.sample import AVERAGE, MINIMUM, Band
from attabench.task import Task

TASKS = "tasks"
RUN_OPTIONS = "run_options"
CHART_OPTIONS = "chart_options"
MEASUREMENTS = "measurements"
SOURCE = "source"

LARGEST_POSSIBLE_SIZE_SCALE = 32
SIZE_SCALE_LIMITS: ClosedRange[int] = ClosedRange(0, LARGEST_POSSIBLE_SIZE_SCALE)
TIME_SCALE_LIMITS: ClosedRange[Time] = ClosedRange(PICOSECOND, SECOND * 1_000_000)

Subscriber = Callable[..., None]


def _clamp_sizes(r: ClosedRange[int]) -> ClosedRange[int]:
    return ClosedRange.of(int(r.lower), int(r.upper)).clamped(SIZE_SCALE_LIMITS)


def _clamp_times(r: ClosedRange[Time]) -> ClosedRange[Time]:
    return ClosedRange.of(r.lower, r.upper).clamped(TIME_SCALE_LIMITS)


def _at_least_one(v: int) -> int:
    return max(1, int(v))


class _Option:
    """A stored option that notifies `topic` when its value actually changes."""

    def __init__(
        self,
        topic: str,
        default: Any,
        normalize: Callable[[Any], Any] | None = None,
    ) -> None:
        self.topic = topic
        self.default = default
        self.normalize = normalize
        self.attr = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.attr = f"_opt_{name}"

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj.__dict__.get(self.attr, self.default)

    def __set__(self, obj: Any, value: Any) -> None:
        if self.normalize is not None:
            value = self.normalize(value)
        if obj.__dict__.get(self.attr, self.default) == value:
            return
        obj.__dict__[self.attr] = value
        obj._notify(self.topic)


class ResultStore:
    # Run options
    iterations = _Option(RUN_OPTIONS, 3, _at_least_one)
    duration_range = _Option(RUN_OPTIONS, ClosedRange(MILLISECOND * 10, SECOND * 10), _clamp_times)
    size_scale_range = _Option(RUN_OPTIONS, ClosedRange(0, 20), _clamp_sizes)
    size_subdivisions = _Option(RUN_OPTIONS, 8, _at_least_one)

    # Chart options
    amortized_time = _Option(CHART_OPTIONS, True, bool)
    logarithmic_size_scale = _Option(CHART_OPTIONS, True, bool)
    logarithmic_time_scale = _Option(CHART_OPTIONS, True, bool)
    top_band = _Option(CHART_OPTIONS, Band.sigma(2))
    center_band = _Option(CHART_OPTIONS, AVERAGE)
    bottom_band = _Option(CHART_OPTIONS, MINIMUM)
    highlight_selected_size_range = _Option(CHART_OPTIONS, True, bool)
    display_size_scale_range = _Option(CHART_OPTIONS, ClosedRange(0, 20), _clamp_sizes)
    display_include_size_scale_range = _Option(CHART_OPTIONS, False, bool)
    display_include_all_measured_sizes = _Option(CHART_OPTIONS, True, bool)
    display_time_range = _Option(CHART_OPTIONS, ClosedRange(NANOSECOND, SECOND), _clamp_times)
    display_include_time_range = _Option(CHART_OPTIONS, False, bool)
    display_include_all_measured_times = _Option(CHART_OPTIONS, True, bool)
    theme_name = _Option(CHART_OPTIONS, "", str)
    progress_refresh_interval = _Option(CHART_OPTIONS, MILLISECOND * 200)
    chart_refresh_interval = _Option(CHART_OPTIONS, SECOND * 5)

    def __init__(self, benchmark_path: Path | None = None) -> None:
        self._benchmark_path = benchmark_path
        self._tasks: list[Task] = []
        self._tasks_by_name: dict[str, Task] = {}
        self._subscribers: dict[str, list[Subscriber]] = {}

    # Observers

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register `callback` for `topic`; returns a function that unsubscribes."""

        self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            subs = self._subscribers.get(topic, [])
            if callback in subs:
                subs.remove(callback)

        return unsubscribe

    def _notify(self, topic: str, *args: Any) -> None:
        for callback in list(self._subscribers.get(topic, ())):
            callback(*args)

    # Source

    @property
    def benchmark_path(self) -> Path | None:
        return self._benchmark_path

    @benchmark_path.setter
    def benchmark_path(self, path: Path | None) -> None:
        if path == self._benchmark_path:
            return
        self._benchmark_path = path
        self._notify(SOURCE)

    @property
    def display_name(self) -> str:
        if self._benchmark_path is None:
            return "Benchmark"
        return self._benchmark_path.stem or self._benchmark_path.name

    # Tasks

    @property
    def tasks(self) -> Sequence[Task]:
        return tuple(self._tasks)

    def task_named(self, name: str) -> Task | None:
        return self._tasks_by_name.get(name)

    def task_for(self, name: str) -> Task:
        """Return the task called `name`, creating it if needed."""

        task = self._tasks_by_name.get(name)
        if task is not None:
            return task
        task = Task(name)
        self._insert(task)
        self._notify(TASKS)
        return task

    def _insert(self, task: Task) -> None:
        if task.name in self._tasks_by_name:
            raise ValueError(f"duplicate task name: {task.name!r}")
        task.add_listener(self._on_task_measurement)
        self._tasks.append(task)
        self._tasks_by_name[task.name] = task

    def replace_tasks(self, tasks: Iterable[Task]) -> None:
        for task in self._tasks:
            task.remove_listener(self._on_task_measurement)
        self._tasks = []
        self._tasks_by_name = {}
        for task in tasks:
            self._insert(task)
        self._notify(TASKS)

    def remove(self, task: Task) -> None:
        existing = self._tasks_by_name.pop(task.name)
        self._tasks.remove(existing)
        existing.remove_listener(self._on_task_measurement)
        self._notify(TASKS)

    def remove_if_empty(self, task: Task) -> bool:
        """Remove `task` only if it can't run and holds no measurements."""

        if task.is_runnable or task.sample_count > 0:
            return False
        self.remove(task)
        return True

    def merge_task_names(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Install a fresh task list reported by the benchmark.

        Tasks missing from `names` are kept (with their results) but marked as
        not runnable. Returns the new and the missing task names.
        """

        fresh = list(dict.fromkeys(names))
        fresh_set = set(fresh)
        new_names = [n for n in fresh if n not in self._tasks_by_name]
        missing_names = [t.name for t in self._tasks if t.name not in fresh_set]
        for name in new_names:
            self._insert(Task(name))
        for task in self._tasks:
            task.is_runnable = task.name in fresh_set
        self._notify(TASKS)
        return new_names, missing_names

    def set_checked(self, tasks: Iterable[Task], checked: bool) -> None:
        changed = False
        for task in tasks:
            if task.checked != checked:
                task.checked = checked
                changed = True
        if changed:
            self._notify(TASKS)

    def delete_results(
        self, tasks: Iterable[Task], size_range: ClosedRange[int] | None = None
    ) -> list[Task]:
        """Delete results in `size_range` (or all); drop tasks left empty and not runnable."""

        removed: list[Task] = []
        for task in list(tasks):
            task.delete_results(size_range)
            if self.remove_if_empty(task):
                removed.append(task)
        self._notify(MEASUREMENTS)
        return removed

    # Measurements

    def add_measurement(self, time: Time, task_name: str, size: int) -> None:
        self.task_for(task_name).add_measurement(time, size)

    def _on_task_measurement(self, task: Task, size: int, time: Time) -> None:
        self._notify(MEASUREMENTS, task, size, time)

    # Range helpers

    def set_duration_range(self, a: Time, b: Time) -> None:
        self.duration_range = ClosedRange.of(a, b)

    def set_size_scale_range(self, a: int, b: int) -> None:
        self.size_scale_range = ClosedRange.of(a, b)

    def set_size_scale_lower(self, value: int) -> None:
        self.size_scale_range = ClosedRange.of(value, self.size_scale_range.upper)

    def set_size_scale_upper(self, value: int) -> None:
        self.size_scale_range = ClosedRange.of(self.size_scale_range.lower, value)

    def set_display_size_scale_range(self, a: int, b: int) -> None:
        self.display_size_scale_range = ClosedRange.of(a, b)

    def set_display_time_range(self, a: Time, b: Time) -> None:
        self.display_time_range = ClosedRange.of(a, b)

    # Derived values

    def selected_sizes(self) -> list[int]:
        """Log-spaced sizes between 2**lower and 2**upper, `size_subdivisions` per octave."""

        subs = self.size_subdivisions
        r = self.size_scale_range
        lower = max(0, min(LARGEST_POSSIBLE_SIZE_SCALE, r.lower))
        upper = max(0, min(LARGEST_POSSIBLE_SIZE_SCALE, r.upper))
        return sorted({int(2 ** (i / subs)) for i in range(subs * lower, subs * upper + 1)})

    def selected_size_range(self) -> ClosedRange[int]:
        r = self.size_scale_range
        return ClosedRange(1 << r.lower, 1 << r.upper)

    def bounds(
        self, band: Band, *, tasks: Iterable[Task] | None = None, amortized: bool
    ) -> tuple[Bounds[int], Bounds[Time]]:
        size_bounds: Bounds[int] = Bounds()
        time_bounds: Bounds[Time] = Bounds()
        for task in self._tasks if tasks is None else tasks:
            b = task.bounds(band, amortized=amortized)
            if b is None:
                continue
            size_bounds.form_union(b[0])
            time_bounds.form_union(b[1])
        return size_bounds, time_bounds
