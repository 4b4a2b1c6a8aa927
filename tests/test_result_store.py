from __future__ import annotations

from pathlib import Path

import pytest

from attabench.duration import MILLISECOND, NANOSECOND, PICOSECOND, SECOND, ZERO
from attabench.ranges import ClosedRange
from attabench.result import (
    CHART_OPTIONS,
    MEASUREMENTS,
    RUN_OPTIONS,
    SOURCE,
    TASKS,
    ResultStore,
)
from attabench.sample import AVERAGE, MAXIMUM, MINIMUM, Band
from attabench.task import Task


def _recorder(store: ResultStore, topic: str) -> list[tuple]:
    calls: list[tuple] = []
    store.subscribe(topic, lambda *args: calls.append(args))
    return calls


def test_defaults() -> None:
    store = ResultStore()
    assert store.iterations == 3
    assert store.duration_range == ClosedRange(MILLISECOND * 10, SECOND * 10)
    assert store.size_scale_range == ClosedRange(0, 20)
    assert store.size_subdivisions == 8
    assert store.amortized_time is True
    assert store.top_band == Band.sigma(2)
    assert store.center_band == AVERAGE
    assert store.bottom_band == MINIMUM
    assert store.display_time_range == ClosedRange(NANOSECOND, SECOND)
    assert store.progress_refresh_interval == MILLISECOND * 200
    assert store.chart_refresh_interval == SECOND * 5
    assert store.display_name == "Benchmark"
    assert ResultStore(Path("x/sample.py")).display_name == "sample"


def test_options_notify_only_on_change() -> None:
    store = ResultStore()
    run = _recorder(store, RUN_OPTIONS)
    chart = _recorder(store, CHART_OPTIONS)

    store.iterations = 3
    assert run == []
    store.iterations = 5
    store.amortized_time = False
    store.amortized_time = False
    assert len(run) == 1
    assert len(chart) == 1


def test_options_are_normalized() -> None:
    store = ResultStore()
    store.iterations = 0
    assert store.iterations == 1

    store.duration_range = ClosedRange(ZERO, SECOND * 10**7)
    assert store.duration_range == ClosedRange(PICOSECOND, SECOND * 10**6)

    store.size_scale_range = ClosedRange(-3, 40)
    assert store.size_scale_range == ClosedRange(0, 32)

    store.set_size_scale_range(12, 4)
    assert store.size_scale_range == ClosedRange(4, 12)
    store.set_size_scale_lower(20)
    assert store.size_scale_range == ClosedRange(12, 20)
    store.set_size_scale_upper(2)
    assert store.size_scale_range == ClosedRange(2, 12)


def test_selected_sizes_and_range() -> None:
    store = ResultStore()
    store.size_subdivisions = 1
    store.set_size_scale_range(2, 4)
    assert store.selected_sizes() == [4, 8, 16]
    assert store.selected_size_range() == ClosedRange(4, 16)

    store.size_subdivisions = 2
    store.set_size_scale_range(0, 2)
    assert store.selected_sizes() == [1, 2, 4]


def test_sizes_beyond_32_bits_are_plain_ints() -> None:
    store = ResultStore()
    store.size_subdivisions = 1
    store.set_size_scale_range(31, 32)
    assert store.selected_sizes() == [1 << 31, 1 << 32]


def test_source_notifies() -> None:
    store = ResultStore()
    calls = _recorder(store, SOURCE)
    store.benchmark_path = Path("b.py")
    store.benchmark_path = Path("b.py")
    assert len(calls) == 1


def test_task_for_creates_once_and_rejects_duplicates() -> None:
    store = ResultStore()
    calls = _recorder(store, TASKS)
    a = store.task_for("a")
    assert store.task_for("a") is a
    assert store.task_named("a") is a
    assert store.task_named("b") is None
    assert len(calls) == 1

    with pytest.raises(ValueError):
        store.replace_tasks([Task("x"), Task("x")])


def test_measurements_are_forwarded_to_subscribers() -> None:
    store = ResultStore()
    calls = _recorder(store, MEASUREMENTS)
    store.add_measurement(MILLISECOND, "sort", 64)

    task = store.task_named("sort")
    assert task is not None
    assert calls == [(task, 64, MILLISECOND)]

    # Replaced tasks no longer report to the store.
    store.replace_tasks([])
    task.add_measurement(MILLISECOND, 64)
    assert len(calls) == 1


def test_unsubscribe() -> None:
    store = ResultStore()
    calls: list[tuple] = []
    unsubscribe = store.subscribe(TASKS, lambda *a: calls.append(a))
    unsubscribe()
    unsubscribe()
    store.task_for("a")
    assert calls == []


def test_merge_task_names_keeps_sampled_and_marks_runnability() -> None:
    store = ResultStore()
    store.add_measurement(MILLISECOND, "old", 1)
    store.task_for("gone")

    new, missing = store.merge_task_names(["a", "b", "a"])
    assert new == ["a", "b"]
    assert sorted(missing) == ["gone", "old"]
    assert [t.name for t in store.tasks] == ["old", "gone", "a", "b"]
    assert {t.name: t.is_runnable for t in store.tasks} == {
        "old": False,
        "gone": False,
        "a": True,
        "b": True,
    }


def test_remove_if_empty() -> None:
    store = ResultStore()
    sampled = store.task_for("sampled")
    sampled.add_measurement(MILLISECOND, 1)
    runnable = store.task_for("runnable")
    runnable.is_runnable = True
    empty = store.task_for("empty")

    assert store.remove_if_empty(sampled) is False
    assert store.remove_if_empty(runnable) is False
    assert store.remove_if_empty(empty) is True
    assert [t.name for t in store.tasks] == ["sampled", "runnable"]


def test_delete_results_drops_tasks_left_empty() -> None:
    store = ResultStore()
    for size in (1, 2, 1024):
        store.add_measurement(MILLISECOND, "a", size)
    store.add_measurement(MILLISECOND, "b", 2)
    measurements = _recorder(store, MEASUREMENTS)

    removed = store.delete_results(store.tasks, ClosedRange(1, 4))
    assert [t.name for t in removed] == ["b"]
    assert [t.name for t in store.tasks] == ["a"]
    assert sorted(store.tasks[0].samples) == [1024]
    assert measurements == [()]


def test_set_checked_notifies_once() -> None:
    store = ResultStore()
    a = store.task_for("a")
    b = store.task_for("b")
    calls = _recorder(store, TASKS)
    store.set_checked([a, b], False)
    store.set_checked([a, b], False)
    assert len(calls) == 1
    assert not a.checked and not b.checked


def test_bounds_over_tasks() -> None:
    store = ResultStore()
    store.add_measurement(MILLISECOND * 4, "a", 4)
    store.add_measurement(MILLISECOND * 32, "b", 16)

    sizes, times = store.bounds(MAXIMUM, amortized=True)
    assert sizes.range == ClosedRange(4, 16)
    assert times.range == ClosedRange(MILLISECOND, MILLISECOND * 2)

    sizes, times = store.bounds(MAXIMUM, tasks=[], amortized=True)
    assert not sizes and not times
