from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Iterable

from PySide6.QtCore import QObject, Signal, Slot

from attabench.chart import Chart, build_chart, chart_options_for, size_label, tasks_to_chart
from attabench.duration import Time
from attabench.errors import BenchmarkLaunchError
from attabench.io import read_result, write_result
from attabench.log import get_logger
from attabench.protocol import Command, RunOptions
from attabench.result import CHART_OPTIONS, RUN_OPTIONS, TASKS, ResultStore
from attabench.task import Task
from attabench.task_filter import TaskFilter
from attabench_ui.benchmark_process import BenchmarkProcess
from attabench_ui.rate_limiter import RateLimiter
from attabench_ui.run_controller_events import handle_benchmark_event
from attabench_ui.run_state import (
    Action,
    Followup,
    RunState,
    RunStateKind,
    merge_followup,
    status_text,
)
from attabench_ui.sleep_inhibitor import SleepInhibitor
from attabench_ui.status import StatusLine

log = get_logger("controller")

ProcessFactory = Callable[..., Any]


class RunController(QObject):
    """Owns one result document and the benchmark process working on it.

    All methods must be called on the thread that owns the controller; process
    events arrive there through Qt signals. Each spawned process gets a fresh
    generation number, and events whose generation does not belong to the
    process in the current state are discarded (the stale process is stopped).
    """

    state_changed = Signal(object)  # RunState
    log_message = Signal(str, str)  # (kind, text); kind is "status", "stdout" or "stderr"
    chart_refreshed = Signal(object)  # Chart

    def __init__(
        self,
        *,
        process_factory: ProcessFactory | None = None,
        sleep_inhibitor: Any = None,
        clock: Callable[[], float] = time.monotonic,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._process_factory: ProcessFactory = process_factory or BenchmarkProcess
        self._inhibitor = sleep_inhibitor if sleep_inhibitor is not None else SleepInhibitor(self)
        self._state = RunState.no_benchmark()
        self._generation = 0
        self._processes: dict[int, Any] = {}
        self._pending: list[tuple[str, int, Time]] = []
        self._task_filter = TaskFilter()
        self._result_path: Path | None = None
        self._chart: Chart | None = None

        self.status = StatusLine(parent=self)
        self._store = ResultStore()
        self._unsubscribe: list[Callable[[], None]] = []
        self._flush = RateLimiter(
            self._store.progress_refresh_interval.seconds,
            self._process_pending_results,
            clock=clock,
            parent=self,
        )
        self._chart_refresh = RateLimiter(
            self._store.chart_refresh_interval.seconds, self._refresh_chart, clock=clock, parent=self
        )
        self._install(self._store)

    # Accessors

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def store(self) -> ResultStore:
        return self._store

    @property
    def result_path(self) -> Path | None:
        return self._result_path

    @property
    def chart(self) -> Chart | None:
        return self._chart

    @property
    def pending_result_count(self) -> int:
        return len(self._pending)

    def visible_tasks(self) -> list[Task]:
        return [t for t in self._store.tasks if self._task_filter.test(t)]

    def tasks_to_run(self) -> list[Task]:
        return [t for t in self.visible_tasks() if t.checked and t.is_runnable]

    def set_task_filter(self, text: str | None) -> None:
        self._task_filter = TaskFilter(text)
        self._on_tasks_changed()

    # Document lifecycle

    def _install(self, store: ResultStore) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._pending = []
        self._store = store
        self._unsubscribe = [
            store.subscribe(TASKS, self._on_tasks_changed),
            store.subscribe(RUN_OPTIONS, self._on_run_options_changed),
            store.subscribe(CHART_OPTIONS, self._on_chart_options_changed),
        ]
        self._tasks_to_run = self._names(self.tasks_to_run())
        self._checked = self._names(t for t in store.tasks if t.checked)
        self._apply_refresh_intervals()
        self._chart_refresh.now()

    def open_result(self, path: Path) -> None:
        """Load a result file; decode errors propagate and leave the current document alone."""

        store = read_result(path)
        self._set_state(RunState.no_benchmark())
        self._install(store)
        self._result_path = path
        if store.benchmark_path is None:
            return
        self._reload()

    def open_benchmark(self, path: Path) -> None:
        """Start a new document measuring the benchmark at `path`."""

        self._set_state(RunState.no_benchmark())
        self._install(ResultStore(path))
        self._result_path = None
        self._log_status(f"Loading {path.name}")
        try:
            self._start_loading(path)
        except BenchmarkLaunchError as e:
            self._log_status(f"Failed to load benchmark: {e}")
            self._set_state(RunState.failed())
            raise

    def choose_benchmark(self, path: Path) -> None:
        self._store.benchmark_path = path
        self._reload()

    def save_result(self, path: Path | None = None) -> Path:
        target = path or self._result_path
        if target is None:
            raise ValueError("no path to save the result to")
        if self._pending:
            self._flush.now()
        write_result(target, self._store)
        self._result_path = target
        log.info("Saved results to %s", target)
        return target

    def shutdown(self) -> None:
        """Stop any live process and pending timers."""

        if self._state.process is not None:
            self._set_state(RunState.idle())
        for proc in list(self._processes.values()):
            proc.stop()
        self._inhibitor.end()
        self._flush.cancel()
        self._chart_refresh.cancel()

    # State machine

    def _set_state(self, new: RunState) -> None:
        old = self._state
        self._state = new
        if old.kind in (RunStateKind.LOADING, RunStateKind.RUNNING):
            old.process.stop()
        self.status.set_immediate(status_text(new, self._store.display_name))
        self.state_changed.emit(new)

    def _spawn(self, command: Command, options: RunOptions | None = None) -> Any:
        path = self._store.benchmark_path
        assert path is not None
        self._generation += 1
        proc = self._process_factory(
            path, command, generation=self._generation, options=options, parent=self
        )
        proc.event.connect(self._on_benchmark_event)
        self._processes[self._generation] = proc
        return proc

    def _start_loading(self, path: Path) -> None:
        proc = self._spawn(Command.LIST)
        self._set_state(RunState.loading(proc))
        proc.start()

    def _reload(self) -> None:
        path = self._store.benchmark_path
        if path is None:
            self._log_status("Choose a benchmark to take new measurements")
            self._set_state(RunState.no_benchmark())
            return
        self._log_status(f"Loading {path.name}")
        try:
            self._start_loading(path)
        except BenchmarkLaunchError as e:
            self._log_status(f"Failed to load benchmark: {e}")
            self._set_state(RunState.failed())

    def reload_action(self) -> None:
        state = self._state
        k = state.kind
        if k is RunStateKind.NO_BENCHMARK:
            self._log_status("Choose a benchmark to take new measurements")
        elif k in (RunStateKind.IDLE, RunStateKind.FAILED_BENCHMARK, RunStateKind.WAITING):
            self._reload()
        elif k in (RunStateKind.RUNNING, RunStateKind.LOADING):
            self._set_state(RunState.stopping(state.process, Followup.RELOAD))
        elif k is RunStateKind.STOPPING:
            then = merge_followup(Action.RELOAD, state.followup)
            self._set_state(RunState.stopping(state.process, then))

    def start_stop_action(self) -> None:
        state = self._state
        k = state.kind
        if k in (RunStateKind.NO_BENCHMARK, RunStateKind.FAILED_BENCHMARK):
            self.status.set_immediate("Can't start measuring without a working benchmark")
        elif k is RunStateKind.IDLE:
            if self._store.tasks:
                self.start_measuring()
        elif k is RunStateKind.WAITING:
            self._set_state(RunState.idle())
        elif k is RunStateKind.RUNNING:
            self.stop_measuring()
        elif k is RunStateKind.LOADING:
            self._set_state(RunState.failed())
        elif k is RunStateKind.STOPPING:
            action = Action.START if state.followup is Followup.IDLE else Action.STOP
            self._set_state(RunState.stopping(state.process, merge_followup(action, state.followup)))

    def start_measuring(self) -> None:
        path = self._store.benchmark_path
        if path is None:
            self._log_status("Can't start measuring")
            return
        if self._state.kind not in (RunStateKind.IDLE, RunStateKind.WAITING):
            return
        tasks = tuple(t.name for t in self.tasks_to_run())
        sizes = tuple(self._store.selected_sizes())
        if not tasks or not sizes:
            self._set_state(RunState.waiting())
            return

        self._log_status(
            f"Running {self._store.display_name} with {len(tasks)} tasks "
            f"at sizes from {size_label(sizes[0])} to {size_label(sizes[-1])}."
        )
        durations = self._store.duration_range
        options = RunOptions(
            tasks=tasks,
            sizes=sizes,
            iterations=self._store.iterations,
            minimum_duration=durations.lower.seconds,
            maximum_duration=durations.upper.seconds,
        )
        try:
            proc = self._spawn(Command.RUN, options)
        except BenchmarkLaunchError as e:
            self._log_status(str(e))
            self._set_state(RunState.idle())
            return
        self._set_state(RunState.running(proc))
        self._inhibitor.begin()
        proc.start()

    def stop_measuring(self) -> None:
        if self._state.kind is not RunStateKind.RUNNING:
            return
        self._set_state(RunState.stopping(self._state.process, Followup.IDLE))

    def run_options_did_change(self) -> None:
        k = self._state.kind
        if k is RunStateKind.WAITING:
            self.start_measuring()
        elif k is RunStateKind.RUNNING:
            self._set_state(RunState.stopping(self._state.process, Followup.RESTART))

    def process_did_stop(self, *, success: bool) -> None:
        self._inhibitor.end()
        if self._pending:
            self._flush.now()
        self._chart_refresh.now_if_needed()
        state = self._state
        if state.kind is RunStateKind.LOADING:
            self._set_state(RunState.idle() if success else RunState.failed())
        elif state.kind is RunStateKind.STOPPING and state.followup is Followup.RESTART:
            self._set_state(RunState.idle())
            self.start_measuring()
        elif state.kind is RunStateKind.STOPPING and state.followup is Followup.RELOAD:
            self._reload()
        else:
            self._set_state(RunState.idle())

    def delete_results(self, tasks: Iterable[Task], *, all_sizes: bool = False) -> list[Task]:
        """Drop measurements in the selected size range (or everywhere) for `tasks`."""

        size_range = None if all_sizes else self._store.selected_size_range()
        removed = self._store.delete_results(tasks, size_range)
        self._chart_refresh.now()
        return removed

    # Benchmark events

    @Slot(object)
    def _on_benchmark_event(self, ev: Any) -> None:
        handle_benchmark_event(self, ev)

    # Store observers

    @staticmethod
    def _names(tasks: Iterable[Task]) -> tuple[str, ...]:
        return tuple(t.name for t in tasks)

    def _on_tasks_changed(self) -> None:
        to_run = self._names(self.tasks_to_run())
        checked = self._names(t for t in self._store.tasks if t.checked)
        if checked != self._checked:
            self._checked = checked
            self._chart_refresh.now()
        if to_run != self._tasks_to_run:
            self._tasks_to_run = to_run
            self.run_options_did_change()

    def _on_run_options_changed(self) -> None:
        self.run_options_did_change()
        self._chart_refresh.now()

    def _on_chart_options_changed(self) -> None:
        self._apply_refresh_intervals()
        self._chart_refresh.now()

    def _apply_refresh_intervals(self) -> None:
        progress = self._store.progress_refresh_interval.seconds
        if self._flush.max_delay != progress:
            self._flush.max_delay = progress
            self.status.refresh_rate = progress
        charts = self._store.chart_refresh_interval.seconds
        if self._chart_refresh.max_delay != charts:
            self._chart_refresh.max_delay = charts

    # Rate-limited work

    def _process_pending_results(self) -> None:
        pending, self._pending = self._pending, []
        for task, size, elapsed in pending:
            self._store.add_measurement(elapsed, task, size)
        if pending:
            self._chart_refresh.later()

    def _refresh_chart(self) -> None:
        chart = build_chart(tasks_to_chart(self._store), chart_options_for(self._store))
        self._chart = chart
        self.chart_refreshed.emit(chart)

    def _log_status(self, text: str) -> None:
        log.info("%s", text)
        self.log_message.emit("status", text)
