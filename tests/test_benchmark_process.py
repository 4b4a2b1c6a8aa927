from __future__ import annotations

import sys
from pathlib import Path

import pytest

from attabench.duration import MILLISECOND
from attabench.protocol import Command, Failure, Measurement, Progress, RunOptions, Stopped, TaskList


@pytest.mark.parametrize(
    ("pending", "data", "lines", "rest"),
    [
        (b"", b"a\nb\n", ["a", "b"], b""),
        (b"", b"a\nb", ["a"], b"b"),
        (b"he", b"llo\r\nwor", ["hello"], b"wor"),
        (b"", b"", [], b""),
        (b"", b"\xff\n", ["\ufffd"], b""),
    ],
)
def test_split_lines(pending: bytes, data: bytes, lines: list[str], rest: bytes) -> None:
    from attabench_ui.benchmark_process import split_lines

    assert split_lines(pending, data) == (lines, rest)


def _run_to_end(proc, timeout_ms: int = 20_000) -> list:
    from PySide6.QtCore import QEventLoop, QTimer

    events: list = []
    loop = QEventLoop()

    def on_event(ev) -> None:
        events.append(ev)
        if isinstance(ev, (Stopped, Failure)):
            loop.quit()

    proc.event.connect(on_event)
    QTimer.singleShot(timeout_ms, loop.quit)
    proc.start()
    loop.exec()
    return events


def test_missing_benchmark_is_rejected(qcore_app, tmp_path: Path) -> None:
    from attabench.errors import BenchmarkLaunchError
    from attabench_ui.benchmark_process import BenchmarkProcess

    with pytest.raises(BenchmarkLaunchError):
        BenchmarkProcess(tmp_path / "nope.py", Command.LIST, generation=1)


def test_run_needs_options(qcore_app, sample_benchmark: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    with pytest.raises(ValueError):
        BenchmarkProcess(sample_benchmark, Command.RUN, generation=1)


def test_list_reports_task_names(qcore_app, sample_benchmark: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    proc = BenchmarkProcess(sample_benchmark, Command.LIST, generation=7)
    events = _run_to_end(proc)
    assert events == [
        TaskList(7, ("sum", "sorted", "set.add", "dict.get")),
        Stopped(7),
    ]


def test_run_reports_progress_and_measurements(qcore_app, sample_benchmark: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    options = RunOptions(
        tasks=("sum", "sorted"),
        sizes=(1, 4),
        iterations=2,
        minimum_duration=0.0,
        maximum_duration=1.0,
    )
    proc = BenchmarkProcess(sample_benchmark, Command.RUN, generation=3, options=options)
    events = _run_to_end(proc)

    assert isinstance(events[-1], Stopped)
    progress = [(e.task, e.size) for e in events if isinstance(e, Progress)]
    assert progress == [("sum", 1), ("sorted", 1), ("sum", 4), ("sorted", 4)]
    measurements = [e for e in events if isinstance(e, Measurement)]
    assert len(measurements) == 8
    assert all(e.generation == 3 for e in events)


def test_in_band_failure_is_the_only_terminal_event(qcore_app, sample_benchmark: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    options = RunOptions(
        tasks=("no-such-task",), sizes=(1,), iterations=1, minimum_duration=0.0, maximum_duration=1.0
    )
    proc = BenchmarkProcess(sample_benchmark, Command.RUN, generation=1, options=options)
    events = _run_to_end(proc)
    terminal = [e for e in events if isinstance(e, (Stopped, Failure))]
    assert len(terminal) == 1
    assert isinstance(terminal[0], Failure)
    assert "no-such-task" in terminal[0].error


def test_nonzero_exit_is_a_failure(qcore_app, tmp_path: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    script = tmp_path / "broken.py"
    script.write_text("import sys\nsys.stderr.write('boom\\n')\nsys.exit(3)\n", encoding="utf-8")
    proc = BenchmarkProcess(script, Command.LIST, generation=1)
    events = _run_to_end(proc)
    assert [type(e).__name__ for e in events] == ["StdErr", "Failure"]
    assert events[0].line == "boom"
    assert events[-1].error.endswith("status 3")


def _wait_until_exited(proc, timeout: float = 5.0) -> bool:
    import time

    from PySide6.QtCore import QCoreApplication

    deadline = time.monotonic() + timeout
    while proc.is_running and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.02)
    return not proc.is_running


@pytest.mark.skipif(sys.platform == "win32", reason="terminate() is not a signal on Windows")
def test_benchmark_is_stopped_after_in_band_failure(qcore_app, tmp_path: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    script = tmp_path / "fail_then_hang.py"
    script.write_text(
        "import sys, time\n"
        "sys.stdin.read()\n"
        "print('@attabench {\"event\": \"fail\", \"error\": \"bad input\"}', flush=True)\n"
        "time.sleep(30)\n",
        encoding="utf-8",
    )
    options = RunOptions(
        tasks=("t",), sizes=(1,), iterations=1, minimum_duration=0.0, maximum_duration=1.0
    )
    proc = BenchmarkProcess(script, Command.RUN, generation=1, options=options)
    events = _run_to_end(proc)
    assert events[-1] == Failure(1, "bad input")

    proc.stop()
    assert _wait_until_exited(proc)
    assert [e for e in events if isinstance(e, (Stopped, Failure))] == [Failure(1, "bad input")]


def test_malformed_line_does_not_drop_later_lines(qcore_app, sample_benchmark: Path) -> None:
    from attabench_ui.benchmark_process import BenchmarkProcess

    options = RunOptions(
        tasks=("sum",), sizes=(1,), iterations=1, minimum_duration=0.0, maximum_duration=1.0
    )
    proc = BenchmarkProcess(sample_benchmark, Command.RUN, generation=4, options=options)
    events: list = []
    proc.event.connect(events.append)
    proc._handle_stdout(  # noqa: SLF001
        [
            '@attabench {"event": "measure", "task": "sum", "size": 1, "time": 1e300}',
            '@attabench {"event": "measure", "task": "sum", "size": 2, "time": 0.001}',
        ]
    )
    assert [(e.size, e.time) for e in events] == [(2, MILLISECOND)]
