from __future__ import annotations

"""Headless runner: open a result file or benchmark, measure, save.

    python -m attabench_ui results.attaresult
    python -m attabench_ui bench.py --save out.attaresult --duration 60
"""

import argparse
import signal
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QObject, QTimer, Signal, Slot

from attabench.duration import Time
from attabench.errors import BenchmarkLaunchError, ResultFormatError
from attabench.io import RESULT_SUFFIX
from attabench.log import get_logger, setup_logging
from attabench_ui.run_controller import RunController
from attabench_ui.run_state import RunState, RunStateKind

log = get_logger("app")

_BUSY = (RunStateKind.LOADING, RunStateKind.RUNNING, RunStateKind.STOPPING)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="attabench_ui", description="Run an Attabench benchmark")
    p.add_argument("path", type=Path, help=f"Result file ({RESULT_SUFFIX}) or benchmark executable")
    p.add_argument("--benchmark", type=Path, help="Benchmark to use with the result file")
    p.add_argument("--save", type=Path, help="Where to save results (default: the result file)")
    p.add_argument("--duration", type=float, help="Stop measuring after this many seconds")
    p.add_argument("--filter", default="", help="Only run tasks matching this filter")
    p.add_argument("--iterations", type=int)
    p.add_argument("--min-size-scale", type=int, help="Smallest size is 2**N")
    p.add_argument("--max-size-scale", type=int, help="Largest size is 2**N")
    p.add_argument("--max-time", type=Time.parse, help="Longest time spent on one size")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("-q", "--quiet", action="store_true")
    p.add_argument("--log-file", type=Path, help="Also write a debug log here")
    return p


def default_save_path(path: Path) -> Path:
    if path.suffix == RESULT_SUFFIX:
        return path
    return path.with_suffix(RESULT_SUFFIX)


class HeadlessSession(QObject):
    """Drives a RunController through load, one measuring run and save.

    Decisions are taken on a zero-delay timer after each state change so
    they see the settled state rather than an intermediate one.
    """

    finished = Signal(int)  # exit code

    def __init__(
        self,
        controller: RunController,
        *,
        save_path: Path,
        duration: float | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._controller = controller
        self._save_path = save_path
        self._duration = duration
        self._started = False
        self._ran = False
        self._done = False
        self._interrupted = False

        self._stop_timer = QTimer(self)
        self._stop_timer.setSingleShot(True)
        self._stop_timer.timeout.connect(self._on_duration_elapsed)

        controller.state_changed.connect(self._on_state_changed)
        controller.log_message.connect(self._on_log_message)

    @property
    def ran(self) -> bool:
        return self._ran

    @Slot(object)
    def _on_state_changed(self, state: RunState) -> None:
        if state.kind is RunStateKind.RUNNING:
            self._ran = True
            if self._duration is not None and not self._stop_timer.isActive():
                self._stop_timer.start(int(self._duration * 1000))
        QTimer.singleShot(0, self.settle)

    @Slot(str, str)
    def _on_log_message(self, kind: str, text: str) -> None:
        if kind == "stderr":
            log.warning("%s", text)
        elif kind == "stdout":
            log.debug("%s", text)

    @Slot()
    def _on_duration_elapsed(self) -> None:
        log.info("Time limit reached; stopping")
        self._controller.stop_measuring()

    def interrupt(self) -> None:
        if self._done:
            return
        log.info("Interrupted; stopping")
        self._interrupted = True
        if self._controller.state.kind in _BUSY:
            self._controller.start_stop_action()
            if self._controller.state.kind is RunStateKind.STOPPING:
                return
        self.settle()

    @Slot()
    def settle(self) -> None:
        if self._done:
            return
        kind = self._controller.state.kind
        if kind in _BUSY:
            return
        if kind is RunStateKind.IDLE and not self._started and not self._interrupted:
            self._started = True
            self._controller.start_measuring()
            return
        if kind is RunStateKind.WAITING:
            log.error("No runnable tasks selected")
            self._finish(1)
        elif kind is RunStateKind.NO_BENCHMARK:
            log.error("No benchmark to run; pass --benchmark")
            self._finish(1)
        elif kind is RunStateKind.FAILED_BENCHMARK:
            self._finish(1)
        else:
            self._finish(130 if self._interrupted else (0 if self._ran else 1))

    def _finish(self, code: int) -> None:
        self._done = True
        self._stop_timer.stop()
        if self._ran:
            try:
                self._controller.save_result(self._save_path)
            except OSError as e:
                log.error("Can't save results to %s: %s", self._save_path, e)
                code = 1
        self._controller.shutdown()
        self.finished.emit(code)


def _apply_overrides(controller: RunController, args: argparse.Namespace) -> None:
    store = controller.store
    if args.iterations is not None:
        store.iterations = args.iterations
    lo = args.min_size_scale if args.min_size_scale is not None else store.size_scale_range.lower
    hi = args.max_size_scale if args.max_size_scale is not None else store.size_scale_range.upper
    store.set_size_scale_range(lo, hi)
    if args.max_time is not None:
        store.set_duration_range(store.duration_range.lower, args.max_time)
    controller.set_task_filter(args.filter)


def run_app(argv: list[str] | None = None) -> int:
    argv = list(argv if argv is not None else sys.argv)
    args = _build_parser().parse_args(argv[1:])
    setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    app = QCoreApplication.instance() or QCoreApplication(argv[:1])
    app.setApplicationName("Attabench")

    controller = RunController()
    controller.status.changed.connect(lambda text: log.info("%s", text))
    is_result = args.path.suffix == RESULT_SUFFIX
    session = HeadlessSession(
        controller,
        save_path=args.save or default_save_path(args.path),
        duration=args.duration,
    )
    session.finished.connect(app.exit)

    # Options must be in place before the first run starts, so load first
    # and only let the session react once the event loop is running.
    try:
        if is_result:
            controller.open_result(args.path)
            if args.benchmark is not None:
                controller.choose_benchmark(args.benchmark)
        else:
            controller.open_benchmark(args.path)
    except ResultFormatError as e:
        log.error("Can't read %s: %s", args.path, e)
        return 1
    except BenchmarkLaunchError as e:
        log.error("%s", e)
        return 2
    except OSError as e:
        log.error("Can't open %s: %s", args.path, e)
        return 1
    _apply_overrides(controller, args)

    # Python only sees SIGINT when control returns to the interpreter.
    signal.signal(signal.SIGINT, lambda *_: session.interrupt())
    heartbeat = QTimer()
    heartbeat.start(200)
    heartbeat.timeout.connect(lambda: None)

    QTimer.singleShot(0, session.settle)
    code = app.exec()
    heartbeat.stop()
    return int(code)
