from __future__ import annotations

import json
from pathlib import Path

from PySide6.QtCore import QObject, QProcess, QTimer, Signal, Slot

from attabench.log import get_logger
from attabench.protocol import (
    Command,
    Failure,
    ProtocolError,
    RunOptions,
    StdErr,
    Stopped,
    TaskList,
    benchmark_command,
    parse_run_line,
    parse_task_names,
)

log = get_logger("process")

KILL_GRACE_MS = 2000


def split_lines(pending: bytes, data: bytes) -> tuple[list[str], bytes]:
    """Complete lines in `pending + data`, and the unterminated remainder."""

    buf = pending + data
    *complete, rest = buf.split(b"\n")
    lines = [raw.rstrip(b"\r").decode("utf-8", errors="replace") for raw in complete]
    return lines, rest


class BenchmarkProcess(QObject):
    """One `list` or `run` invocation of a benchmark executable.

    Everything the process reports is delivered through `event` as a
    generation-tagged value from `attabench.protocol`. The last event is
    always exactly one `Stopped` or `Failure`.

    Construction validates the benchmark path and raises
    `BenchmarkLaunchError`; nothing is spawned until `start()`.
    """

    event = Signal(object)

    def __init__(
        self,
        path: Path,
        command: Command,
        *,
        generation: int,
        options: RunOptions | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        if command is Command.RUN and options is None:
            raise ValueError("run command needs RunOptions")
        self.path = path
        self.command = command
        self.generation = generation
        self.options = options
        self._program, self._args = benchmark_command(path, command)

        self._stdout_pending = b""
        self._stderr_pending = b""
        self._listed: list[str] = []
        self._stop_requested = False
        self._done = False

        self._proc = QProcess(self)
        self._proc.setProgram(self._program)
        self._proc.setArguments(self._args)
        self._proc.setWorkingDirectory(str(path.resolve().parent))
        self._proc.readyReadStandardOutput.connect(self._on_stdout)
        self._proc.readyReadStandardError.connect(self._on_stderr)
        self._proc.finished.connect(self._on_finished)
        self._proc.errorOccurred.connect(self._on_error)

        self._kill_timer = QTimer(self)
        self._kill_timer.setSingleShot(True)
        self._kill_timer.timeout.connect(self._kill_if_running)

    @property
    def is_running(self) -> bool:
        return self._proc.state() != QProcess.ProcessState.NotRunning

    def start(self) -> None:
        log.debug(
            "Starting generation %d: %s %s", self.generation, self._program, " ".join(self._args)
        )
        self._proc.start()
        if self.command is Command.RUN:
            assert self.options is not None
            payload = json.dumps(self.options.to_json()) + "\n"
            self._proc.write(payload.encode("utf-8"))
        self._proc.closeWriteChannel()

    def stop(self, grace_ms: int = KILL_GRACE_MS) -> None:
        """Ask the process to exit; kill it if it is still around after `grace_ms`."""

        if self._stop_requested:
            return
        self._stop_requested = True
        if not self.is_running:
            return
        log.debug("Stopping generation %d", self.generation)
        self._proc.terminate()
        self._kill_timer.start(grace_ms)

    def dispose(self) -> None:
        """Delete this object once its process has exited."""

        if self.is_running:
            self._proc.finished.connect(self.deleteLater)
        else:
            self.deleteLater()

    @Slot()
    def _kill_if_running(self) -> None:
        if self.is_running:
            log.warning("Benchmark did not exit after terminate; killing it")
            self._proc.kill()

    @Slot()
    def _on_stdout(self) -> None:
        data = bytes(self._proc.readAllStandardOutput().data())
        lines, self._stdout_pending = split_lines(self._stdout_pending, data)
        self._handle_stdout(lines)

    @Slot()
    def _on_stderr(self) -> None:
        data = bytes(self._proc.readAllStandardError().data())
        lines, self._stderr_pending = split_lines(self._stderr_pending, data)
        for line in lines:
            self.event.emit(StdErr(self.generation, line))

    def _handle_stdout(self, lines: list[str]) -> None:
        if self.command is Command.LIST:
            self._listed.extend(lines)
            return
        for line in lines:
            try:
                ev = parse_run_line(line, generation=self.generation)
            except ProtocolError as e:
                log.warning("Skipping malformed benchmark output: %s", e)
                continue
            if isinstance(ev, Failure):
                # The non-zero exit that follows is not reported again.
                self._finish(ev)
                self.stop()
            elif not self._done:
                self.event.emit(ev)

    def _flush_partial_lines(self) -> None:
        if self._stdout_pending:
            rest, self._stdout_pending = self._stdout_pending, b""
            self._handle_stdout([rest.rstrip(b"\r").decode("utf-8", errors="replace")])
        if self._stderr_pending:
            rest, self._stderr_pending = self._stderr_pending, b""
            self.event.emit(StdErr(self.generation, rest.decode("utf-8", errors="replace")))

    def _finish(self, ev: Stopped | Failure) -> None:
        if self._done:
            return
        self._done = True
        self._kill_timer.stop()
        self.event.emit(ev)

    @Slot(int, QProcess.ExitStatus)
    def _on_finished(self, exit_code: int, exit_status: QProcess.ExitStatus) -> None:
        # Drain anything still buffered before reporting the exit.
        self._on_stdout()
        self._on_stderr()
        self._flush_partial_lines()

        if self._stop_requested:
            self._finish(Stopped(self.generation))
        elif exit_status == QProcess.ExitStatus.CrashExit:
            self._finish(Failure(self.generation, "Benchmark process crashed"))
        elif exit_code != 0:
            self._finish(Failure(self.generation, f"Benchmark process exited with status {exit_code}"))
        else:
            if self.command is Command.LIST:
                self.event.emit(TaskList(self.generation, parse_task_names(self._listed)))
            self._finish(Stopped(self.generation))

    @Slot(QProcess.ProcessError)
    def _on_error(self, error: QProcess.ProcessError) -> None:
        # Crashes and the like are reported through `finished` as well.
        if error == QProcess.ProcessError.FailedToStart:
            self._finish(
                Failure(self.generation, f"Failed to start {self._program}: {self._proc.errorString()}")
            )
