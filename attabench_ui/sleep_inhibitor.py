from __future__ import annotations

import os
import shutil
import sys

from PySide6.QtCore import QObject, QProcess

from attabench.log import get_logger

log = get_logger("sleep")


def inhibitor_command() -> tuple[str, list[str]] | None:
    """Platform helper that keeps the machine awake, or None if there isn't one."""

    if sys.platform == "darwin":
        exe = shutil.which("caffeinate")
        if exe is not None:
            # Exits on its own if we die without cleaning up.
            return exe, ["-i", "-w", str(os.getpid())]
        return None
    exe = shutil.which("systemd-inhibit")
    if exe is not None:
        return exe, [
            "--what=idle:sleep",
            "--who=attabench",
            "--why=Running benchmarks",
            "sleep",
            "infinity",
        ]
    return None


class SleepInhibitor(QObject):
    """Prevents idle sleep while benchmarks are running.

    `begin()`/`end()` are idempotent. On platforms without a helper they do
    nothing.
    """

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._proc: QProcess | None = None

    @property
    def is_active(self) -> bool:
        return self._proc is not None

    def begin(self) -> None:
        if self._proc is not None:
            return
        command = inhibitor_command()
        if command is None:
            log.debug("No sleep inhibitor available on this platform")
            return
        program, args = command
        proc = QProcess(self)
        proc.setProgram(program)
        proc.setArguments(args)
        proc.setStandardInputFile(QProcess.nullDevice())
        proc.setStandardOutputFile(QProcess.nullDevice())
        proc.setStandardErrorFile(QProcess.nullDevice())
        proc.start()
        self._proc = proc
        log.debug("Started sleep inhibitor: %s %s", program, " ".join(args))

    def end(self) -> None:
        proc = self._proc
        if proc is None:
            return
        self._proc = None
        if proc.state() == QProcess.ProcessState.NotRunning:
            proc.deleteLater()
        else:
            # Deleted once `finished` arrives.
            proc.finished.connect(proc.deleteLater)
            proc.kill()
        log.debug("Stopped sleep inhibitor")
