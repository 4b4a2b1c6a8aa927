from __future__ import annotations

"""Logging for the `attabench` CLI and the headless runner.

Both tools call `setup_logging()` once from their `-v`/`-q`/`--log-file`
flags. Status lines (INFO) print as bare text on stderr, so a run reads like
the status bar it replaces; warnings and debug output carry their level and
origin. A log file, when given, receives everything including raw benchmark
output.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "attabench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class _ConsoleFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(message)s")
        self._tagged = logging.Formatter("%(levelname)s [%(name)s] %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return super().format(record)
        return self._tagged.format(record)


def console_level(*, verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """(Re)configure the `attabench` logger tree; `verbose` wins over `quiet`."""

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level(verbose=verbose, quiet=quiet))
    console.setFormatter(_ConsoleFormatter())
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(log_file, encoding="utf-8")
        to_file.setLevel(logging.DEBUG)
        to_file.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(to_file)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
