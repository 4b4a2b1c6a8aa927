from __future__ import annotations

import logging
from pathlib import Path

import pytest

from attabench.log import ROOT_LOGGER, console_level, get_logger, setup_logging


@pytest.fixture(autouse=True)
def _reset_attabench_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_console_level_prefers_verbose() -> None:
    assert console_level() == logging.INFO
    assert console_level(quiet=True) == logging.WARNING
    assert console_level(verbose=True, quiet=True) == logging.DEBUG


def test_status_lines_are_bare_and_warnings_tagged(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging()
    log = get_logger("controller")
    log.info("Ready")
    log.debug("hidden")
    log.warning("slow")
    err = capsys.readouterr().err.splitlines()
    assert err == ["Ready", "WARNING [attabench.controller] slow"]


def test_log_file_records_debug_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "logs" / "run.log"
    setup_logging(quiet=True, log_file=path)
    get_logger("process").debug("benchmark said hi")
    get_logger("process").info("Ready")

    # Reconfiguring closes the previous file handler.
    setup_logging()
    text = path.read_text(encoding="utf-8")
    assert "DEBUG    attabench.process: benchmark said hi" in text
    assert "Ready" in text
    assert capsys.readouterr().err == ""
    assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1


def test_cli_log_file(tmp_path: Path) -> None:
    from attabench.cli import main

    path = tmp_path / "cli.log"
    assert main(["--log-file", str(path), "list-tasks", str(tmp_path / "missing.attaresult")]) == 1
    setup_logging()
    assert "Can't read" in path.read_text(encoding="utf-8")
