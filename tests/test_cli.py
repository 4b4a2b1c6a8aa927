from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from attabench.duration import MILLISECOND
from attabench.io import write_result
from attabench.result import ResultStore


@pytest.fixture()
def result_file(tmp_path: Path) -> Path:
    store = ResultStore(Path("bench.py"))
    for size in (1, 2, 4, 8):
        store.add_measurement(MILLISECOND * size, "linear", size)
        store.add_measurement(MILLISECOND, "constant", size)
    store.add_measurement(MILLISECOND, "off", 1)
    store.task_named("off").checked = False
    path = tmp_path / "r.attaresult"
    write_result(path, store)
    return path


def test_list_tasks_prints_names(result_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    from attabench.cli import main

    assert main(["list-tasks", str(result_file)]) == 0
    assert capsys.readouterr().out.splitlines() == ["linear", "constant", "off"]


def test_chart_to_stdout(result_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    from attabench.cli import main

    assert main(["chart", str(result_file), "--filename-as-title"]) == 0
    raw = json.loads(capsys.readouterr().out)
    assert raw["title"] == "r.attaresult"
    assert raw["tasks"] == ["linear", "constant"]
    assert set(raw["curves"][0]["bands"]) == {"top", "center", "bottom"}


def test_chart_named_tasks_to_file(result_file: Path, tmp_path: Path) -> None:
    from attabench.cli import main

    out = tmp_path / "charts" / "c.json"
    rc = main(
        [
            "chart",
            str(result_file),
            "-o",
            str(out),
            "-t",
            "off",
            "missing",
            "--top-band",
            "none",
            "--min-size",
            "1",
            "--max-size",
            "1024",
        ]
    )
    assert rc == 0
    raw = json.loads(out.read_text(encoding="utf-8"))
    assert raw["tasks"] == ["off"]
    assert set(raw["curves"][0]["bands"]) == {"center", "bottom"}
    assert raw["sizeAxis"]["ticks"][-1]["label"] == "1K"


@pytest.mark.parametrize(
    "extra",
    [
        ["--min-size", "4"],
        ["--max-time", "1s"],
        ["--min-size", "8", "--max-size", "4"],
        ["--min-time", "1s", "--max-time", "1ms"],
        ["--center-band", "median"],
        ["--min-time", "soon", "--max-time", "1s"],
    ],
)
def test_chart_rejects_bad_ranges(result_file: Path, extra: list[str]) -> None:
    from attabench.cli import main

    with pytest.raises(SystemExit) as exc:
        main(["chart", str(result_file), *extra])
    assert exc.value.code == 2


def test_unreadable_result_returns_1(tmp_path: Path) -> None:
    from attabench.cli import main

    bad = tmp_path / "bad.attaresult"
    bad.write_text("{not json", encoding="utf-8")
    assert main(["list-tasks", str(bad)]) == 1
    assert main(["list-tasks", str(tmp_path / "missing.attaresult")]) == 1

    huge = tmp_path / "huge.attaresult"
    huge.write_text('{"tasks": [], "minimumDuration": 1e300, "maximumDuration": 1}', encoding="utf-8")
    assert main(["list-tasks", str(huge)]) == 1


def test_cli_unhandled_command_raises_assertion(
    monkeypatch: pytest.MonkeyPatch, result_file: Path
) -> None:
    import attabench.cli

    class _DummyParser:
        def parse_args(self, _argv: list[str] | None) -> object:
            return SimpleNamespace(cmd="nope", verbose=False, result=result_file)

    monkeypatch.setattr(attabench.cli, "_build_parser", lambda: _DummyParser())
    with pytest.raises(AssertionError, match="Unhandled command"):
        attabench.cli.main(["anything"])


def test_python_m_attabench_executes_main(result_file: Path) -> None:
    root = Path(__file__).resolve().parents[1]
    proc = subprocess.run(
        [sys.executable, "-m", "attabench", "list-tasks", str(result_file)],
        capture_output=True,
        text=True,
        check=False,
        cwd=root,
    )
    assert proc.returncode == 0, proc.stderr
    assert proc.stdout.split() == ["linear", "constant", "off"]
