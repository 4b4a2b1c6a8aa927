from __future__ import annotations

"""Wire protocol between the controller and a benchmark executable.

Commands:

    <benchmark> list    prints one task name per line, then exits 0
    <benchmark> run     reads a RunOptions JSON object from stdin

While running, structured lines on stdout look like

    @attabench {"event": "begin", "task": "sort", "size": 1024}
    @attabench {"event": "measure", "task": "sort", "size": 1024, "time": "12.5µs"}
    @attabench {"event": "fail", "error": "out of memory"}

Every other stdout line is plain output; stderr lines are error output. The
process exiting with status 0 marks the end of the command.
"""

import json
import os
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Union

from attabench.duration import Time
from attabench.errors import BenchmarkLaunchError

STRUCTURED_PREFIX = "@attabench "


class Command(Enum):
    LIST = "list"
    RUN = "run"


class ProtocolError(ValueError):
    pass


@dataclass(frozen=True)
class RunOptions:
    tasks: tuple[str, ...]
    sizes: tuple[int, ...]
    iterations: int
    minimum_duration: float
    maximum_duration: float

    def to_json(self) -> dict[str, Any]:
        return {
            "tasks": list(self.tasks),
            "sizes": sorted(self.sizes),
            "iterations": self.iterations,
            "minimumDuration": self.minimum_duration,
            "maximumDuration": self.maximum_duration,
        }

    @staticmethod
    def from_json(obj: dict[str, Any]) -> "RunOptions":
        return RunOptions(
            tasks=tuple(str(t) for t in obj["tasks"]),
            sizes=tuple(sorted(int(s) for s in obj["sizes"])),
            iterations=int(obj["iterations"]),
            minimum_duration=float(obj["minimumDuration"]),
            maximum_duration=float(obj["maximumDuration"]),
        )


# Events. `generation` identifies the process that produced the event.


@dataclass(frozen=True)
class TaskList:
    generation: int
    names: tuple[str, ...]


@dataclass(frozen=True)
class Progress:
    generation: int
    task: str
    size: int


@dataclass(frozen=True)
class Measurement:
    generation: int
    task: str
    size: int
    time: Time


@dataclass(frozen=True)
class StdOut:
    generation: int
    line: str


@dataclass(frozen=True)
class StdErr:
    generation: int
    line: str


@dataclass(frozen=True)
class Failure:
    generation: int
    error: str


@dataclass(frozen=True)
class Stopped:
    generation: int


BenchmarkEvent = Union[TaskList, Progress, Measurement, StdOut, StdErr, Failure, Stopped]


def _size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ProtocolError(f"invalid size: {value!r}")
    return value


def _task(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ProtocolError(f"invalid task name: {value!r}")
    return value


def _elapsed(value: Any) -> Time:
    try:
        if isinstance(value, str):
            time = Time.parse(value)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            time = Time.from_seconds(float(value))
        else:
            raise ProtocolError(f"invalid time: {value!r}")
    except ValueError as e:
        raise ProtocolError(str(e)) from e
    if time.picoseconds < 0:
        raise ProtocolError(f"negative time: {value!r}")
    return time


def parse_run_line(line: str, *, generation: int) -> BenchmarkEvent:
    """Turn one stdout line of a `run` process into an event.

    Raises ProtocolError for a structured line that can't be decoded.
    """

    if not line.startswith(STRUCTURED_PREFIX):
        return StdOut(generation, line)

    payload = line[len(STRUCTURED_PREFIX):]
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"malformed event {payload!r}: {e}") from e
    if not isinstance(obj, dict):
        raise ProtocolError(f"malformed event {payload!r}: not an object")

    kind = obj.get("event")
    if kind == "begin":
        return Progress(generation, _task(obj.get("task")), _size(obj.get("size")))
    if kind == "measure":
        return Measurement(
            generation,
            _task(obj.get("task")),
            _size(obj.get("size")),
            _elapsed(obj.get("time")),
        )
    if kind == "fail":
        return Failure(generation, str(obj.get("error") or "benchmark reported a failure"))
    raise ProtocolError(f"unknown event type {kind!r}")


def parse_task_names(lines: list[str]) -> tuple[str, ...]:
    """Task names printed by `list`, in order, without blanks or duplicates."""

    names = (ln.strip() for ln in lines)
    return tuple(dict.fromkeys(n for n in names if n))


def benchmark_command(path: Path, command: Command) -> tuple[str, list[str]]:
    """Program and arguments that run `command` on the benchmark at `path`.

    Python sources are run with the current interpreter; anything else must be
    an executable file.
    """

    if not path.is_file():
        raise BenchmarkLaunchError(f"benchmark not found: {path}")
    if path.suffix == ".py":
        return sys.executable, [str(path), command.value]
    if not os.access(path, os.X_OK):
        raise BenchmarkLaunchError(f"benchmark is not executable: {path}")
    return str(path), [command.value]
