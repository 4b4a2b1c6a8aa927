from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RunStateKind(Enum):
    NO_BENCHMARK = "no_benchmark"
    IDLE = "idle"
    LOADING = "loading"
    # Should be running, but there is nothing to run yet.
    WAITING = "waiting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED_BENCHMARK = "failed_benchmark"


class Followup(Enum):
    """What to do once a stopping process has exited."""

    IDLE = "idle"
    RELOAD = "reload"
    RESTART = "restart"


class Action(Enum):
    START = "start"
    STOP = "stop"
    RELOAD = "reload"


FOLLOWUP_MERGE: dict[tuple[Action, Followup], Followup] = {
    (Action.START, Followup.IDLE): Followup.RESTART,
    (Action.START, Followup.RESTART): Followup.RESTART,
    (Action.START, Followup.RELOAD): Followup.RELOAD,
    (Action.STOP, Followup.IDLE): Followup.IDLE,
    (Action.STOP, Followup.RESTART): Followup.IDLE,
    (Action.STOP, Followup.RELOAD): Followup.IDLE,
    (Action.RELOAD, Followup.IDLE): Followup.RELOAD,
    (Action.RELOAD, Followup.RESTART): Followup.RELOAD,
    (Action.RELOAD, Followup.RELOAD): Followup.RELOAD,
}


def merge_followup(action: Action, current: Followup) -> Followup:
    return FOLLOWUP_MERGE[(action, current)]


@dataclass(frozen=True)
class RunState:
    """Controller state. `process` is set for LOADING, RUNNING and STOPPING."""

    kind: RunStateKind
    process: Any = None
    followup: Followup | None = None

    @staticmethod
    def no_benchmark() -> "RunState":
        return RunState(RunStateKind.NO_BENCHMARK)

    @staticmethod
    def idle() -> "RunState":
        return RunState(RunStateKind.IDLE)

    @staticmethod
    def loading(process: Any) -> "RunState":
        return RunState(RunStateKind.LOADING, process)

    @staticmethod
    def waiting() -> "RunState":
        return RunState(RunStateKind.WAITING)

    @staticmethod
    def running(process: Any) -> "RunState":
        return RunState(RunStateKind.RUNNING, process)

    @staticmethod
    def stopping(process: Any, then: Followup) -> "RunState":
        return RunState(RunStateKind.STOPPING, process, then)

    @staticmethod
    def failed() -> "RunState":
        return RunState(RunStateKind.FAILED_BENCHMARK)

    @property
    def generation(self) -> int | None:
        if self.process is None:
            return None
        return self.process.generation

    def run_button(self) -> tuple[bool, str]:
        """(enabled, label) for a start/stop control in this state."""

        k = self.kind
        if k is RunStateKind.NO_BENCHMARK:
            return False, "Start"
        if k in (RunStateKind.IDLE, RunStateKind.FAILED_BENCHMARK):
            return True, "Start"
        if k is RunStateKind.STOPPING:
            return self.followup is Followup.RESTART, "Stop"
        return True, "Stop"


def status_text(state: RunState, name: str) -> str:
    """Status line shown on entering `state` for the benchmark called `name`."""

    k = state.kind
    if k is RunStateKind.NO_BENCHMARK:
        return "Attabench document cannot be found; can't take new measurements"
    if k is RunStateKind.IDLE:
        return "Ready"
    if k is RunStateKind.LOADING:
        return f"Loading {name}..."
    if k is RunStateKind.WAITING:
        return "No executable tasks selected, pausing"
    if k is RunStateKind.RUNNING:
        return f"Starting {name}..."
    if k is RunStateKind.STOPPING and state.followup is Followup.RESTART:
        return f"Restarting {name}..."
    if k is RunStateKind.STOPPING:
        return f"Stopping {name}..."
    return "Failed"
