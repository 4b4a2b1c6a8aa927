from __future__ import annotations

from typing import Any

from attabench.chart import size_label
from attabench.log import get_logger
from attabench.protocol import (
    Failure,
    Measurement,
    Progress,
    StdErr,
    StdOut,
    Stopped,
    TaskList,
)
from attabench_ui.run_state import RunStateKind

log = get_logger("controller")

MAX_PENDING_RESULTS = 10_000

# Event types that are only valid while the state holds a process of this kind.
_EXPECTED_KIND = {
    TaskList: RunStateKind.LOADING,
    Progress: RunStateKind.RUNNING,
    Measurement: RunStateKind.RUNNING,
}


def handle_benchmark_event(controller, ev: Any) -> None:
    """Apply one process event to `controller`, dropping it if it is stale."""

    state = controller.state
    current = state.generation
    if isinstance(ev, (Failure, Stopped)):
        proc = controller._processes.pop(ev.generation, None)  # noqa: SLF001
        if proc is not None:
            proc.dispose()
        if ev.generation != current:
            log.debug("Ignoring exit of stale process %d", ev.generation)
            return
        if isinstance(ev, Failure):
            controller._log_status(ev.error)  # noqa: SLF001
            controller.process_did_stop(success=False)
        else:
            controller._log_status("Process finished.")  # noqa: SLF001
            controller.process_did_stop(success=True)
        return

    expected = _EXPECTED_KIND.get(type(ev))
    if ev.generation != current or (expected is not None and state.kind is not expected):
        log.debug("Stopping stale process %d", ev.generation)
        stale = controller._processes.get(ev.generation)  # noqa: SLF001
        if stale is not None:
            stale.stop()
        return

    if isinstance(ev, TaskList):
        store = controller.store
        new, missing = store.merge_task_names(ev.names)
        controller._log_status(  # noqa: SLF001
            f"Received {len(store.tasks)} task names ({len(new)} new, {len(missing)} missing)."
        )
    elif isinstance(ev, Progress):
        controller.status.set_lazy(f"Measuring size {size_label(ev.size)} for task {ev.task}")
    elif isinstance(ev, Measurement):
        _buffer_measurement(controller, ev)
    elif isinstance(ev, StdOut):
        controller.log_message.emit("stdout", ev.line)
    elif isinstance(ev, StdErr):
        controller.log_message.emit("stderr", ev.line)


def _buffer_measurement(controller, ev: Measurement) -> None:
    pending = controller._pending  # noqa: SLF001
    pending.append((ev.task, ev.size, ev.time))
    controller._flush.later()  # noqa: SLF001
    # The flush may have run synchronously and emptied the buffer.
    if len(controller._pending) > MAX_PENDING_RESULTS:  # noqa: SLF001
        controller._log_status("Receiving reports too quickly; terminating benchmark.")  # noqa: SLF001
        controller._log_status(  # noqa: SLF001
            "Try selecting larger sizes, or increasing the iteration count "
            "or minimum duration in Run Options."
        )
        controller.stop_measuring()
