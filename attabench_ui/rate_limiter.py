from __future__ import annotations

import time
from typing import Callable

from PySide6.QtCore import QObject, QTimer, Slot


class RateLimiter(QObject):
    """Runs `action` at most once per `max_delay` seconds.

    - `later()` asks for a run; requests inside the current window coalesce
      into a single timer-driven run at the end of the window.
    - `now()` runs immediately, cancels any pending run and starts a new window.
    - `now_if_needed()` runs immediately only if a run is pending.

    Calls made while the action itself is running are ignored.
    """

    def __init__(
        self,
        max_delay: float,
        action: Callable[[], None],
        *,
        clock: Callable[[], float] = time.monotonic,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._max_delay = float(max_delay)
        self._action = action
        self._clock = clock
        self._performing = False
        self._next: float | None = None

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self.now)

    @property
    def max_delay(self) -> float:
        return self._max_delay

    @max_delay.setter
    def max_delay(self, value: float) -> None:
        self._max_delay = float(value)
        self.now()

    @property
    def is_scheduled(self) -> bool:
        return self._timer.isActive()

    @property
    def is_performing(self) -> bool:
        return self._performing

    @Slot()
    def now(self) -> None:
        if self._performing:
            return
        self._timer.stop()
        self._performing = True
        try:
            self._action()
        finally:
            self._performing = False
            self._next = self._clock() + self._max_delay

    def later(self) -> None:
        if self._timer.isActive() or self._performing:
            return
        current = self._clock()
        if self._next is None or self._next <= current:
            self.now()
            return
        self._timer.start(max(0, int(round((self._next - current) * 1000))))

    def now_if_needed(self) -> None:
        if self._timer.isActive():
            self.now()

    def cancel(self) -> None:
        self._timer.stop()
