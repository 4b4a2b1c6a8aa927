from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from attabench_ui.rate_limiter import RateLimiter


class StatusLine(QObject):
    """Status text with an immediate and a rate-limited setter.

    `changed` carries the text a view should display. Lazy updates are
    coalesced so a benchmark reporting progress thousands of times per second
    only repaints at `refresh_rate`.
    """

    changed = Signal(str)

    def __init__(self, *, refresh_rate: float = 0.1, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._text = ""
        self._shown = ""
        self._refresh = RateLimiter(refresh_rate, self._publish, parent=self)

    @property
    def text(self) -> str:
        """The latest status, whether or not it was published yet."""

        return self._text

    @property
    def shown(self) -> str:
        return self._shown

    @property
    def refresh_rate(self) -> float:
        return self._refresh.max_delay

    @refresh_rate.setter
    def refresh_rate(self, value: float) -> None:
        self._refresh.max_delay = value

    def set_lazy(self, text: str) -> None:
        self._text = text
        self._refresh.later()

    def set_immediate(self, text: str) -> None:
        self._text = text
        self._refresh.now()

    def _publish(self) -> None:
        if self._shown == self._text:
            return
        self._shown = self._text
        self.changed.emit(self._text)
