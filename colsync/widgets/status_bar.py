"""Status bar widget that mirrors the scheduler's current activity."""

from __future__ import annotations

from typing import Callable

from textual.message import Message
from textual.widgets import Static

from colsync.scheduler import SyncScheduler


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    class StatusChanged(Message):
        """Posted from the scheduler thread whenever the status string changes."""

        def __init__(self, status: str) -> None:
            super().__init__()
            self.status = status

    def __init__(self, scheduler: SyncScheduler) -> None:
        super().__init__("", id="status-bar")
        self._scheduler = scheduler
        self._unsubscribe: Callable[[], None] | None = None
        self.status_text = ""

    async def on_mount(self) -> None:
        self._show_status(self._scheduler.status)
        self._unsubscribe = self._scheduler.subscribe(self._handle_status)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def on_status_bar_status_changed(self, message: StatusChanged) -> None:
        self._show_status(message.status)

    def _handle_status(self, status: str) -> None:
        # post_message is safe to call from the scheduler thread.
        self.post_message(self.StatusChanged(status))

    def _show_status(self, status: str) -> None:
        state = "running" if self._scheduler.running else "stopped"
        self.status_text = f"Sync: {status} | Scheduler: {state} ({self._scheduler.interval:g}s)"
        self.update(self.status_text)


__all__ = ["StatusBar"]
