"""Textual monitor that runs the sync scheduler and shows its progress."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from textual import work
from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from .config import AppConfig, load_config
from .providers import SyncCommandProvider
from .service import SyncService
from .widgets import SelectionTable, StatusBar

LOG = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LOG_FILE = "colsync.log"


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


def configure_logging(config: AppConfig) -> None:
    """Route log records to the configured file; the terminal belongs to the UI."""

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(filename=config.log_file or DEFAULT_LOG_FILE, level=level, format=LOG_FORMAT)


class ColsyncApp(App[None]):
    """Selections table plus a live status strip for the background scheduler."""

    COMMANDS = App.COMMANDS | {SyncCommandProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #selection-table {
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "sync_now", "Sync Now"),
        ("ctrl+t", "test_connections", "Test Connections"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(self, service: SyncService | None = None, *, autostart: bool = True) -> None:
        super().__init__()
        self._service = service or SyncService(_load_app_config())
        self._autostart = autostart
        self._table: SelectionTable | None = None

    @property
    def service(self) -> SyncService:
        """Expose the sync service for tests."""

        return self._service

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        self._table = SelectionTable(self._service)
        yield self._table
        yield StatusBar(self._service.scheduler)
        yield Footer()

    async def on_mount(self) -> None:
        if self._autostart:
            self._service.start()
        self.set_interval(1.0, self.refresh_selections)

    async def _shutdown(self) -> None:
        # Timers and widgets read the store, so close it after they stop.
        await super()._shutdown()
        self._service.close()

    def refresh_selections(self) -> None:
        if self._table is not None:
            self._table.refresh_selections()

    def action_sync_now(self) -> None:
        self._sync_now()

    async def action_test_connections(self) -> None:
        results = await self._service.test_all_connections()
        for name, check in results.items():
            if check.connected:
                self.notify(f"{name}: connected ({check.latency_ms} ms)", severity="information")
            else:
                self.notify(f"{name}: {check.error}", severity="warning")

    @work(thread=True, exclusive=True, group="sync")
    def _sync_now(self) -> None:
        report = self._service.sync_now()
        if report.skipped:
            message = "A sync pass is already running."
        elif report.connection is None:
            message = "Nothing to sync."
        else:
            message = f"{report.connection}: {len(report.synced)} synced, {len(report.failed)} failed"
        self.call_from_thread(self.notify, message, severity="information")
        self.call_from_thread(self.refresh_selections)


def main() -> None:
    """Load the environment, configure logging and run the monitor."""

    load_dotenv()
    config = _load_app_config()
    configure_logging(config)
    LOG.info("Starting colsync with %d connections", len(config.connections))
    ColsyncApp(SyncService(config)).run()


if __name__ == "__main__":
    main()
