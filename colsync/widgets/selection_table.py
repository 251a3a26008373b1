"""Table of selections and the state of their snapshots."""

from __future__ import annotations

from textual.widgets import DataTable

from colsync.service import SyncService

_COLUMNS = ("ID", "Connection", "Table", "Column", "Values", "Last synced")


class SelectionTable(DataTable):
    """Read-only listing refreshed on a timer by the app."""

    DEFAULT_CSS = """
    SelectionTable {
        height: 1fr;
    }
    """

    def __init__(self, service: SyncService) -> None:
        super().__init__(id="selection-table", zebra_stripes=True, cursor_type="row")
        self._service = service

    def on_mount(self) -> None:
        self.add_columns(*_COLUMNS)
        self.refresh_selections()

    def refresh_selections(self) -> int:
        """Reload rows from the store; returns the number shown."""

        selections = self._service.list_selections()
        self.clear()
        for selection in selections:
            synced = (
                selection.last_synced_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
                if selection.last_synced_at
                else "never"
            )
            self.add_row(
                str(selection.id),
                selection.connection_name,
                selection.table_name,
                selection.column_name,
                str(len(selection.snapshot)),
                synced,
                key=str(selection.id),
            )
        return len(selections)


__all__ = ["SelectionTable"]
