"""SQLite-backed store of column selections and their snapshots."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .models import SNAPSHOT_LIMIT, Scalar, Selection, to_scalar

LOG = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS selected_columns (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        connection_name TEXT NOT NULL,
        table_name TEXT NOT NULL,
        column_name TEXT NOT NULL,
        snapshot_json TEXT NOT NULL DEFAULT '[]',
        last_synced_at TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_selcols
    ON selected_columns(connection_name, table_name, column_name)
    """,
)

_COLUMNS = "id, connection_name, table_name, column_name, snapshot_json, last_synced_at"


class SelectionStore:
    """Durable table of selections; each snapshot write is a single transaction."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._path = str(path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock, self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    @property
    def path(self) -> str:
        return self._path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def clear(self) -> int:
        """Delete every selection; returns the number removed."""

        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM selected_columns")
        LOG.info("Cleared %d selections", cursor.rowcount, extra={"store": self._path})
        return cursor.rowcount

    def add(self, connection_name: str, table_name: str, column_name: str) -> Selection:
        """Insert a selection with an empty snapshot and return it."""

        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO selected_columns(connection_name, table_name, column_name, snapshot_json) "
                "VALUES (?, ?, ?, '[]')",
                (connection_name, table_name, column_name),
            )
            selection_id = int(cursor.lastrowid)
        return Selection(
            id=selection_id,
            connection_name=connection_name,
            table_name=table_name,
            column_name=column_name,
        )

    def get(self, selection_id: int) -> Selection:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM selected_columns WHERE id = ?",
                (selection_id,),
            ).fetchone()
        if row is None:
            raise KeyError(selection_id)
        return _from_row(row)

    def list(self) -> tuple[Selection, ...]:
        """Return all selections in ascending id order."""

        with self._lock:
            rows = self._conn.execute(f"SELECT {_COLUMNS} FROM selected_columns ORDER BY id").fetchall()
        return tuple(_from_row(row) for row in rows)

    def delete(self, selection_id: int) -> bool:
        """Remove a selection; unknown ids are a no-op returning False."""

        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM selected_columns WHERE id = ?", (selection_id,))
        return cursor.rowcount > 0

    def update_snapshot(
        self,
        selection_id: int,
        values: Iterable[object],
        *,
        synced_at: datetime | None = None,
    ) -> Selection:
        """Replace a selection's snapshot and timestamp together."""

        snapshot = encode_snapshot(values)
        stamp = (synced_at or datetime.now(tz=timezone.utc)).isoformat()
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE selected_columns SET snapshot_json = ?, last_synced_at = ? WHERE id = ?",
                (snapshot, stamp, selection_id),
            )
        if cursor.rowcount == 0:
            raise KeyError(selection_id)
        return self.get(selection_id)


def encode_snapshot(values: Iterable[object]) -> str:
    """Serialize at most SNAPSHOT_LIMIT values as a JSON array of scalars."""

    snapshot: list[Scalar] = []
    for value in values:
        if len(snapshot) >= SNAPSHOT_LIMIT:
            break
        snapshot.append(to_scalar(value))
    return json.dumps(snapshot)


def decode_snapshot(raw: str | None) -> tuple[Scalar, ...]:
    if not raw:
        return ()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        LOG.warning("Discarding unreadable snapshot", extra={"snapshot": raw[:80]})
        return ()
    if not isinstance(data, list):
        return ()
    return tuple(data[:SNAPSHOT_LIMIT])


def _from_row(row: sqlite3.Row) -> Selection:
    synced = row["last_synced_at"]
    return Selection(
        id=int(row["id"]),
        connection_name=str(row["connection_name"]),
        table_name=str(row["table_name"]),
        column_name=str(row["column_name"]),
        snapshot=decode_snapshot(row["snapshot_json"]),
        last_synced_at=datetime.fromisoformat(synced) if synced else None,
    )


__all__ = ["SelectionStore", "decode_snapshot", "encode_snapshot"]
