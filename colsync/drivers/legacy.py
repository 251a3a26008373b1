"""Driver for Access/Jet desktop database files read straight from disk."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from access_parser import AccessParser

from colsync.models import (
    ColumnInfo,
    ConnectionCheck,
    LegacyFileConnection,
    has_data,
    to_scalar,
)

from .base import (
    ColsyncError,
    ConnectivityError,
    NotFoundError,
    QueryError,
    StatementListener,
)

LOG = logging.getLogger(__name__)

_SYSTEM_PREFIXES = ("MSys", "~")


class LegacyFileDriver:
    """Loads the database file on every call since it may change between cycles."""

    def __init__(self, connection: LegacyFileConnection) -> None:
        self.name = connection.name
        self._path = Path(connection.path)

    @property
    def path(self) -> Path:
        return self._path

    def check(self) -> ConnectionCheck:
        started = time.perf_counter()
        error: str | None = None
        try:
            self.list_tables()
        except ColsyncError as exc:
            error = str(exc)
        return ConnectionCheck(
            name=self.name,
            connected=error is None,
            latency_ms=int((time.perf_counter() - started) * 1000),
            error=error,
            checked_at=datetime.now(tz=timezone.utc),
        )

    def list_tables(self) -> tuple[str, ...]:
        reader = self._open()
        return tuple(
            str(table)
            for table in reader.catalog
            if not str(table).startswith(_SYSTEM_PREFIXES)
        )

    def list_columns(self, table: str) -> tuple[str, ...]:
        return self._column_names(self._open(), table)

    def describe_columns(self, table: str, *, data_only: bool = False) -> tuple[ColumnInfo, ...]:
        columns, data = self._read_table(table)
        described: list[ColumnInfo] = []
        for column in columns:
            values = _column_values(data, column)
            if data_only and not any(has_data(value) for value in values):
                continue
            first = to_scalar(values[0]) if values else None
            described.append(ColumnInfo(name=column, first_value=first))
        return tuple(described)

    def fetch_column_values(
        self,
        table: str,
        column: str,
        limit: int,
        *,
        on_statement: StatementListener | None = None,
    ) -> Sequence[Any]:
        if on_statement is not None:
            on_statement(f"read {table}.{column} from {self._path.name}")
        columns, data = self._read_table(table)
        if column not in columns:
            raise NotFoundError(f"Column '{column}' not found in '{table}' on '{self.name}'")
        return _column_values(data, column)[: int(limit)]

    def _column_names(self, reader: AccessParser, table: str) -> tuple[str, ...]:
        """Read column names from the table definition, not from its rows."""

        if table not in reader.catalog:
            raise NotFoundError(f"Table '{table}' not found in '{self._path}'")
        try:
            definition = reader.get_table(table)
        except Exception as exc:
            raise QueryError(f"Failed to read definition of '{table}' from '{self._path}': {exc}") from exc
        return tuple(str(column.col_name_str) for column in definition.columns.values())

    def _read_table(self, table: str) -> tuple[tuple[str, ...], Mapping[str, Any]]:
        reader = self._open()
        columns = self._column_names(reader, table)
        try:
            data = reader.parse_table(table)
        except Exception as exc:
            raise QueryError(f"Failed to read table '{table}' from '{self._path}': {exc}") from exc
        if data is None:
            raise QueryError(f"Table '{table}' in '{self._path}' could not be parsed")
        LOG.debug(
            "Parsed legacy table",
            extra={"connection": self.name, "table": table, "columns": len(columns)},
        )
        return columns, data

    def _open(self) -> AccessParser:
        if not self._path.is_file():
            raise ConnectivityError(f"Database file does not exist at: {self._path}")
        LOG.debug("Reading legacy database", extra={"connection": self.name, "path": str(self._path)})
        try:
            return AccessParser(str(self._path))
        except Exception as exc:
            raise ConnectivityError(f"Failed to open '{self.name}' database {self._path}: {exc}") from exc


def _column_values(data: Mapping[str, Any], column: str) -> list[Any]:
    # Tables without live rows parse to an empty mapping or to "" per column.
    values = data.get(column)
    if isinstance(values, (list, tuple)):
        return list(values)
    return []


__all__ = ["LegacyFileDriver"]
