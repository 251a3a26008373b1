"""Ad-hoc SQL passthrough used for connection diagnostics."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable

import pyodbc

from .drivers import ConnectivityError, QueryError
from .models import RelationalConnection, to_scalar

LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized query output returned to callers."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    status: str
    elapsed_ms: int
    row_count: int | None = None


class OdbcQueryExecutor:
    """Runs SQL statements verbatim against a relational connection."""

    def __init__(self, *, connect_timeout: int = 15, max_rows: int = 1000) -> None:
        self._connect_timeout = connect_timeout
        self._max_rows = max_rows

    def execute(self, connection: RelationalConnection, sql: str) -> QueryResult:
        statement = sql.strip()
        if not statement:
            raise QueryError("Provide SQL to execute.")
        started = time.perf_counter()
        try:
            handle = pyodbc.connect(
                connection.connection_string,
                timeout=self._connect_timeout,
                autocommit=True,
            )
        except pyodbc.Error as exc:
            raise ConnectivityError(f"Failed to connect to '{connection.name}': {exc}") from exc
        try:
            cursor = handle.cursor()
            cursor.execute(statement)
            if cursor.description is None:
                columns: tuple[str, ...] = ()
                rows: tuple[tuple[object, ...], ...] = ()
                row_count = cursor.rowcount if cursor.rowcount >= 0 else None
                status = "OK" if row_count is None else f"{row_count} row(s) affected"
            else:
                columns = tuple(str(entry[0]) for entry in cursor.description)
                rows = _normalize(cursor.fetchmany(self._max_rows))
                row_count = len(rows)
                status = f"{row_count} row(s)"
        except pyodbc.Error as exc:
            raise QueryError(str(exc)) from exc
        finally:
            try:
                handle.close()
            except pyodbc.Error:  # pragma: no cover - best effort cleanup
                LOG.warning("Error closing handle", exc_info=True, extra={"connection": connection.name})
        return QueryResult(
            columns=columns,
            rows=rows,
            status=status,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
            row_count=row_count,
        )


def _normalize(records: Iterable[Any]) -> tuple[tuple[object, ...], ...]:
    return tuple(tuple(to_scalar(value) for value in record) for record in records)


__all__ = ["OdbcQueryExecutor", "QueryResult"]
