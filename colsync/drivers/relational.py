"""ODBC driver for SQL-accessible systems."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Sequence

import pyodbc

from colsync.models import (
    SNAPSHOT_LIMIT,
    ColumnInfo,
    ConnectionCheck,
    ProbeResult,
    RelationalConnection,
    has_data,
    to_scalar,
)
from colsync.probe import SchemaProber, match_column, resolve_result_column

from .base import (
    ColsyncError,
    ConnectivityError,
    NotFoundError,
    QueryError,
    StatementListener,
)

LOG = logging.getLogger(__name__)

_NOT_FOUND_STATES = frozenset({"42S02", "42S22"})
_CONNECTIVITY_CLASSES = frozenset({"08", "28", "IM"})


def quote_ident(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""

    return '"' + str(name).replace('"', '""') + '"'


def sqlstate(exc: BaseException) -> str:
    """Return the SQLSTATE pyodbc puts first in its exception args."""

    if exc.args and isinstance(exc.args[0], str):
        return exc.args[0]
    return ""


class RelationalDriver:
    """Reads catalogs and column values over a fresh ODBC handle per call.

    Handles are never pooled: each operation connects, does its work and
    closes the handle on every exit path.
    """

    def __init__(self, connection: RelationalConnection, *, connect_timeout: int = 15) -> None:
        self.name = connection.name
        self._connection = connection
        self._connect_timeout = connect_timeout
        self._prober = SchemaProber(
            driver_error=pyodbc.Error,
            default_schema=connection.default_schema,
            view_prefix=connection.view_prefix,
        )

    @property
    def connection(self) -> RelationalConnection:
        return self._connection

    def check(self) -> ConnectionCheck:
        started = time.perf_counter()
        error: str | None = None
        try:
            with self._open() as handle:
                handle.cursor().execute("SELECT 1").fetchone()
        except (ColsyncError, pyodbc.Error) as exc:
            error = str(exc)
        return ConnectionCheck(
            name=self.name,
            connected=error is None,
            latency_ms=_elapsed_ms(started),
            error=error,
            checked_at=datetime.now(tz=timezone.utc),
        )

    def list_tables(self) -> tuple[str, ...]:
        with self._open() as handle:
            try:
                return self._prober.list_tables(handle.cursor())
            except pyodbc.Error as exc:
                raise _classify(exc, f"Failed to list tables for '{self.name}'") from exc

    def probe(self, table: str) -> ProbeResult:
        """Resolve a table's columns through the schema prober."""

        with self._open() as handle:
            return self._prober.probe(self._cursor(handle), table)

    def list_columns(self, table: str) -> tuple[str, ...]:
        return self.probe(table).columns

    def describe_columns(self, table: str, *, data_only: bool = False) -> tuple[ColumnInfo, ...]:
        limit = SNAPSHOT_LIMIT if data_only else 1
        with self._open() as handle:
            cursor = self._cursor(handle)
            probe = self._prober.probe(cursor, table)
            described: list[ColumnInfo] = []
            for column in probe.columns:
                try:
                    values = self._read(cursor, probe.catalog_table or table, column, limit, probe.schema)
                except (NotFoundError, QueryError) as exc:
                    LOG.warning(
                        "Could not sample %s.%s: %s",
                        table,
                        column,
                        exc,
                        extra={"connection": self.name},
                    )
                    values = []
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
        with self._open() as handle:
            cursor = self._cursor(handle)
            try:
                return self._read(cursor, table, column, limit, None, on_statement)
            except NotFoundError:
                LOG.info(
                    "Direct read of %s.%s missed; probing catalog",
                    table,
                    column,
                    extra={"connection": self.name},
                )
            probe = self._prober.probe(cursor, table)
            actual = match_column(probe.columns, column)
            if actual is None:
                raise NotFoundError(f"Column '{column}' not found in '{table}' on '{self.name}'")
            return self._read(
                cursor,
                probe.catalog_table or table,
                actual,
                limit,
                probe.schema,
                on_statement,
            )

    def select_statement(self, table: str, column: str, limit: int, schema: str | None = None) -> str:
        """Build the bounded single-column read for this connection's dialect."""

        count = int(limit)
        target = quote_ident(table) if schema is None else f"{quote_ident(schema)}.{quote_ident(table)}"
        if self._connection.limit_style == "top":
            return f"SELECT TOP {count} {quote_ident(column)} FROM {target}"
        return f"SELECT {quote_ident(column)} FROM {target} LIMIT {count}"

    def _read(
        self,
        cursor: Any,
        table: str,
        column: str,
        limit: int,
        schema: str | None,
        on_statement: StatementListener | None = None,
    ) -> list[Any]:
        statement = self.select_statement(table, column, limit, schema)
        if on_statement is not None:
            on_statement(statement)
        try:
            cursor.execute(statement)
            names = [str(entry[0]) for entry in cursor.description or ()]
            rows = cursor.fetchmany(limit)
        except pyodbc.Error as exc:
            raise _classify(exc, f"Query failed on '{self.name}': {statement}") from exc
        index = resolve_result_column(names, column)
        if index is None:
            raise NotFoundError(f"Column '{column}' missing from result of {statement}")
        return [row[index] for row in rows]

    def _cursor(self, handle: Any) -> Any:
        try:
            return handle.cursor()
        except pyodbc.Error as exc:
            raise _classify(exc, f"Failed to allocate a cursor on '{self.name}'") from exc

    @contextmanager
    def _open(self) -> Iterator[Any]:
        try:
            handle = pyodbc.connect(
                self._connection.connection_string,
                timeout=self._connect_timeout,
                autocommit=True,
            )
        except pyodbc.Error as exc:
            raise ConnectivityError(f"Failed to connect to '{self.name}': {exc}") from exc
        try:
            yield handle
        finally:
            try:
                handle.close()
            except pyodbc.Error:
                LOG.warning("Error closing handle", exc_info=True, extra={"connection": self.name})


def _classify(exc: BaseException, message: str) -> ColsyncError:
    state = sqlstate(exc)
    detail = f"{message}: {exc}"
    if state in _NOT_FOUND_STATES:
        return NotFoundError(detail)
    if state[:2] in _CONNECTIVITY_CLASSES:
        return ConnectivityError(detail)
    return QueryError(detail)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = ["RelationalDriver", "quote_ident", "sqlstate"]
