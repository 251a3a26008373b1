"""Catalog probing that tolerates case, quoting, and schema differences."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from .drivers.base import NotFoundError
from .models import ProbeResult

LOG = logging.getLogger(__name__)

_SCHEMA_COLUMNS_QUERY = """
    SELECT COLUMN_NAME, TABLE_SCHEMA
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_NAME = ? AND TABLE_SCHEMA = ?
    ORDER BY ORDINAL_POSITION
"""

_ANY_SCHEMA_COLUMNS_QUERY = """
    SELECT COLUMN_NAME, TABLE_SCHEMA
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_NAME = ?
    ORDER BY TABLE_SCHEMA, ORDINAL_POSITION
"""

_BASE_TABLES_QUERY = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_TYPE = 'BASE TABLE' AND TABLE_SCHEMA = ?
    ORDER BY TABLE_NAME
"""

_VIEWS_QUERY = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.VIEWS
    WHERE TABLE_SCHEMA = ?
    ORDER BY TABLE_NAME
"""

_PREFIXED_TABLES_QUERY = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_SCHEMA = ? AND TABLE_NAME LIKE ?
    ORDER BY TABLE_NAME
"""


@dataclass(frozen=True, slots=True)
class ProbeStrategy:
    """One case/quoting/schema permutation tried against the column catalog."""

    table_name: str
    schema: str | None
    label: str
    catalog_table: str = ""
    catalog_function: bool = False

    def run(self, cursor: Any) -> tuple[tuple[str, ...], str | None] | None:
        """Return the columns and matched schema, or None when the catalog is empty."""

        if self.catalog_function:
            return self._run_catalog_function(cursor)
        if self.schema is None:
            cursor.execute(_ANY_SCHEMA_COLUMNS_QUERY, self.table_name)
        else:
            cursor.execute(_SCHEMA_COLUMNS_QUERY, self.table_name, self.schema)
        rows = cursor.fetchall()
        if not rows:
            return None
        matched_schema = _optional_str(rows[0][1])
        # Only keep the first schema's table when several schemas share the name.
        columns = tuple(
            str(row[0])
            for row in rows
            if row[0] is not None and _optional_str(row[1]) == matched_schema
        )
        if not columns:
            return None
        return columns, matched_schema

    def _run_catalog_function(self, cursor: Any) -> tuple[tuple[str, ...], str | None] | None:
        # ODBC SQLColumns, for sources without INFORMATION_SCHEMA.
        rows = cursor.columns(table=self.table_name).fetchall()
        if not rows:
            return None
        matched_schema = _optional_str(getattr(rows[0], "table_schem", None))
        columns = tuple(
            str(row.column_name)
            for row in rows
            if row.column_name is not None
            and _optional_str(getattr(row, "table_schem", None)) == matched_schema
        )
        if not columns:
            return None
        return columns, matched_schema


def build_strategies(table: str, default_schema: str | None) -> tuple[ProbeStrategy, ...]:
    """Return the ordered probe strategies for a logical table name.

    With a default schema the INFORMATION_SCHEMA matrix comes first and the
    ODBC catalog function is the last resort. Without one the catalog
    function is tried first.
    """

    variants: list[tuple[str, str]] = []
    for case, name in (("original", table), ("upper", table.upper()), ("lower", table.lower())):
        if any(existing == name for _, existing in variants):
            continue
        variants.append((case, name))
    schemas: list[str | None] = [default_schema, None] if default_schema else [None]
    matrix: list[ProbeStrategy] = []
    for schema in schemas:
        scope = f"schema={schema}" if schema else "any schema"
        for case, name in variants:
            matrix.append(ProbeStrategy(name, schema, f"{case}/bare/{scope}", name))
            matrix.append(ProbeStrategy(f"[{name}]", schema, f"{case}/bracketed/{scope}", name))
    catalog = [
        ProbeStrategy(name, None, f"{case}/catalog function", name, catalog_function=True)
        for case, name in variants
    ]
    if default_schema:
        return tuple(matrix + catalog)
    return tuple(catalog + matrix)


class SchemaProber:
    """Resolve table columns by trying catalog strategies in a fixed order."""

    def __init__(
        self,
        *,
        driver_error: type[Exception],
        default_schema: str | None = "dbo",
        view_prefix: str | None = None,
    ) -> None:
        self._driver_error = driver_error
        self._default_schema = default_schema
        self._view_prefix = view_prefix

    def strategies(self, table: str) -> tuple[ProbeStrategy, ...]:
        return build_strategies(table, self._default_schema)

    def probe(self, cursor: Any, table: str) -> ProbeResult:
        """Return the first non-empty strategy result or raise NotFoundError."""

        attempts: list[str] = []
        for strategy in self.strategies(table):
            attempts.append(strategy.label)
            try:
                found = strategy.run(cursor)
            except self._driver_error as exc:
                LOG.debug(
                    "Probe strategy failed",
                    extra={"table": table, "strategy": strategy.label, "error": str(exc)},
                )
                continue
            if found is None:
                continue
            columns, schema = found
            LOG.info(
                "Resolved columns for %s via %s",
                table,
                strategy.label,
                extra={"table": table, "schema": schema, "columns": len(columns)},
            )
            return ProbeResult(
                table=table,
                columns=columns,
                strategy=strategy.label,
                schema=schema,
                catalog_table=strategy.catalog_table or table,
                attempts=tuple(attempts),
            )
        raise NotFoundError(f"Table '{table}' not found after {len(attempts)} probe strategies")

    def list_tables(self, cursor: Any) -> tuple[str, ...]:
        """Return base tables and views, using the view naming convention as a fallback."""

        schema = self._default_schema
        if schema is None:
            return tuple(
                str(row.table_name)
                for row in cursor.tables(tableType="TABLE")
                if getattr(row, "table_name", None)
            )
        cursor.execute(_BASE_TABLES_QUERY, schema)
        tables = _first_column(cursor.fetchall())
        views: tuple[str, ...] = ()
        try:
            cursor.execute(_VIEWS_QUERY, schema)
            views = _first_column(cursor.fetchall())
        except self._driver_error as exc:
            LOG.warning("Could not read view catalog: %s", exc, extra={"schema": schema})
        if not views and self._view_prefix:
            cursor.execute(_PREFIXED_TABLES_QUERY, schema, f"{self._view_prefix}%")
            views = _first_column(cursor.fetchall())
            if views:
                LOG.info(
                    "View catalog empty; matched %d views by prefix %s",
                    len(views),
                    self._view_prefix,
                    extra={"schema": schema},
                )
        return tuple(sorted(set(tables) | set(views)))


def match_column(columns: Iterable[str], column: str) -> str | None:
    """Return the catalog spelling of a column, matching case-insensitively."""

    folded = column.casefold()
    fallback: str | None = None
    for candidate in columns:
        if candidate == column:
            return candidate
        if fallback is None and candidate.casefold() == folded:
            fallback = candidate
    return fallback


def resolve_result_column(result_columns: Sequence[str], column: str) -> int | None:
    """Locate the requested column in a result set description.

    A result holding exactly one column is accepted even when its reported
    name differs from the request, since the statement selected only that
    column; the mismatch is logged.
    """

    if column in result_columns:
        return list(result_columns).index(column)
    if len(result_columns) == 1:
        LOG.warning(
            "Query for %s returned column named %s; using it",
            column,
            result_columns[0],
            extra={"requested": column, "returned": result_columns[0]},
        )
        return 0
    return None


def _first_column(rows: Iterable[Sequence[Any]]) -> tuple[str, ...]:
    return tuple(str(row[0]) for row in rows if row[0] is not None)


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)


__all__ = [
    "ProbeStrategy",
    "SchemaProber",
    "build_strategies",
    "match_column",
    "resolve_result_column",
]
