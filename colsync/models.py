"""Shared dataclasses used across driver/store/scheduler modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Literal, Union

SNAPSHOT_LIMIT = 365

Scalar = Union[int, float, str, bool, None]


class ConnectionKind(str, Enum):
    """Driver families a connection can be bound to."""

    RELATIONAL = "relational"
    LEGACY_FILE = "legacy-file"
    UNIMPLEMENTED = "unimplemented"


@dataclass(frozen=True, slots=True)
class RelationalConnection:
    """Connection reached through an ODBC connection string."""

    name: str
    connection_string: str
    default_schema: str | None = "dbo"
    limit_style: Literal["top", "limit"] = "limit"
    view_prefix: str | None = None

    @property
    def kind(self) -> ConnectionKind:
        return ConnectionKind.RELATIONAL


@dataclass(frozen=True, slots=True)
class LegacyFileConnection:
    """Connection backed by an Access/Jet database file on disk."""

    name: str
    path: Path

    @property
    def kind(self) -> ConnectionKind:
        return ConnectionKind.LEGACY_FILE


@dataclass(frozen=True, slots=True)
class UnimplementedConnection:
    """Reserved or unconfigured connection; every capability is unavailable."""

    name: str
    reason: str = "connection kind is not implemented"

    @property
    def kind(self) -> ConnectionKind:
        return ConnectionKind.UNIMPLEMENTED


Connection = Union[RelationalConnection, LegacyFileConnection, UnimplementedConnection]


@dataclass(frozen=True, slots=True)
class Selection:
    """A (connection, table, column) reference with its rolling snapshot."""

    id: int
    connection_name: str
    table_name: str
    column_name: str
    snapshot: tuple[Scalar, ...] = ()
    last_synced_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Columns discovered for a table plus the strategy that found them."""

    table: str
    columns: tuple[str, ...]
    strategy: str
    schema: str | None = None
    catalog_table: str | None = None
    attempts: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Column name and the first value the source returned for it."""

    name: str
    first_value: Scalar = None


@dataclass(frozen=True, slots=True)
class ConnectionCheck:
    """Outcome of a connection test."""

    name: str
    connected: bool
    latency_ms: int
    error: str | None = None
    checked_at: datetime | None = None


def has_data(value: object) -> bool:
    """Return True when a value is meaningful for column listings."""

    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float, Decimal)) and value == 0:
        return False
    return str(value).strip() != ""


def to_scalar(value: object) -> Scalar:
    """Coerce a driver value into something JSON can store."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


__all__ = [
    "ColumnInfo",
    "Connection",
    "ConnectionCheck",
    "ConnectionKind",
    "LegacyFileConnection",
    "ProbeResult",
    "RelationalConnection",
    "SNAPSHOT_LIMIT",
    "Scalar",
    "Selection",
    "UnimplementedConnection",
    "has_data",
    "to_scalar",
]
