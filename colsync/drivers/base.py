"""Driver protocol and the error taxonomy shared by every backend."""

from __future__ import annotations

from typing import Callable, Protocol, Sequence, runtime_checkable

from colsync.models import ColumnInfo, ConnectionCheck, Scalar, UnimplementedConnection

StatementListener = Callable[[str], None]


class ColsyncError(RuntimeError):
    """Base class for driver and sync failures."""


class ConnectivityError(ColsyncError):
    """Raised when a connection cannot be established."""


class NotFoundError(ColsyncError):
    """Raised when a table or column is absent after probing."""


class QueryError(ColsyncError):
    """Raised when a read fails against an otherwise valid reference."""


class UnsupportedError(ColsyncError):
    """Raised for connections whose kind has no working driver."""


@runtime_checkable
class Driver(Protocol):
    """Capability contract implemented per connection kind."""

    name: str

    def check(self) -> ConnectionCheck:
        """Open the source once and report whether it answered."""

    def list_tables(self) -> tuple[str, ...]:
        """Return table identifiers exposed by the source."""

    def list_columns(self, table: str) -> tuple[str, ...]:
        """Return the ordered column names for a table."""

    def describe_columns(self, table: str, *, data_only: bool = False) -> tuple[ColumnInfo, ...]:
        """Return columns with their first value, optionally only populated ones."""

    def fetch_column_values(
        self,
        table: str,
        column: str,
        limit: int,
        *,
        on_statement: StatementListener | None = None,
    ) -> Sequence[Scalar]:
        """Read up to ``limit`` values of one column in source order."""


class UnavailableDriver:
    """Driver for reserved/unconfigured connections; every call is unsupported."""

    def __init__(self, connection: UnimplementedConnection) -> None:
        self.name = connection.name
        self._reason = connection.reason

    def check(self) -> ConnectionCheck:
        return ConnectionCheck(name=self.name, connected=False, latency_ms=0, error=self._message())

    def list_tables(self) -> tuple[str, ...]:
        raise UnsupportedError(self._message())

    def list_columns(self, table: str) -> tuple[str, ...]:
        raise UnsupportedError(self._message())

    def describe_columns(self, table: str, *, data_only: bool = False) -> tuple[ColumnInfo, ...]:
        raise UnsupportedError(self._message())

    def fetch_column_values(
        self,
        table: str,
        column: str,
        limit: int,
        *,
        on_statement: StatementListener | None = None,
    ) -> Sequence[Scalar]:
        raise UnsupportedError(self._message())

    def _message(self) -> str:
        return f"Connection '{self.name}' is unavailable: {self._reason}"


__all__ = [
    "ColsyncError",
    "ConnectivityError",
    "Driver",
    "NotFoundError",
    "QueryError",
    "StatementListener",
    "UnavailableDriver",
    "UnsupportedError",
]
