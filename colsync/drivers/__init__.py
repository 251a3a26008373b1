"""Drivers exposing one capability contract over dissimilar sources."""

from __future__ import annotations

from typing import assert_never

from colsync.models import (
    Connection,
    LegacyFileConnection,
    RelationalConnection,
    UnimplementedConnection,
)

from .base import (
    ColsyncError,
    ConnectivityError,
    Driver,
    NotFoundError,
    QueryError,
    StatementListener,
    UnavailableDriver,
    UnsupportedError,
)


def driver_for(connection: Connection) -> Driver:
    """Return the driver matching a connection variant.

    Backend modules are imported on demand so a missing ODBC manager only
    affects relational connections.
    """

    if isinstance(connection, RelationalConnection):
        from .relational import RelationalDriver

        return RelationalDriver(connection)
    if isinstance(connection, LegacyFileConnection):
        from .legacy import LegacyFileDriver

        return LegacyFileDriver(connection)
    if isinstance(connection, UnimplementedConnection):
        return UnavailableDriver(connection)
    assert_never(connection)


__all__ = [
    "ColsyncError",
    "ConnectivityError",
    "Driver",
    "NotFoundError",
    "QueryError",
    "StatementListener",
    "UnavailableDriver",
    "UnsupportedError",
    "driver_for",
]
