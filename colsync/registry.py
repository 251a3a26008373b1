"""Registry mapping logical connection names to drivers."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from .drivers import Driver, driver_for
from .models import Connection, ConnectionCheck

LOG = logging.getLogger(__name__)

DriverFactory = Callable[[Connection], Driver]


class ConnectionRegistry:
    """Fixed set of connections with the last known liveness of each.

    Only check results are remembered; drivers open their own handles per call.
    """

    def __init__(
        self,
        connections: Iterable[Connection],
        *,
        driver_factory: DriverFactory = driver_for,
    ) -> None:
        self._connections: dict[str, Connection] = {}
        self._drivers: dict[str, Driver] = {}
        for connection in connections:
            if connection.name in self._connections:
                raise ValueError(f"Duplicate connection name '{connection.name}'.")
            self._connections[connection.name] = connection
            self._drivers[connection.name] = driver_factory(connection)
        self._liveness: dict[str, ConnectionCheck] = {}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._connections)

    def __contains__(self, name: object) -> bool:
        return name in self._connections

    def connection(self, name: str) -> Connection:
        try:
            return self._connections[name]
        except KeyError:
            raise ValueError(f"Connection '{name}' not found.") from None

    def driver(self, name: str) -> Driver:
        try:
            return self._drivers[name]
        except KeyError:
            raise ValueError(f"Connection '{name}' not found.") from None

    def check(self, name: str) -> ConnectionCheck:
        """Test one connection and remember the outcome."""

        result = self.driver(name).check()
        self._liveness[name] = result
        if result.connected:
            LOG.info("Connection %s answered in %d ms", name, result.latency_ms)
        else:
            LOG.warning("Connection %s failed: %s", name, result.error)
        return result

    async def check_all(self) -> dict[str, ConnectionCheck]:
        """Test every connection concurrently; no store writes are involved."""

        names = self.names
        results = await asyncio.gather(*(asyncio.to_thread(self.check, name) for name in names))
        return dict(zip(names, results))

    def liveness(self) -> dict[str, bool]:
        """Last known reachability; unchecked connections report False."""

        return {
            name: bool(self._liveness.get(name) and self._liveness[name].connected)
            for name in self._connections
        }

    def last_check(self, name: str) -> ConnectionCheck | None:
        return self._liveness.get(name)


__all__ = ["ConnectionRegistry", "DriverFactory"]
