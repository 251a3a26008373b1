"""Core facade used by the HTTP layer and the terminal monitor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Protocol

from .config import AppConfig, resolve_connections
from .drivers import ColsyncError, UnsupportedError
from .models import ColumnInfo, ConnectionCheck, RelationalConnection, Selection
from .registry import ConnectionRegistry
from .scheduler import SyncScheduler, TickReport
from .store import SelectionStore

if TYPE_CHECKING:
    from .query import QueryResult

LOG = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """Interface implemented by ad-hoc query executors."""

    def execute(self, connection: RelationalConnection, sql: str) -> "QueryResult": ...


class SyncService:
    """Wires the registry, store and scheduler for one process lifetime.

    Selections are purged when the service starts; they are defined fresh
    each session.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        environ: Mapping[str, str] | None = None,
        registry: ConnectionRegistry | None = None,
        store: SelectionStore | None = None,
        query_executor: QueryExecutor | None = None,
    ) -> None:
        self._config = config
        self._registry = registry or ConnectionRegistry(resolve_connections(config, environ))
        self._store = store or SelectionStore(config.store_path)
        self._store.clear()
        self._scheduler = SyncScheduler(self._store, self._registry, interval=config.sync_interval)
        self._query_executor = query_executor

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def store(self) -> SelectionStore:
        return self._store

    @property
    def scheduler(self) -> SyncScheduler:
        return self._scheduler

    def start(self) -> None:
        self._scheduler.start()

    def close(self) -> None:
        """Stop the scheduler and release the store."""

        self._scheduler.stop()
        self._store.close()

    def list_connections(self) -> tuple[str, ...]:
        return self._registry.names

    def test_connection(self, name: str) -> ConnectionCheck:
        return self._registry.check(name)

    async def test_all_connections(self) -> dict[str, ConnectionCheck]:
        return await self._registry.check_all()

    def connection_status(self) -> dict[str, bool]:
        return self._registry.liveness()

    def list_tables(self, name: str) -> tuple[str, ...]:
        return self._registry.driver(name).list_tables()

    def list_columns(self, name: str, table: str, data_only: bool = False) -> tuple[ColumnInfo, ...]:
        return self._registry.driver(name).describe_columns(table, data_only=data_only)

    def create_selection(self, name: str, table: str, column: str) -> Selection:
        """Store a selection and fill its snapshot once before returning it.

        A failed initial fetch is logged; the selection keeps an empty
        snapshot until a later tick succeeds.
        """

        driver = self._registry.driver(name)
        selection = self._store.add(name, table, column)
        try:
            return self._scheduler.sync_selection(selection, driver, publish=False)
        except ColsyncError as exc:
            LOG.warning(
                "Error fetching initial values for %s.%s.%s: %s",
                name,
                table,
                column,
                exc,
                extra={"selection": selection.id},
            )
        return self._store.get(selection.id)

    def delete_selection(self, selection_id: int) -> bool:
        return self._store.delete(selection_id)

    def list_selections(self) -> tuple[Selection, ...]:
        return self._store.list()

    def current_status(self) -> str:
        return self._scheduler.status

    def sync_now(self) -> TickReport:
        """Run one tick immediately, subject to the in-flight guard."""

        return self._scheduler.tick()

    def run_query(self, name: str, sql: str) -> "QueryResult":
        """Pass SQL through to a relational connection for diagnostics."""

        connection = self._registry.connection(name)
        if not isinstance(connection, RelationalConnection):
            raise UnsupportedError(f"Connection '{name}' does not accept SQL queries.")
        if self._query_executor is None:
            from .query import OdbcQueryExecutor

            self._query_executor = OdbcQueryExecutor()
        return self._query_executor.execute(connection, sql)


__all__ = ["QueryExecutor", "SyncService"]
