"""Round-robin sync scheduler that refreshes selection snapshots."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from .drivers import ConnectivityError, Driver, NotFoundError, QueryError, UnsupportedError
from .models import SNAPSHOT_LIMIT, Selection
from .registry import ConnectionRegistry
from .store import SelectionStore

LOG = logging.getLogger(__name__)

IDLE = "Idle"

StatusListener = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class TickReport:
    """What a single tick did."""

    connection: str | None
    synced: tuple[int, ...] = ()
    failed: tuple[int, ...] = ()
    aborted: bool = False
    skipped: bool = False


class SyncScheduler:
    """Owns the round-robin index, the status string and the timer thread.

    Each tick picks one connection that has selections and syncs its
    selections one after another. Only one tick runs at a time.
    """

    def __init__(
        self,
        store: SelectionStore,
        registry: ConnectionRegistry,
        *,
        interval: float = 2.0,
        limit: int = SNAPSHOT_LIMIT,
    ) -> None:
        self._store = store
        self._registry = registry
        self._interval = interval
        self._limit = min(limit, SNAPSHOT_LIMIT)
        self._status = IDLE
        self._index = 0
        self._in_flight = threading.Lock()
        self._listeners: set[StatusListener] = set()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def status(self) -> str:
        """Human-readable description of the current activity."""

        return self._status

    @property
    def index(self) -> int:
        """Round-robin position used by the next tick."""

        return self._index

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Subscribe to status changes; returns an unsubscribe handle."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def start(self) -> None:
        """Launch the timer thread (no-op when already running)."""

        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_loop, name="colsync-scheduler", daemon=True)
        self._thread.start()
        LOG.info("Scheduler started with %.1fs interval", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the timer thread and wait for the current tick to finish."""

        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        self._thread = None

    def tick(self) -> TickReport:
        """Run one sync pass unless another pass is still in flight."""

        if not self._in_flight.acquire(blocking=False):
            LOG.info("Previous sync pass still running; skipping tick")
            return TickReport(connection=None, skipped=True)
        try:
            return self._run_tick()
        finally:
            self._in_flight.release()

    def sync_selection(
        self,
        selection: Selection,
        driver: Driver | None = None,
        *,
        publish: bool = True,
    ) -> Selection:
        """Fetch one selection's column and overwrite its snapshot.

        Driver errors propagate and leave the stored snapshot untouched.
        """

        driver = driver or self._registry.driver(selection.connection_name)
        prefix = selection.connection_name

        def _on_statement(statement: str) -> None:
            self._publish(f"{prefix}: {statement}")

        values = driver.fetch_column_values(
            selection.table_name,
            selection.column_name,
            self._limit,
            on_statement=_on_statement if publish else None,
        )
        return self._store.update_snapshot(selection.id, list(values)[: self._limit])

    def _run_tick(self) -> TickReport:
        self._publish("Starting sync cycle")
        groups = _group_by_connection(self._store.list())
        position = self._index
        self._index += 1
        if not groups:
            self._publish(IDLE)
            return TickReport(connection=None)
        names = list(groups)
        name = names[position % len(names)]
        try:
            return self._sync_connection(name, groups[name])
        finally:
            self._publish(IDLE)

    def _sync_connection(self, name: str, selections: Sequence[Selection]) -> TickReport:
        self._publish(f"Connecting to {name}")
        ids = tuple(selection.id for selection in selections)
        if name not in self._registry:
            LOG.warning("Selections reference unknown connection %s", name, extra={"selections": ids})
            return TickReport(connection=name, failed=ids, aborted=True)
        driver = self._registry.driver(name)
        synced: list[int] = []
        failed: list[int] = []
        for position, selection in enumerate(selections):
            target = f"{name}.{selection.table_name}.{selection.column_name}"
            try:
                self.sync_selection(selection, driver)
            except (NotFoundError, QueryError) as exc:
                LOG.warning("Error syncing %s: %s", target, exc, extra={"selection": selection.id})
                failed.append(selection.id)
                continue
            except KeyError:
                LOG.info("Selection %d was deleted during sync", selection.id)
                continue
            except (ConnectivityError, UnsupportedError) as exc:
                LOG.error("Aborting sync of %s: %s", name, exc, extra={"selection": selection.id})
                failed.extend(item.id for item in selections[position:])
                return TickReport(connection=name, synced=tuple(synced), failed=tuple(failed), aborted=True)
            synced.append(selection.id)
        LOG.info(
            "Synced %d of %d selections for %s",
            len(synced),
            len(selections),
            name,
            extra={"failed": tuple(failed)},
        )
        return TickReport(connection=name, synced=tuple(synced), failed=tuple(failed))

    def _run_loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.tick()
            except Exception:
                LOG.exception("Sync tick failed")

    def _publish(self, status: str) -> None:
        self._status = status
        for listener in tuple(self._listeners):
            try:
                listener(status)
            except Exception:
                LOG.exception("Status listener failed", extra={"status": status})


def _group_by_connection(selections: Sequence[Selection]) -> dict[str, list[Selection]]:
    groups: dict[str, list[Selection]] = {}
    for selection in selections:
        groups.setdefault(selection.connection_name, []).append(selection)
    return groups


__all__ = ["IDLE", "StatusListener", "SyncScheduler", "TickReport"]
