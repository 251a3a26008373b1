"""Tests for the round-robin sync scheduler."""

from __future__ import annotations

import time
from typing import Any, Callable, Iterator, Sequence

import pytest

from colsync.drivers import ConnectivityError, NotFoundError, QueryError, StatementListener
from colsync.models import ColumnInfo, ConnectionCheck, UnimplementedConnection
from colsync.registry import ConnectionRegistry
from colsync.scheduler import IDLE, SyncScheduler, TickReport
from colsync.store import SelectionStore


class _FakeDriver:
    """In-memory driver; values may be lists, exceptions or callables."""

    def __init__(self, name: str, columns: dict[tuple[str, str], Any] | None = None) -> None:
        self.name = name
        self.columns = dict(columns or {})
        self.fetches: list[tuple[str, str, int]] = []

    def check(self) -> ConnectionCheck:
        return ConnectionCheck(name=self.name, connected=True, latency_ms=1)

    def list_tables(self) -> tuple[str, ...]:
        return tuple(sorted({table for table, _ in self.columns}))

    def list_columns(self, table: str) -> tuple[str, ...]:
        return tuple(column for owner, column in self.columns if owner == table)

    def describe_columns(self, table: str, *, data_only: bool = False) -> tuple[ColumnInfo, ...]:
        return tuple(ColumnInfo(name=column) for column in self.list_columns(table))

    def fetch_column_values(
        self,
        table: str,
        column: str,
        limit: int,
        *,
        on_statement: StatementListener | None = None,
    ) -> Sequence[Any]:
        self.fetches.append((table, column, limit))
        if on_statement is not None:
            on_statement(f"SELECT {column} FROM {table}")
        value = self.columns.get((table, column))
        if value is None:
            raise NotFoundError(f"{table}.{column} not found")
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value()
        return list(value)[:limit]


def _registry(*drivers: _FakeDriver) -> ConnectionRegistry:
    by_name = {driver.name: driver for driver in drivers}
    return ConnectionRegistry(
        [UnimplementedConnection(name) for name in by_name],
        driver_factory=lambda connection: by_name[connection.name],
    )


@pytest.fixture
def store() -> Iterator[SelectionStore]:
    store = SelectionStore()
    yield store
    store.close()


def test_round_robin_visits_every_connection_once(store: SelectionStore) -> None:
    drivers = [_FakeDriver(name, {("t", "c"): [name]}) for name in ("A", "B", "C")]
    for driver in drivers:
        store.add(driver.name, "t", "c")
    scheduler = SyncScheduler(store, _registry(*drivers))

    reports = [scheduler.tick() for _ in drivers]

    assert sorted(report.connection for report in reports) == ["A", "B", "C"]
    assert all(len(driver.fetches) == 1 for driver in drivers)
    assert scheduler.index == 3


def test_end_to_end_single_group_is_picked_every_tick(store: SelectionStore) -> None:
    idle = _FakeDriver("A")
    busy = _FakeDriver("B", {("T", "C"): [1, 2, 3]})
    selection = store.add("B", "T", "C")
    scheduler = SyncScheduler(store, _registry(idle, busy))

    first = scheduler.tick()
    after_first = store.get(selection.id)
    second = scheduler.tick()

    assert first == TickReport(connection="B", synced=(selection.id,))
    assert second.connection == "B"
    assert after_first.snapshot == (1, 2, 3)
    assert after_first.last_synced_at is not None
    assert scheduler.status == IDLE
    assert len(busy.fetches) == 2
    assert idle.fetches == []


def test_failed_selection_keeps_previous_snapshot(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "a"): [1], ("t", "b"): [2]})
    failing = store.add("A", "t", "a")
    passing = store.add("A", "t", "b")
    scheduler = SyncScheduler(store, _registry(driver))
    scheduler.tick()
    before = store.get(failing.id)
    driver.columns[("t", "a")] = QueryError("deadlock victim")
    driver.columns[("t", "b")] = [3]

    report = scheduler.tick()

    assert report.failed == (failing.id,)
    assert report.synced == (passing.id,)
    assert store.get(failing.id) == before
    assert store.get(passing.id).snapshot == (3,)


def test_connectivity_error_aborts_rest_of_connection(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "a"): ConnectivityError("login timeout"), ("t", "b"): [1]})
    first = store.add("A", "t", "a")
    second = store.add("A", "t", "b")
    scheduler = SyncScheduler(store, _registry(driver))

    report = scheduler.tick()

    assert report.aborted is True
    assert report.failed == (first.id, second.id)
    assert driver.fetches == [("t", "a", 365)]
    assert store.get(second.id).snapshot == ()
    assert scheduler.status == IDLE


def test_unimplemented_connection_aborts_without_raising(store: SelectionStore) -> None:
    selection = store.add("JOBSCOPE", "jobs", "id")
    scheduler = SyncScheduler(store, ConnectionRegistry([UnimplementedConnection("JOBSCOPE")]))

    report = scheduler.tick()

    assert report.aborted is True
    assert report.failed == (selection.id,)
    assert store.get(selection.id).last_synced_at is None


def test_unknown_connection_is_reported_as_failure(store: SelectionStore) -> None:
    selection = store.add("RETIRED", "t", "c")
    scheduler = SyncScheduler(store, _registry(_FakeDriver("A")))

    report = scheduler.tick()

    assert report == TickReport(connection="RETIRED", failed=(selection.id,), aborted=True)


def test_empty_store_still_advances_index(store: SelectionStore) -> None:
    scheduler = SyncScheduler(store, _registry(_FakeDriver("A")))

    report = scheduler.tick()

    assert report.connection is None
    assert scheduler.index == 1
    assert scheduler.status == IDLE


def test_snapshot_keeps_first_values_up_to_cap(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "c"): lambda: list(range(500))})
    selection = store.add("A", "t", "c")
    scheduler = SyncScheduler(store, _registry(driver))

    scheduler.tick()

    snapshot = store.get(selection.id).snapshot
    assert len(snapshot) == 365
    assert snapshot == tuple(range(365))
    assert driver.fetches == [("t", "c", 365)]


def test_repeated_fetch_overwrites_without_accumulating(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "c"): ["x", "y"]})
    selection = store.add("A", "t", "c")
    scheduler = SyncScheduler(store, _registry(driver))

    scheduler.tick()
    first = store.get(selection.id).snapshot
    scheduler.tick()

    assert store.get(selection.id).snapshot == first == ("x", "y")


def test_duplicate_selections_are_synced_independently(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "c"): [1]})
    first = store.add("A", "t", "c")
    second = store.add("A", "t", "c")
    scheduler = SyncScheduler(store, _registry(driver))

    report = scheduler.tick()

    assert report.synced == (first.id, second.id)


def test_tick_is_skipped_while_another_is_in_flight(store: SelectionStore) -> None:
    nested: list[TickReport] = []
    scheduler: SyncScheduler | None = None

    def _reenter() -> list[int]:
        assert scheduler is not None
        nested.append(scheduler.tick())
        return [1]

    driver = _FakeDriver("A", {("t", "c"): _reenter})
    store.add("A", "t", "c")
    scheduler = SyncScheduler(store, _registry(driver))

    report = scheduler.tick()

    assert report.connection == "A"
    assert nested == [TickReport(connection=None, skipped=True)]
    assert scheduler.index == 1


def test_status_listener_sees_each_phase(store: SelectionStore) -> None:
    driver = _FakeDriver("B", {("T", "C"): [1]})
    store.add("B", "T", "C")
    scheduler = SyncScheduler(store, _registry(driver))
    seen: list[str] = []

    unsubscribe = scheduler.subscribe(seen.append)
    scheduler.tick()
    unsubscribe()
    scheduler.tick()

    assert seen == ["Starting sync cycle", "Connecting to B", "B: SELECT C FROM T", IDLE]


def test_failing_listener_does_not_break_tick(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "c"): [1]})
    selection = store.add("A", "t", "c")
    scheduler = SyncScheduler(store, _registry(driver))

    def _explode(status: str) -> None:
        raise RuntimeError("listener bug")

    scheduler.subscribe(_explode)
    scheduler.tick()

    assert store.get(selection.id).snapshot == (1,)


def test_deleted_selection_is_skipped(store: SelectionStore) -> None:
    holder: dict[str, int] = {}

    def _delete_self() -> list[int]:
        store.delete(holder["id"])
        return [1]

    driver = _FakeDriver("A", {("t", "c"): _delete_self})
    holder["id"] = store.add("A", "t", "c").id
    scheduler = SyncScheduler(store, _registry(driver))

    report = scheduler.tick()

    assert report.synced == ()
    assert report.failed == ()


def test_timer_thread_runs_ticks_until_stopped(store: SelectionStore) -> None:
    driver = _FakeDriver("A", {("t", "c"): [42]})
    selection = store.add("A", "t", "c")
    scheduler = SyncScheduler(store, _registry(driver), interval=0.01)

    scheduler.start()
    try:
        assert scheduler.running is True
        _wait_for(lambda: store.get(selection.id).snapshot == (42,))
    finally:
        scheduler.stop()

    assert scheduler.running is False


def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        time.sleep(0.01)
