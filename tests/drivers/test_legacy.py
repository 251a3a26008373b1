"""Tests for the Access file driver."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from colsync.drivers import ConnectivityError, NotFoundError, QueryError
from colsync.drivers.legacy import LegacyFileDriver
from colsync.models import LegacyFileConnection

_TABLES: dict[str, dict[str, list[Any]]] = {
    "Customers": {
        "CustNo": ["C1", "C2", "C3"],
        "Notes": [None, "", "  "],
        "Balance": [0, 12.5, 0],
    },
    "Archive": {"OrderNo": [], "Total": []},
    "Blank": {"Id": [], "Label": []},
    "MSysObjects": {"Id": [1]},
    "~TMPCLP1": {"Id": [1]},
}


class _FakeParser:
    opened: list[str] = []
    broken: set[str] = set()

    def __init__(self, path: str) -> None:
        type(self).opened.append(path)
        self.catalog = {name: index for index, name in enumerate(_TABLES)}

    def get_table(self, table: str) -> SimpleNamespace:
        columns = {index: SimpleNamespace(col_name_str=name) for index, name in enumerate(_TABLES[table])}
        return SimpleNamespace(columns=columns)

    def parse_table(self, table: str) -> dict[str, Any] | None:
        if table in self.broken:
            raise ValueError("corrupt page")
        if table == "Archive":
            # Only deleted records on the data pages.
            return {}
        if table == "Blank":
            return {column: "" for column in _TABLES[table]}
        return {column: list(values) for column, values in _TABLES[table].items()}


@pytest.fixture
def driver(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> LegacyFileDriver:
    database = tmp_path / "por.mdb"
    database.write_bytes(b"\x00")
    _FakeParser.opened = []
    _FakeParser.broken = set()
    monkeypatch.setattr("colsync.drivers.legacy.AccessParser", _FakeParser)
    return LegacyFileDriver(LegacyFileConnection(name="POINT_OF_RENTAL", path=database))


def test_list_tables_hides_system_tables(driver: LegacyFileDriver) -> None:
    assert driver.list_tables() == ("Customers", "Archive", "Blank")


def test_file_is_reopened_on_every_call(driver: LegacyFileDriver) -> None:
    driver.list_tables()
    driver.fetch_column_values("Customers", "CustNo", 365)

    assert len(_FakeParser.opened) == 2


def test_fetch_honours_limit_and_reports_statement(driver: LegacyFileDriver) -> None:
    statements: list[str] = []

    values = driver.fetch_column_values("Customers", "CustNo", 2, on_statement=statements.append)

    assert values == ["C1", "C2"]
    assert statements == ["read Customers.CustNo from por.mdb"]


def test_missing_table_and_column_raise_not_found(driver: LegacyFileDriver) -> None:
    with pytest.raises(NotFoundError):
        driver.fetch_column_values("Orders", "Id", 10)
    with pytest.raises(NotFoundError):
        driver.fetch_column_values("Customers", "Phone", 10)


def test_parse_failures_raise_query_error(driver: LegacyFileDriver) -> None:
    _FakeParser.broken = {"Customers"}

    with pytest.raises(QueryError):
        driver.describe_columns("Customers")


def test_describe_columns_can_skip_empty_columns(driver: LegacyFileDriver) -> None:
    everything = driver.describe_columns("Customers")
    populated = driver.describe_columns("Customers", data_only=True)

    assert [(info.name, info.first_value) for info in everything] == [
        ("CustNo", "C1"),
        ("Notes", None),
        ("Balance", 0),
    ]
    assert [info.name for info in populated] == ["CustNo", "Balance"]


def test_missing_file_is_a_connectivity_failure(tmp_path: Path) -> None:
    driver = LegacyFileDriver(LegacyFileConnection(name="POINT_OF_RENTAL", path=tmp_path / "absent.mdb"))

    with pytest.raises(ConnectivityError):
        driver.list_tables()
    check = driver.check()
    assert check.connected is False
    assert check.error and "does not exist" in check.error


def test_check_reports_success(driver: LegacyFileDriver) -> None:
    check = driver.check()

    assert check.connected is True
    assert check.error is None
    assert check.checked_at is not None


def test_columns_come_from_table_definition(driver: LegacyFileDriver) -> None:
    assert driver.list_columns("Customers") == ("CustNo", "Notes", "Balance")
    assert driver.list_columns("Archive") == ("OrderNo", "Total")


def test_tables_without_live_rows_yield_empty_values(driver: LegacyFileDriver) -> None:
    assert driver.fetch_column_values("Archive", "Total", 365) == []
    assert driver.fetch_column_values("Blank", "Label", 365) == []
    assert [(info.name, info.first_value) for info in driver.describe_columns("Blank")] == [
        ("Id", None),
        ("Label", None),
    ]
    assert driver.describe_columns("Archive", data_only=True) == ()
