"""Tests for the DuckDB reading store and forecast result tables."""
from __future__ import annotations

from datetime import date

import pytest

from gridoutlook.data.records import (
    CapacityTimeline,
    ForecastBundle,
    KpiForecastPoint,
    LoadSheddingSummary,
    UnitRisk,
)
from gridoutlook.store.base import RESULT_TABLES, ForecastRepository, PersistenceError
from gridoutlook.store.duckdb_store import DuckDBForecastStore

pytestmark = pytest.mark.integration

GEN = date(2026, 3, 15)


def _unit(unit_id: str, level: str, score: int) -> UnitRisk:
    return UnitRisk(
        station="Canefield",
        engine="Wartsila",
        unit_id=unit_id,
        derated_mw=5.0,
        uptime_pct=80.0,
        failure_count=2,
        mtbf_days=10.0,
        days_since_last_failure=3,
        predicted_failure_days=7,
        risk_level=level,
        risk_score=score,
    )


def _bundle(fingerprint: str = "abc", kpi_value: float = 97.5) -> ForecastBundle:
    return ForecastBundle(
        generation_date=GEN,
        input_fingerprint=fingerprint,
        capacity_timeline=(
            CapacityTimeline("DBIS", 160.0, 160.0, date(2026, 9, 1), 12.5, 6, "warning"),
        ),
        load_shedding=LoadSheddingSummary(90, 4.2, 11.0, 30, "increasing", 6.1),
        unit_risk=(_unit("1", "high", 85), _unit("2", "medium", 40), _unit("3", "low", 0)),
        kpi_forecasts=(
            KpiForecastPoint("Collection Rate %", date(2026, 4, 1), kpi_value, 95.0, 100.0, "increasing"),
        ),
    )


def test_store_satisfies_repository_contract(store) -> None:
    assert isinstance(store, ForecastRepository)


def test_unconfirmed_batches_are_invisible(store, make_station_days, make_unit_days) -> None:
    store.upsert_station_readings(make_station_days("Canefield", [True] * 3, batch_id=1))
    store.upsert_station_readings(make_station_days("Kingston", [True] * 3, batch_id=2))
    store.upsert_station_readings(make_station_days("Onverwagt", [True] * 3))
    store.upsert_unit_readings(make_unit_days("Canefield", "1", ["online"] * 3, batch_id=1))
    store.register_batch(1)
    store.confirm_batch(2)

    stations = store.fetch_station_readings(date(2026, 1, 1), GEN)
    units = store.fetch_unit_readings(date(2026, 1, 1), GEN)

    assert {r.station for r in stations} == {"Kingston", "Onverwagt"}
    assert units == []

    store.confirm_batch(1)
    assert len(store.fetch_unit_readings(date(2026, 1, 1), GEN)) == 3


def test_draft_batch_does_not_hide_confirmed_day(store, make_station_days, make_unit_days) -> None:
    confirmed = make_station_days("Canefield", [True, True, True], batch_id=1)
    store.upsert_station_readings(confirmed)
    store.upsert_unit_readings(make_unit_days("Canefield", "1", ["online"] * 3, batch_id=1))
    store.confirm_batch(1)

    store.upsert_station_readings(make_station_days("Canefield", [False], batch_id=2))
    store.upsert_unit_readings(make_unit_days("Canefield", "1", ["offline"], batch_id=2))
    store.register_batch(2)

    stations = store.fetch_station_readings(date(2026, 1, 1), GEN)
    units = store.fetch_unit_readings(date(2026, 1, 1), GEN)
    assert stations == confirmed
    assert [u.status for u in units] == ["online"] * 3

    # once confirmed, the later batch supersedes the earlier one for that day
    store.confirm_batch(2)
    stations = store.fetch_station_readings(date(2026, 1, 1), GEN)
    units = store.fetch_unit_readings(date(2026, 1, 1), GEN)
    assert len(stations) == 3
    assert stations[-1].batch_id == 2
    assert not stations[-1].is_online
    assert [u.status for u in units] == ["online", "online", "offline"]


def test_daily_readings_roundtrip_sub_grids(store, make_grid_days) -> None:
    rows = make_grid_days([110.0, 111.0], sub_grid_capacity_mw={"DBIS": 150.0, "Berbice": 30.0})
    assert store.upsert_daily_grid_readings(rows) == 2

    fetched = store.fetch_daily_grid_readings(date(2026, 3, 1), GEN)

    assert fetched == rows
    assert fetched[0].sub_grid_capacity_mw == {"DBIS": 150.0, "Berbice": 30.0}


def test_upsert_replaces_same_key(store, make_kpi_series) -> None:
    store.upsert_monthly_kpis(make_kpi_series("Collection Rate %", [90.0]))
    store.upsert_monthly_kpis(make_kpi_series("Collection Rate %", [92.0]))

    [point] = store.fetch_monthly_kpis()
    assert point.value == 92.0


def test_write_and_load_generation(store) -> None:
    counts = store.write_bundle(_bundle())

    assert set(counts) == set(RESULT_TABLES)
    assert counts["forecast_unit_risk"] == 2
    assert counts["forecast_load_shedding"] == 1
    assert counts["forecast_demand"] == 0
    assert store.latest_generation_date() == GEN

    stored = store.load_generation(GEN)
    assert stored["forecast_generation"] == [{"generation_date": GEN, "input_fingerprint": "abc"}]
    assert [u["unit_id"] for u in stored["forecast_unit_risk"]] == ["1", "2"]
    assert stored["forecast_capacity"][0]["shortfall_month"] == date(2026, 9, 1)
    assert stored["forecast_load_shedding"][0]["trend"] == "increasing"


def test_rewrite_replaces_previous_rows(store) -> None:
    store.write_bundle(_bundle(fingerprint="first", kpi_value=90.0))
    store.write_bundle(_bundle(fingerprint="second", kpi_value=99.0))

    stored = store.load_generation(GEN)
    assert [g["input_fingerprint"] for g in stored["forecast_generation"]] == ["second"]
    assert [k["projected_value"] for k in stored["forecast_kpi"]] == [99.0]
    assert len(stored["forecast_unit_risk"]) == 2


def test_failed_write_keeps_previous_generation(store, monkeypatch) -> None:
    store.write_bundle(_bundle(fingerprint="good", kpi_value=90.0))
    original = store._insert

    def failing_insert(table, generation_date, records):
        if table == "forecast_kpi":
            raise RuntimeError("disk full")
        return original(table, generation_date, records)

    monkeypatch.setattr(store, "_insert", failing_insert)

    with pytest.raises(PersistenceError) as excinfo:
        store.write_bundle(_bundle(fingerprint="bad", kpi_value=99.0))

    assert excinfo.value.operation == "write"
    assert excinfo.value.table == "forecast_kpi"
    stored = store.load_generation(GEN)
    assert [g["input_fingerprint"] for g in stored["forecast_generation"]] == ["good"]
    assert [k["projected_value"] for k in stored["forecast_kpi"]] == [90.0]
    assert len(stored["forecast_unit_risk"]) == 2


def test_empty_store_has_no_generation(store) -> None:
    assert store.latest_generation_date() is None
    assert store.fetch_daily_grid_readings(date(2026, 1, 1), GEN) == []


def test_in_memory_store() -> None:
    with DuckDBForecastStore(":memory:") as memory_store:
        assert memory_store.fetch_monthly_kpis() == []


def test_env_path_override(tmp_path, monkeypatch) -> None:
    path = tmp_path / "nested" / "env.duckdb"
    monkeypatch.setenv("GRIDOUTLOOK_DUCKDB_PATH", str(path))

    with DuckDBForecastStore() as env_store:
        assert env_store.duckdb_path == str(path)
    assert path.exists()
