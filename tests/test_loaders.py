"""Tests for DataFrame and directory loaders."""
from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from gridoutlook.analytics.capacity import analyze_capacity
from gridoutlook.data.loaders import (
    ReadingValidationError,
    daily_grid_from_frame,
    load_directory,
    monthly_kpis_from_frame,
    station_readings_from_frame,
    unit_readings_from_frame,
)


def test_daily_grid_aliases_and_sub_grid_columns() -> None:
    df = pd.DataFrame(
        {
            "report_date": ["2026-03-01", "2026-03-02"],
            "evening_peak_on_bars_mw": [118.0, None],
            "evening_peak_suppressed_mw": ["121.5", "-"],
            "sub_grid_capacity_mw.DBIS": [160.0, 162.0],
        }
    )

    readings = daily_grid_from_frame(df, default_grid="DBIS")

    assert [r.date for r in readings] == [date(2026, 3, 1), date(2026, 3, 2)]
    assert readings[0].grid == "DBIS"
    assert readings[0].served_peak_mw == 118.0
    assert readings[0].suppressed_peak_mw == 121.5
    assert readings[1].served_peak_mw is None
    assert readings[1].sub_grid_capacity_mw == {"DBIS": 162.0}


def test_daily_grid_upstream_report_columns(engine_config, as_of) -> None:
    df = pd.DataFrame(
        {
            "report_date": ["2026-03-10"],
            "total_fossil_fuel_capacity_mw": ["180"],
            "total_dbis_capacity_mw": ["200"],
            "expected_peak_demand_mw": ["160"],
            "total_renewable_mwp": ["12.5"],
            "evening_peak_on_bars_mw": ["150"],
        }
    )

    [reading] = daily_grid_from_frame(df, default_grid="DBIS")

    assert reading.total_capacity_mw == 180.0
    assert reading.sub_grid_capacity_mw == {"DBIS": 200.0}
    assert reading.expected_peak_mw == 160.0
    assert reading.renewable_capacity_mw == 12.5

    [timeline] = analyze_capacity([reading], [], [], as_of, engine_config)
    assert timeline.grid == "DBIS"
    assert timeline.current_capacity_mw == 200.0
    assert timeline.reserve_margin_pct == 25.0
    assert timeline.risk_level == "safe"


def test_daily_grid_json_sub_grid_column() -> None:
    df = pd.DataFrame({"date": ["2026-03-01"], "grid": ["Essequibo"], "sub_grid_capacity_mw": ['{"Essequibo": 14}']})

    [reading] = daily_grid_from_frame(df, default_grid="DBIS")

    assert reading.grid == "Essequibo"
    assert reading.sub_grid_capacity_mw == {"Essequibo": 14.0}


def test_wide_monthly_layout_drops_blanks() -> None:
    df = pd.DataFrame(
        {
            "month": ["2025-11-01", "2025-12-01"],
            "Collection Rate %": [95.0, 97.0],
            "Affected Customers": [None, 400.0],
        }
    )

    points = monthly_kpis_from_frame(df)

    assert len(points) == 3
    assert {p.kpi_name for p in points} == {"Collection Rate %", "Affected Customers"}


def test_long_monthly_layout() -> None:
    df = pd.DataFrame({"month": ["2025-11-15"], "kpi_name": ["Peak Demand DBIS"], "value": ["181.2"]})

    [point] = monthly_kpis_from_frame(df)

    assert point.month == date(2025, 11, 1)
    assert point.value == 181.2


def test_bad_row_reports_source_and_row() -> None:
    df = pd.DataFrame({"date": ["2026-01-01", "not-a-date"], "station": ["Canefield", "Canefield"]})

    with pytest.raises(ReadingValidationError) as excinfo:
        station_readings_from_frame(df, source="stations.csv")

    assert excinfo.value.row == 2
    assert excinfo.value.source == "stations.csv"
    assert "stations.csv: row 2" in str(excinfo.value)


def test_unit_frame_integer_ids_become_labels() -> None:
    df = pd.DataFrame(
        {"report_date": ["2026-01-01"], "station": ["Kingston"], "unit_number": [3], "status": ["OFFLINE"], "upload_id": [7]}
    )

    [reading] = unit_readings_from_frame(df)

    assert reading.unit_id == "3"
    assert reading.status == "offline"
    assert reading.batch_id == 7


@pytest.mark.integration
def test_load_directory_fills_store(tmp_path, store) -> None:
    pd.DataFrame(
        {"date": ["2026-03-01", "2026-03-02"], "served_peak_mw": [110.0, 112.0], "total_capacity_mw": [150.0, 150.0]}
    ).to_csv(tmp_path / "daily_grid.csv", index=False)
    pd.DataFrame(
        {"date": ["2026-03-01"], "station": ["Canefield"], "units_online": [2], "total_units": [3], "batch_id": [11]}
    ).to_csv(tmp_path / "stations.csv", index=False)
    pd.DataFrame(
        {"month": ["2026-01-01", "2026-02-01"], "Collection Rate %": [95.0, 96.0]}
    ).to_csv(tmp_path / "monthly_kpis.csv", index=False)

    counts = load_directory(tmp_path, store, default_grid="DBIS")

    assert counts == {"daily_grid": 2, "stations": 1, "monthly_kpis": 2}
    daily = store.fetch_daily_grid_readings(date(2026, 1, 1), date(2026, 3, 31))
    assert [r.served_peak_mw for r in daily] == [110.0, 112.0]
    assert all(r.grid == "DBIS" for r in daily)
    # batch 11 was confirmed by the loader
    assert len(store.fetch_station_readings(date(2026, 1, 1), date(2026, 3, 31))) == 1
    assert len(store.fetch_monthly_kpis()) == 2


def test_load_directory_requires_directory(tmp_path, store) -> None:
    with pytest.raises(FileNotFoundError):
        load_directory(tmp_path / "missing", store, default_grid="DBIS")
