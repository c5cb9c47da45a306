"""Tests for the per-grid demand projection."""
from __future__ import annotations

from datetime import date

import pytest

from gridoutlook.analytics.demand import DAILY, MONTHLY, forecast_demand, forecast_grid_demand
from gridoutlook.utils.config import DemandConfig, GridConfig


def test_daily_series_projects_thirty_day_steps(make_grid_days, engine_config, as_of) -> None:
    daily = make_grid_days([100.0 + i for i in range(10)])

    points = forecast_demand(daily, [], as_of, engine_config)

    assert len(points) == 24
    assert {p.grid for p in points} == {"DBIS"}
    assert {p.data_source for p in points} == {DAILY}

    first = points[0]
    # slope 1, intercept 100, x = n + 30 = 40
    assert first.projected_peak_mw == 140.0
    assert first.projected_month == date(2026, 4, 1)
    assert first.confidence_low_mw == 134.3
    assert first.confidence_high_mw == 145.7
    # 1 MW/day * 30 days over a recent mean of 104.5 MW
    assert first.growth_rate_pct == 28.71

    last = points[-1]
    assert last.projected_month == date(2028, 3, 1)
    assert last.projected_peak_mw == pytest.approx(100.0 + 10 + 24 * 30)


def test_band_always_brackets_projection(make_grid_days, engine_config, as_of) -> None:
    daily = make_grid_days([80.0, 95.0, 90.0, 102.0, 99.0, 110.0, 104.0, 112.0])

    for point in forecast_demand(daily, [], as_of, engine_config):
        assert point.confidence_low_mw <= point.projected_peak_mw <= point.confidence_high_mw


def test_falls_back_to_monthly_kpi_below_seven_daily_points(
    make_grid_days, make_kpi_series, engine_config, as_of
) -> None:
    daily = make_grid_days([100.0, 101.0, 102.0, 103.0, 104.0])
    monthly = make_kpi_series("Peak Demand DBIS", [100.0, 110.0, 120.0])

    points = forecast_grid_demand(engine_config.grids[0], daily, monthly, as_of, engine_config.demand)

    assert len(points) == 24
    assert points[0].data_source == MONTHLY
    # x = n + m - 1 = 3 for m = 1
    assert points[0].projected_peak_mw == 130.0
    assert points[0].growth_rate_pct == 9.09


def test_monthly_only_grid_ignores_daily_rows(make_grid_days, make_kpi_series, engine_config, as_of) -> None:
    daily = make_grid_days([20.0 + i for i in range(10)], grid="Essequibo")
    monthly = make_kpi_series("Peak Demand Essequibo", [10.0, 11.0, 12.0, 13.0])

    points = [p for p in forecast_demand(daily, monthly, as_of, engine_config) if p.grid == "Essequibo"]

    assert len(points) == 24
    assert all(p.data_source == MONTHLY for p in points)


def test_constant_monthly_series_has_zero_width_band(make_kpi_series, as_of) -> None:
    grid = GridConfig(name="Essequibo", daily_demand=False)
    monthly = make_kpi_series("Peak Demand Essequibo", [50.0, 50.0, 50.0])

    points = forecast_grid_demand(grid, [], monthly, as_of, DemandConfig())

    assert all(p.projected_peak_mw == 50.0 for p in points)
    assert all(p.confidence_low_mw == p.confidence_high_mw == 50.0 for p in points)
    assert all(p.growth_rate_pct == 0.0 for p in points)


def test_insufficient_history_yields_no_points(make_grid_days, make_kpi_series, engine_config, as_of) -> None:
    daily = make_grid_days([100.0, 101.0])
    monthly = make_kpi_series("Peak Demand DBIS", [90.0, 95.0])

    assert forecast_demand(daily, monthly, as_of, engine_config) == []


def test_missing_daily_values_are_skipped(make_grid_days, engine_config, as_of) -> None:
    values = [100.0, None, 101.0, 102.0, None, 103.0, 104.0, 105.0, 106.0]
    daily = make_grid_days(values)

    points = forecast_demand(daily, [], as_of, engine_config)

    # seven present values; fit on their positions 0..6, x = 7 + 30
    assert points[0].data_source == DAILY
    assert points[0].projected_peak_mw == pytest.approx(100.0 + 37.0, abs=0.05)


def test_horizon_is_configurable(make_grid_days, as_of) -> None:
    cfg = DemandConfig(horizon_months=6)
    grid = GridConfig(name="DBIS")

    points = forecast_grid_demand(grid, make_grid_days([50.0] * 8), [], as_of, cfg)

    assert [p.projected_month for p in points][-1] == date(2026, 9, 1)
    assert len(points) == 6
