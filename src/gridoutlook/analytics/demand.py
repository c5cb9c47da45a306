"""
Analytics: peak demand projection per grid.

Each grid is projected from its daily evening peaks when there are enough
of them, otherwise from its monthly peak-demand KPI. A straight-line fit is
extended over the configured horizon with a ±k·σ band taken from the most
recent observations.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Sequence

from gridoutlook.analytics.series import kpi_series, kpi_table, sort_by_date
from gridoutlook.analytics.stats import linear_regression, mean, round_half_up, std_dev
from gridoutlook.data.records import DemandForecastPoint
from gridoutlook.data.schemas import DailyGridReading, MonthlyKpiPoint
from gridoutlook.utils.config import DemandConfig, ForecastEngineConfig, GridConfig
from gridoutlook.utils.time import add_months

log = logging.getLogger(__name__)

DAILY = "daily"
MONTHLY = "monthly"


def daily_peak_series(readings: Iterable[DailyGridReading], grid: str) -> List[float]:
    """Evening served peaks for ``grid`` in date order, missing days skipped."""
    rows = sort_by_date(r for r in readings if r.grid == grid)
    return [r.served_peak_mw for r in rows if r.served_peak_mw is not None]


def _project(
    grid: str,
    values: Sequence[float],
    source: str,
    as_of: date,
    cfg: DemandConfig,
) -> List[DemandForecastPoint]:
    n = len(values)
    fit = linear_regression(list(enumerate(values)))

    if source == DAILY:
        step = cfg.daily_step_days
        recent = list(values[-cfg.daily_recent_window:])
    else:
        step = 1
        recent = list(values[-cfg.monthly_recent_window:])

    spread = cfg.band_sigma * std_dev(recent)
    recent_avg = mean(recent)
    growth_pct = fit.slope * step / recent_avg * 100 if recent_avg > 0 else 0.0

    points = []
    for m in range(1, cfg.horizon_months + 1):
        x = n + m * step if source == DAILY else n + m - 1
        projected = fit.predict(x)
        points.append(
            DemandForecastPoint(
                grid=grid,
                projected_month=add_months(as_of, m),
                projected_peak_mw=round_half_up(projected, 1),
                confidence_low_mw=round_half_up(projected - spread, 1),
                confidence_high_mw=round_half_up(projected + spread, 1),
                growth_rate_pct=round_half_up(growth_pct, 2),
                data_source=source,
            )
        )
    log.debug(
        "Demand fit for %s (%s): n=%d slope=%.4f r2=%.3f", grid, source, n, fit.slope, fit.r_squared
    )
    return points


def forecast_grid_demand(
    grid: GridConfig,
    daily_readings: Iterable[DailyGridReading],
    monthly_points: Iterable[MonthlyKpiPoint],
    as_of: date,
    cfg: DemandConfig,
) -> List[DemandForecastPoint]:
    """Project one grid; an empty list means there is not enough history yet."""
    if grid.daily_demand:
        daily = daily_peak_series(daily_readings, grid.name)
        if len(daily) >= cfg.min_daily_points:
            return _project(grid.name, daily, DAILY, as_of, cfg)

    monthly = [value for _, _, value in kpi_series(kpi_table(monthly_points), grid.demand_kpi)]
    if len(monthly) >= cfg.min_monthly_points:
        return _project(grid.name, monthly, MONTHLY, as_of, cfg)

    log.info("Not enough demand history for grid %s; no forecast produced", grid.name)
    return []


def forecast_demand(
    daily_readings: Sequence[DailyGridReading],
    monthly_points: Sequence[MonthlyKpiPoint],
    as_of: date,
    config: ForecastEngineConfig,
) -> List[DemandForecastPoint]:
    forecasts: List[DemandForecastPoint] = []
    for grid in config.grids:
        forecasts.extend(forecast_grid_demand(grid, daily_readings, monthly_points, as_of, config.demand))
    return forecasts
