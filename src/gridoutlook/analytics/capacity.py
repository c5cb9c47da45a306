"""
Analytics: capacity adequacy and shortfall timing.

Combines the latest known installed capacity and peak demand of each grid
with its demand projection. Capacity is held flat over the horizon unless
planned additions are configured for the grid; the model has no other way to
anticipate new plant.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from gridoutlook.analytics.series import kpi_series, kpi_table, latest_present, sort_by_date
from gridoutlook.analytics.stats import round_half_up
from gridoutlook.data.records import CapacityTimeline, DemandForecastPoint
from gridoutlook.data.schemas import DailyGridReading, MonthlyKpiPoint
from gridoutlook.utils.config import CapacityConfig, ForecastEngineConfig, GridConfig, PlannedAddition
from gridoutlook.utils.time import add_months

log = logging.getLogger(__name__)


def reserve_margin_pct(capacity_mw: float, demand_mw: float) -> float:
    if capacity_mw <= 0:
        return 0.0
    return (capacity_mw - demand_mw) / capacity_mw * 100


def classify_reserve_margin(margin_pct: float, cfg: CapacityConfig | None = None) -> str:
    """``critical`` below 5%, ``warning`` up to and including 15%, otherwise ``safe``."""
    cfg = cfg or CapacityConfig()
    if margin_pct < cfg.critical_margin_pct:
        return "critical"
    if margin_pct <= cfg.warning_margin_pct:
        return "warning"
    return "safe"


def months_between(start: date, end: date, days_per_month: int = 30) -> int:
    return int(round_half_up((end - start).days / days_per_month))


def capacity_at(current_mw: float, additions: Sequence[PlannedAddition], month: date) -> float:
    """Installed capacity in ``month`` given additions commissioned up to then."""
    return current_mw + sum(a.added_mw for a in additions if a.month <= month)


def latest_capacity(
    grid: GridConfig,
    daily_readings: Iterable[DailyGridReading],
    monthly_points: Iterable[MonthlyKpiPoint],
) -> Optional[float]:
    """Latest non-null capacity: daily sub-grid value, daily total, then monthly KPI."""
    rows = sort_by_date(r for r in daily_readings if r.grid == grid.name)
    daily = latest_present([r.sub_grid_capacity_mw.get(grid.name, r.total_capacity_mw) for r in rows])
    if daily is not None and daily > 0:
        return daily
    monthly = latest_present([v for _, _, v in kpi_series(kpi_table(monthly_points), grid.capacity_kpi)])
    if monthly is not None and monthly > 0:
        return monthly
    return None


def latest_demand(
    grid: GridConfig,
    daily_readings: Iterable[DailyGridReading],
    monthly_points: Iterable[MonthlyKpiPoint],
) -> float:
    rows = sort_by_date(r for r in daily_readings if r.grid == grid.name)
    daily = latest_present([r.served_peak_mw for r in rows])
    if daily is not None:
        return daily
    monthly = latest_present([v for _, _, v in kpi_series(kpi_table(monthly_points), grid.demand_kpi)])
    return monthly if monthly is not None else 0.0


def assess_grid_capacity(
    grid: str,
    current_capacity_mw: float,
    current_demand_mw: float,
    forecasts: Sequence[DemandForecastPoint],
    as_of: date,
    cfg: CapacityConfig,
    horizon_months: int = 24,
) -> CapacityTimeline:
    """
    Reserve margin, risk level and first projected shortfall for one grid.

    Args:
        forecasts: the grid's demand projection; scanned in month order
        horizon_months: used for the projected capacity when there are no forecasts
    """
    additions = cfg.planned_additions.get(grid, [])
    ordered = sorted(forecasts, key=lambda f: f.projected_month)

    shortfall_month: Optional[date] = None
    months_until: Optional[int] = None
    for point in ordered:
        if point.projected_peak_mw > capacity_at(current_capacity_mw, additions, point.projected_month):
            shortfall_month = point.projected_month
            months_until = months_between(as_of, shortfall_month, cfg.days_per_month)
            break

    horizon_end = ordered[-1].projected_month if ordered else add_months(as_of, horizon_months)
    margin = round_half_up(reserve_margin_pct(current_capacity_mw, current_demand_mw), 1)

    return CapacityTimeline(
        grid=grid,
        current_capacity_mw=round_half_up(current_capacity_mw, 1),
        projected_capacity_mw=round_half_up(capacity_at(current_capacity_mw, additions, horizon_end), 1),
        shortfall_month=shortfall_month,
        reserve_margin_pct=margin,
        months_until_shortfall=months_until,
        # classified on the reported (rounded) margin
        risk_level=classify_reserve_margin(margin, cfg),
    )


def analyze_capacity(
    daily_readings: Sequence[DailyGridReading],
    monthly_points: Sequence[MonthlyKpiPoint],
    demand_forecasts: Sequence[DemandForecastPoint],
    as_of: date,
    config: ForecastEngineConfig,
) -> List[CapacityTimeline]:
    timeline = []
    for grid in config.grids:
        capacity = latest_capacity(grid, daily_readings, monthly_points)
        if capacity is None:
            log.info("No installed capacity known for grid %s; skipping adequacy", grid.name)
            continue
        demand = latest_demand(grid, daily_readings, monthly_points)
        forecasts = [f for f in demand_forecasts if f.grid == grid.name]
        entry = assess_grid_capacity(
            grid.name, capacity, demand, forecasts, as_of, config.capacity, config.demand.horizon_months
        )
        if entry.shortfall_month is not None:
            log.warning(
                "Grid %s projected to exceed capacity in %s (%s months)",
                grid.name,
                entry.shortfall_month.isoformat(),
                entry.months_until_shortfall,
            )
        timeline.append(entry)
    return timeline
