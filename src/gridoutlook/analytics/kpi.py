"""Analytics: twelve-month projections for the monthly KPI catalog."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Sequence

from gridoutlook.analytics.series import kpi_series, kpi_table
from gridoutlook.analytics.stats import linear_regression, round_half_up, std_dev
from gridoutlook.data.records import KpiForecastPoint
from gridoutlook.data.schemas import MonthlyKpiPoint
from gridoutlook.utils.config import ForecastEngineConfig, KpiConfig
from gridoutlook.utils.time import add_months

log = logging.getLogger(__name__)


def clamp_kpi_value(kpi_name: str, value: float, cfg: KpiConfig | None = None) -> float:
    """Percentages stay within [0, 100]; counts and MW never go negative."""
    cfg = cfg or KpiConfig()
    if cfg.percent_marker and cfg.percent_marker in kpi_name:
        value = min(100.0, max(0.0, value))
    if any(marker in kpi_name for marker in cfg.non_negative_markers):
        value = max(0.0, value)
    return value


def kpi_trend(slope: float, threshold: float) -> str:
    if slope > threshold:
        return "increasing"
    if slope < -threshold:
        return "decreasing"
    return "stable"


def forecast_kpis(
    monthly_points: Sequence[MonthlyKpiPoint],
    as_of: date,
    config: ForecastEngineConfig,
) -> List[KpiForecastPoint]:
    cfg = config.kpi
    table = kpi_table(monthly_points)
    if len(table) < cfg.min_months:
        log.info("Only %d months of KPI data; KPI forecasts skipped", len(table))
        return []

    forecasts: List[KpiForecastPoint] = []
    for name in cfg.catalog:
        series = kpi_series(table, name)
        if len(series) < cfg.min_points:
            log.debug("KPI %s has %d points; skipped", name, len(series))
            continue

        fit = linear_regression([(index, value) for index, _, value in series])
        spread = cfg.band_sigma * std_dev([value for _, _, value in series[-cfg.recent_window:]])
        trend = kpi_trend(fit.slope, cfg.trend_slope_threshold)

        for m in range(1, cfg.horizon_months + 1):
            projected = clamp_kpi_value(name, fit.predict(len(series) + m - 1), cfg)
            forecasts.append(
                KpiForecastPoint(
                    kpi_name=name,
                    projected_month=add_months(as_of, m),
                    projected_value=round_half_up(projected, 2),
                    confidence_low=round_half_up(projected - spread, 2),
                    confidence_high=round_half_up(projected + spread, 2),
                    trend=trend,
                )
            )
    return forecasts
