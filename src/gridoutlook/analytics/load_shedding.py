"""Analytics: evening load shedding summary, trend and six-month projection."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Sequence

from gridoutlook.analytics.series import sort_by_date, within_window
from gridoutlook.analytics.stats import linear_regression, mean, round_half_up, split_half_trend
from gridoutlook.data.records import LoadSheddingSummary
from gridoutlook.data.schemas import DailyGridReading
from gridoutlook.utils.config import ForecastEngineConfig
from gridoutlook.utils.time import window_start

log = logging.getLogger(__name__)


def daily_shed_mw(readings: Sequence[DailyGridReading]) -> List[float]:
    """Shed per complete day (both evening peaks present), never negative."""
    return [
        max(0.0, r.suppressed_peak_mw - r.served_peak_mw)
        for r in readings
        if r.suppressed_peak_mw is not None and r.served_peak_mw is not None
    ]


def analyze_load_shedding(
    daily_readings: Sequence[DailyGridReading],
    as_of: date,
    config: ForecastEngineConfig,
) -> LoadSheddingSummary:
    cfg = config.load_shedding
    grid = config.load_shedding_grid
    rows = sort_by_date(
        within_window(
            (r for r in daily_readings if r.grid == grid),
            window_start(as_of, cfg.window_days),
            as_of,
        )
    )
    if not rows:
        log.info("No daily readings for %s; load shedding trend unknown", grid)
        return LoadSheddingSummary(0, 0.0, 0.0, 0, "unknown", 0.0)

    shed = daily_shed_mw(rows)
    if not shed:
        log.info("No day with both evening peaks for %s", grid)
        return LoadSheddingSummary(len(rows), 0.0, 0.0, 0, "stable", 0.0)

    fit = linear_regression(list(enumerate(shed)))
    projected = max(0.0, fit.predict(len(shed) + cfg.projection_days))

    return LoadSheddingSummary(
        period_days=len(rows),
        avg_shed_mw=round_half_up(mean(shed), 1),
        max_shed_mw=round_half_up(max(shed), 1),
        shed_days_count=sum(1 for s in shed if s > 0),
        trend=split_half_trend(shed, cfg.trend_tolerance),
        projected_avg_6mo=round_half_up(projected, 1),
    )
