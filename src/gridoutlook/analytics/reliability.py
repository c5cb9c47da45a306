"""
Analytics: station reliability over a rolling window.

A station is "up" on a day when at least one of its units is online. Uptime,
failure count (up -> down transitions between consecutive calendar days),
MTBF and a split-half trend are derived from that daily boolean series.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import List, NamedTuple, Optional, Sequence

from gridoutlook.analytics.series import group_daily, within_window
from gridoutlook.analytics.stats import mean, round_half_up, split_half_trend
from gridoutlook.data.records import StationReliability
from gridoutlook.data.schemas import DailyStationReading
from gridoutlook.utils.config import ForecastEngineConfig, ReliabilityConfig
from gridoutlook.utils.time import is_next_day, window_start

log = logging.getLogger(__name__)

STATION_RISK_ORDER = {"critical": 0, "warning": 1, "good": 2}


class FailureCount(NamedTuple):
    count: int
    last_index: Optional[int]


def count_failures(
    online: Sequence[bool],
    dates: Optional[Sequence[date]] = None,
    offline: Optional[Sequence[bool]] = None,
) -> FailureCount:
    """
    Count transitions from online to offline.

    With ``dates`` a transition only counts when the two observations are
    exactly one calendar day apart; a reporting gap is not a failure.
    ``offline`` marks days that count as a failure state; by default any day
    that is not online does. ``last_index`` is the position of the offline day
    of the latest failure.
    """
    down = offline if offline is not None else [not o for o in online]
    count = 0
    last_index: Optional[int] = None
    for i in range(1, len(online)):
        if not (online[i - 1] and down[i]):
            continue
        if dates is not None and not is_next_day(dates[i - 1], dates[i]):
            continue
        count += 1
        last_index = i
    return FailureCount(count, last_index)


def mtbf_days(days: int, failures: int) -> float:
    return days / failures if failures > 0 else float(days)


def classify_station(uptime_pct: float, cfg: ReliabilityConfig) -> str:
    if uptime_pct < cfg.critical_uptime_pct:
        return "critical"
    if uptime_pct < cfg.warning_uptime_pct:
        return "warning"
    return "good"


def assess_station(station: str, days: Sequence[DailyStationReading], cfg: ReliabilityConfig) -> StationReliability:
    """Reliability of one station from its date-ordered, de-duplicated days."""
    online = [d.is_online for d in days]
    total = len(days)
    uptime = sum(online) / total * 100
    failures = count_failures(online, [d.date for d in days])
    latest = days[-1]
    return StationReliability(
        station=station,
        period_days=total,
        uptime_pct=round_half_up(uptime, 1),
        avg_utilization_pct=round_half_up(
            mean([d.utilization_pct for d in days if d.utilization_pct is not None]), 1
        ),
        total_units=latest.total_units,
        online_units=latest.units_online,
        offline_units=latest.units_offline,
        failure_count=failures.count,
        mtbf_days=round_half_up(mtbf_days(total, failures.count), 1),
        trend=split_half_trend([1.0 if o else 0.0 for o in online], cfg.trend_tolerance, "improving", "declining"),
        risk_level=classify_station(uptime, cfg),
    )


def analyze_station_reliability(
    station_readings: Sequence[DailyStationReading],
    as_of: date,
    config: ForecastEngineConfig,
) -> List[StationReliability]:
    cfg = config.reliability
    rows = within_window(station_readings, window_start(as_of, cfg.period_days), as_of)
    by_station = group_daily(rows, key=lambda r: r.station)

    results = [assess_station(station, days, cfg) for station, days in by_station.items() if days]
    results.sort(key=lambda r: STATION_RISK_ORDER[r.risk_level])

    flagged = sum(1 for r in results if r.risk_level != "good")
    if flagged:
        log.info("%d of %d stations below reliability threshold", flagged, len(results))
    return results
