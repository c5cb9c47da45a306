"""
Analytics: weighted failure risk per generating unit.

Scores combine three buckets (uptime, failure count, MTBF) into a 0-100
score. Every unit is scored; which levels get stored is decided by the
orchestrator's bundle (``persist_levels``).
"""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Sequence

from gridoutlook.analytics.reliability import count_failures, mtbf_days
from gridoutlook.analytics.series import group_daily, latest_present, within_window
from gridoutlook.analytics.stats import round_half_up
from gridoutlook.data.records import UnitRisk
from gridoutlook.data.schemas import DailyUnitReading
from gridoutlook.utils.config import ForecastEngineConfig, UnitRiskConfig
from gridoutlook.utils.time import window_start

log = logging.getLogger(__name__)


def score_unit_risk(
    uptime_pct: float,
    failure_count: int,
    mtbf: float,
    cfg: UnitRiskConfig | None = None,
) -> int:
    """
    Sum the first matching bucket of each dimension.

    Defaults: uptime <30 -> 40, <60 -> 25, <80 -> 10; failures >=5 -> 30,
    >=3 -> 20, >=1 -> 10; MTBF <15 -> 30, <30 -> 15.
    """
    cfg = cfg or UnitRiskConfig()
    score = 0
    for threshold, points in cfg.uptime_buckets:
        if uptime_pct < threshold:
            score += points
            break
    for threshold, points in cfg.failure_buckets:
        if failure_count >= threshold:
            score += points
            break
    for threshold, points in cfg.mtbf_buckets:
        if mtbf < threshold:
            score += points
            break
    return int(score)


def classify_unit_risk(score: int, cfg: UnitRiskConfig | None = None) -> str:
    cfg = cfg or UnitRiskConfig()
    if score >= cfg.high_score:
        return "high"
    if score >= cfg.medium_score:
        return "medium"
    return "low"


def assess_unit(days: Sequence[DailyUnitReading], cfg: UnitRiskConfig) -> UnitRisk:
    total = len(days)
    online = [d.is_online for d in days]
    failures = count_failures(
        online,
        dates=[d.date for d in days],
        offline=[d.status == "offline" for d in days],
    )
    uptime = sum(online) / total * 100
    mtbf = mtbf_days(total, failures.count)
    days_since = total - failures.last_index if failures.last_index is not None else total
    score = score_unit_risk(uptime, failures.count, mtbf, cfg)
    latest = days[-1]
    derated = latest_present([d.derated_capacity_mw for d in days])

    return UnitRisk(
        station=latest.station,
        engine=latest.engine,
        unit_id=latest.unit_id,
        derated_mw=round_half_up(derated or 0.0, 1),
        uptime_pct=round_half_up(uptime, 1),
        failure_count=failures.count,
        mtbf_days=round_half_up(mtbf, 1),
        days_since_last_failure=days_since,
        predicted_failure_days=max(0, int(round_half_up(mtbf - days_since))),
        risk_level=classify_unit_risk(score, cfg),
        risk_score=score,
    )


def score_units(
    unit_readings: Sequence[DailyUnitReading],
    as_of: date,
    config: ForecastEngineConfig,
) -> List[UnitRisk]:
    """All units in the window, highest risk score first (ties keep input order)."""
    cfg = config.unit_risk
    rows = within_window(unit_readings, window_start(as_of, cfg.period_days), as_of)
    by_unit = group_daily(rows, key=lambda r: r.unit_key)

    results = [assess_unit(days, cfg) for days in by_unit.values() if days]
    results.sort(key=lambda u: -u.risk_score)

    high = sum(1 for u in results if u.risk_level == "high")
    if high:
        log.info("%d units at high failure risk", high)
    return results
