"""Immutable result records produced by one forecast generation."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class DemandForecastPoint:
    grid: str
    projected_month: date
    projected_peak_mw: float
    confidence_low_mw: float
    confidence_high_mw: float
    growth_rate_pct: float
    data_source: str


@dataclass(frozen=True)
class CapacityTimeline:
    """Capacity adequacy for one grid.

    Attributes:
        projected_capacity_mw: capacity at the end of the horizon (equal to the
            current capacity unless planned additions are configured)
        shortfall_month: first projected month whose peak exceeds capacity
        months_until_shortfall: rounded 30-day months from the generation date
    """
    grid: str
    current_capacity_mw: float
    projected_capacity_mw: float
    shortfall_month: Optional[date]
    reserve_margin_pct: float
    months_until_shortfall: Optional[int]
    risk_level: str


@dataclass(frozen=True)
class LoadSheddingSummary:
    period_days: int
    avg_shed_mw: float
    max_shed_mw: float
    shed_days_count: int
    trend: str
    projected_avg_6mo: float


@dataclass(frozen=True)
class StationReliability:
    station: str
    period_days: int
    uptime_pct: float
    avg_utilization_pct: float
    total_units: int
    online_units: int
    offline_units: int
    failure_count: int
    mtbf_days: float
    trend: str
    risk_level: str


@dataclass(frozen=True)
class UnitRisk:
    station: str
    engine: str
    unit_id: str
    derated_mw: float
    uptime_pct: float
    failure_count: int
    mtbf_days: float
    days_since_last_failure: int
    predicted_failure_days: int
    risk_level: str
    risk_score: int


@dataclass(frozen=True)
class KpiForecastPoint:
    kpi_name: str
    projected_month: date
    projected_value: float
    confidence_low: float
    confidence_high: float
    trend: str


def _jsonable(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class ForecastBundle:
    """Everything one generation produced, keyed by ``generation_date``."""
    generation_date: date
    input_fingerprint: str
    demand_forecasts: Tuple[DemandForecastPoint, ...] = ()
    capacity_timeline: Tuple[CapacityTimeline, ...] = ()
    load_shedding: LoadSheddingSummary = field(
        default_factory=lambda: LoadSheddingSummary(0, 0.0, 0.0, 0, "unknown", 0.0)
    )
    station_reliability: Tuple[StationReliability, ...] = ()
    unit_risk: Tuple[UnitRisk, ...] = ()
    kpi_forecasts: Tuple[KpiForecastPoint, ...] = ()
    persisted_risk_levels: Tuple[str, ...] = ("medium", "high")

    @property
    def persisted_unit_risk(self) -> Tuple[UnitRisk, ...]:
        """Units eligible for storage; low-risk units stay in memory only."""
        return tuple(u for u in self.unit_risk if u.risk_level in self.persisted_risk_levels)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload.pop("persisted_risk_levels")
        return _jsonable(payload)
