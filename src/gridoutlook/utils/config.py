"""Utilities: engine configuration models and helpers."""
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Type

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_CONFIG_PATH = Path("configs/forecast_engine.yaml")

DEFAULT_KPI_CATALOG = [
    "Peak Demand DBIS",
    "Peak Demand Essequibo",
    "Installed Capacity DBIS",
    "Installed Capacity Essequibo",
    "Affected Customers",
    "Collection Rate %",
    "HFO Generation Mix %",
    "LFO Generation Mix %",
]


class ConfigError(ValueError):
    """Raised when a configuration file does not match its schema."""


class GridConfig(BaseModel):
    """One grid the engine forecasts.

    Daily demand comes from ``served_peak_mw`` of the grid's daily readings;
    the monthly fallback and capacity read the named KPIs.
    """
    name: str
    daily_demand: bool = True
    monthly_demand_kpi: Optional[str] = None
    monthly_capacity_kpi: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @property
    def demand_kpi(self) -> str:
        return self.monthly_demand_kpi or f"Peak Demand {self.name}"

    @property
    def capacity_kpi(self) -> str:
        return self.monthly_capacity_kpi or f"Installed Capacity {self.name}"


class DemandConfig(BaseModel):
    """Demand projection settings."""
    horizon_months: int = 24
    history_days: int = 730
    min_daily_points: int = 7
    min_monthly_points: int = 3
    daily_step_days: int = 30
    daily_recent_window: int = 30
    monthly_recent_window: int = 6
    band_sigma: float = 2.0

    model_config = ConfigDict(extra="allow")


class PlannedAddition(BaseModel):
    """Capacity expected to come online from ``month`` onwards."""
    month: date
    added_mw: float

    model_config = ConfigDict(extra="allow")


class CapacityConfig(BaseModel):
    """Reserve margin thresholds and optional planned capacity."""
    window_days: int = 365
    critical_margin_pct: float = 5.0
    warning_margin_pct: float = 15.0
    days_per_month: int = 30
    planned_additions: Dict[str, List[PlannedAddition]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")


class LoadSheddingConfig(BaseModel):
    grid: Optional[str] = None
    window_days: int = 365
    trend_tolerance: float = 0.10
    projection_days: int = 180

    model_config = ConfigDict(extra="allow")


class ReliabilityConfig(BaseModel):
    period_days: int = 90
    trend_tolerance: float = 0.05
    critical_uptime_pct: float = 50.0
    warning_uptime_pct: float = 80.0

    model_config = ConfigDict(extra="allow")


class UnitRiskConfig(BaseModel):
    """Weighted unit risk buckets, each a list of ``[threshold, points]``.

    Uptime and MTBF buckets match when the value is below the threshold,
    failure buckets when the count is at or above it. Only the first matching
    bucket of each dimension scores.
    """
    period_days: int = 90
    uptime_buckets: List[List[float]] = Field(default_factory=lambda: [[30, 40], [60, 25], [80, 10]])
    failure_buckets: List[List[float]] = Field(default_factory=lambda: [[5, 30], [3, 20], [1, 10]])
    mtbf_buckets: List[List[float]] = Field(default_factory=lambda: [[15, 30], [30, 15]])
    high_score: int = 60
    medium_score: int = 30
    persist_levels: List[str] = Field(default_factory=lambda: ["medium", "high"])

    model_config = ConfigDict(extra="allow")


class KpiConfig(BaseModel):
    horizon_months: int = 12
    min_months: int = 3
    min_points: int = 3
    recent_window: int = 6
    band_sigma: float = 2.0
    trend_slope_threshold: float = 0.1
    catalog: List[str] = Field(default_factory=lambda: list(DEFAULT_KPI_CATALOG))
    percent_marker: str = "%"
    non_negative_markers: List[str] = Field(default_factory=lambda: ["Customers", "Capacity", "Demand"])

    model_config = ConfigDict(extra="allow")


class OrchestratorConfig(BaseModel):
    max_workers: int = 1
    persist: bool = True

    model_config = ConfigDict(extra="allow")


class StoreConfig(BaseModel):
    duckdb_path: str = "data/gridoutlook.duckdb"

    model_config = ConfigDict(extra="allow")


def _default_grids() -> List[GridConfig]:
    return [
        GridConfig(name="DBIS", daily_demand=True),
        GridConfig(name="Essequibo", daily_demand=False),
    ]


class ForecastEngineConfig(BaseModel):
    """Schema for configs/forecast_engine.yaml."""
    grids: List[GridConfig] = Field(default_factory=_default_grids)
    demand: DemandConfig = Field(default_factory=DemandConfig)
    capacity: CapacityConfig = Field(default_factory=CapacityConfig)
    load_shedding: LoadSheddingConfig = Field(default_factory=LoadSheddingConfig)
    reliability: ReliabilityConfig = Field(default_factory=ReliabilityConfig)
    unit_risk: UnitRiskConfig = Field(default_factory=UnitRiskConfig)
    kpi: KpiConfig = Field(default_factory=KpiConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    model_config = ConfigDict(extra="allow")

    @property
    def primary_grid(self) -> str:
        """First grid with daily demand; daily rows without a grid belong to it."""
        for grid in self.grids:
            if grid.daily_demand:
                return grid.name
        return self.grids[0].name if self.grids else "DBIS"

    @property
    def load_shedding_grid(self) -> str:
        return self.load_shedding.grid or self.primary_grid


CONFIG_MODELS: dict[str, Type[BaseModel]] = {
    "forecast_engine.yaml": ForecastEngineConfig,
}


def _load_yaml(path: Path) -> dict:
    """Read a YAML file into a dict, defaulting to empty."""
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    return payload or {}


def validate_config(path: Path) -> None:
    """Validate a config file if a schema is registered."""
    model = CONFIG_MODELS.get(path.name)
    if not model:
        return
    payload = _load_yaml(path)
    try:
        model.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {path}: {exc}") from exc


def load_engine_config(path: str | Path | None = None) -> ForecastEngineConfig:
    """Load the engine config; a missing default file yields the documented defaults."""
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        if path is not None:
            raise FileNotFoundError(cfg_path)
        return ForecastEngineConfig()
    try:
        return ForecastEngineConfig.model_validate(_load_yaml(cfg_path))
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {cfg_path}: {exc}") from exc
