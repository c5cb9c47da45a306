"""
Prometheus metrics for forecast generations.

Runs are batch jobs, so besides the default registry the metrics can be
written to a node-exporter textfile after each run.
"""
from __future__ import annotations

import time
from functools import wraps
from pathlib import Path
from typing import Callable, Mapping

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    write_to_textfile,
)

from gridoutlook.data.records import ForecastBundle

# =============================================================================
# METRIC DEFINITIONS
# =============================================================================

FORECAST_RUNS = Counter(
    "gridoutlook_forecast_runs_total",
    "Forecast generations by outcome",
    ["outcome"],
)

STAGE_DURATION = Histogram(
    "gridoutlook_stage_duration_seconds",
    "Time spent per forecast stage",
    ["stage"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

ROWS_WRITTEN = Counter(
    "gridoutlook_rows_written_total",
    "Result rows written per table",
    ["table"],
)

FLAGGED_ENTITIES = Gauge(
    "gridoutlook_flagged_entities",
    "Entities at each risk level in the latest generation",
    ["kind", "level"],
)

LAST_GENERATION = Gauge(
    "gridoutlook_last_generation_timestamp_seconds",
    "Unix time of the last completed generation",
)

ENGINE_INFO = Info("gridoutlook_engine", "Forecast engine build information")


# =============================================================================
# DECORATORS & UPDATE FUNCTIONS
# =============================================================================

def track_stage(stage: str):
    """Decorator observing the wall time of one forecast stage."""
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                STAGE_DURATION.labels(stage=stage).observe(time.perf_counter() - start_time)

        return wrapper
    return decorator


def record_generation(bundle: ForecastBundle, rows_written: Mapping[str, int]) -> None:
    """Update gauges and counters after a successful generation."""
    FORECAST_RUNS.labels(outcome="success").inc()
    for table, count in rows_written.items():
        ROWS_WRITTEN.labels(table=table).inc(count)

    for level in ("critical", "warning", "safe"):
        FLAGGED_ENTITIES.labels(kind="grid", level=level).set(
            sum(1 for c in bundle.capacity_timeline if c.risk_level == level)
        )
    for level in ("critical", "warning", "good"):
        FLAGGED_ENTITIES.labels(kind="station", level=level).set(
            sum(1 for s in bundle.station_reliability if s.risk_level == level)
        )
    for level in ("high", "medium", "low"):
        FLAGGED_ENTITIES.labels(kind="unit", level=level).set(
            sum(1 for u in bundle.unit_risk if u.risk_level == level)
        )
    LAST_GENERATION.set_to_current_time()


def record_failure() -> None:
    FORECAST_RUNS.labels(outcome="failure").inc()


def set_engine_info(version: str, config_path: str) -> None:
    ENGINE_INFO.info({"version": version, "config": config_path})


# =============================================================================
# EXPOSITION
# =============================================================================

def get_metrics() -> bytes:
    """Latest metrics in Prometheus exposition format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


def write_metrics_textfile(path: str) -> None:
    """Dump the default registry for the node-exporter textfile collector."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(path, REGISTRY)
