"""Pipeline orchestration: run all forecasts for one generation date."""
from __future__ import annotations

import argparse
import hashlib
import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from gridoutlook import __version__
from gridoutlook.analytics.capacity import analyze_capacity
from gridoutlook.analytics.demand import forecast_demand
from gridoutlook.analytics.kpi import forecast_kpis
from gridoutlook.analytics.load_shedding import analyze_load_shedding
from gridoutlook.analytics.reliability import analyze_station_reliability
from gridoutlook.analytics.unit_risk import score_units
from gridoutlook.data.loaders import load_directory
from gridoutlook.data.records import ForecastBundle
from gridoutlook.data.schemas import (
    DailyGridReading,
    DailyStationReading,
    DailyUnitReading,
    MonthlyKpiPoint,
)
from gridoutlook.monitoring.metrics import (
    record_failure,
    record_generation,
    set_engine_info,
    track_stage,
    write_metrics_textfile,
)
from gridoutlook.monitoring.report import write_bundle_json, write_forecast_report
from gridoutlook.store.base import ForecastRepository
from gridoutlook.store.duckdb_store import DuckDBForecastStore
from gridoutlook.utils.config import ForecastEngineConfig, load_engine_config
from gridoutlook.utils.logging import setup_logging
from gridoutlook.utils.time import to_date, window_start

log = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_generation_locks: Dict[date, threading.Lock] = {}


class GenerationInProgress(RuntimeError):
    """Another run for the same generation date is active in this process."""

    def __init__(self, generation_date: date) -> None:
        self.generation_date = generation_date
        super().__init__(f"forecast generation for {generation_date.isoformat()} already running")


def _generation_lock(generation_date: date) -> threading.Lock:
    with _locks_guard:
        return _generation_locks.setdefault(generation_date, threading.Lock())


@dataclass(frozen=True)
class ForecastInputs:
    daily_grid: List[DailyGridReading] = field(default_factory=list)
    stations: List[DailyStationReading] = field(default_factory=list)
    units: List[DailyUnitReading] = field(default_factory=list)
    kpis: List[MonthlyKpiPoint] = field(default_factory=list)


@dataclass(frozen=True)
class ForecastRun:
    bundle: ForecastBundle
    persisted: bool
    rows_written: Mapping[str, int]


def _canonical_bytes(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode("utf-8")


def _dump_sorted(rows: Iterable[BaseModel]) -> List[str]:
    return sorted(json.dumps(r.model_dump(mode="json"), sort_keys=True) for r in rows)


def input_fingerprint(inputs: ForecastInputs, as_of: date) -> str:
    """sha256 over the canonical JSON of every input row; independent of row order."""
    payload = {
        "as_of": as_of.isoformat(),
        "daily_grid": _dump_sorted(inputs.daily_grid),
        "stations": _dump_sorted(inputs.stations),
        "units": _dump_sorted(inputs.units),
        "kpis": _dump_sorted(inputs.kpis),
    }
    return hashlib.sha256(_canonical_bytes(payload)).hexdigest()


def compute_bundle(
    inputs: ForecastInputs,
    as_of: date,
    config: ForecastEngineConfig,
) -> ForecastBundle:
    """
    Run every analyzer over ``inputs``.

    Demand runs first because capacity adequacy consumes it; the remaining
    analyzers are independent and may run on a thread pool. Results are
    gathered in a fixed order, so the bundle does not depend on scheduling.
    """
    demand = track_stage("demand")(forecast_demand)(inputs.daily_grid, inputs.kpis, as_of, config)
    capacity = track_stage("capacity")(analyze_capacity)(inputs.daily_grid, inputs.kpis, demand, as_of, config)

    tasks: Dict[str, Callable[[], Any]] = {
        "load_shedding": lambda: track_stage("load_shedding")(analyze_load_shedding)(
            inputs.daily_grid, as_of, config
        ),
        "stations": lambda: track_stage("stations")(analyze_station_reliability)(inputs.stations, as_of, config),
        "units": lambda: track_stage("units")(score_units)(inputs.units, as_of, config),
        "kpis": lambda: track_stage("kpis")(forecast_kpis)(inputs.kpis, as_of, config),
    }
    workers = config.orchestrator.max_workers
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gridoutlook") as pool:
            futures = {name: pool.submit(task) for name, task in tasks.items()}
            results = {name: future.result() for name, future in futures.items()}
    else:
        results = {name: task() for name, task in tasks.items()}

    return ForecastBundle(
        generation_date=as_of,
        input_fingerprint=input_fingerprint(inputs, as_of),
        demand_forecasts=tuple(demand),
        capacity_timeline=tuple(capacity),
        load_shedding=results["load_shedding"],
        station_reliability=tuple(results["stations"]),
        unit_risk=tuple(results["units"]),
        kpi_forecasts=tuple(results["kpis"]),
        persisted_risk_levels=tuple(config.unit_risk.persist_levels),
    )


class ForecastOrchestrator:
    """
    Reads inputs through a repository, computes one bundle and stores it.

    Args:
        repository: any ``ForecastRepository``
        config: engine configuration (defaults when omitted)
        clock: returns "today"; used when ``run`` gets no date
    """

    def __init__(
        self,
        repository: ForecastRepository,
        config: Optional[ForecastEngineConfig] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.repository = repository
        self.config = config or ForecastEngineConfig()
        self.clock = clock

    def read_inputs(self, as_of: date) -> ForecastInputs:
        cfg = self.config
        daily_since = window_start(as_of, max(cfg.demand.history_days, cfg.load_shedding.window_days))
        station_since = window_start(as_of, cfg.reliability.period_days)
        unit_since = window_start(as_of, cfg.unit_risk.period_days)

        daily = self.repository.fetch_daily_grid_readings(daily_since, as_of)
        stations = self.repository.fetch_station_readings(station_since, as_of)
        units = self.repository.fetch_unit_readings(unit_since, as_of)
        kpis = self.repository.fetch_monthly_kpis()
        return ForecastInputs(
            daily_grid=[r for r in daily if r.date <= as_of],
            stations=[r for r in stations if r.date <= as_of],
            units=[r for r in units if r.date <= as_of],
            kpis=[p for p in kpis if p.month <= as_of],
        )

    def run(self, as_of: date | str | None = None, persist: Optional[bool] = None) -> ForecastRun:
        generation_date = to_date(as_of) if as_of is not None else self.clock()
        should_persist = self.config.orchestrator.persist if persist is None else persist
        extra = {"generation_date": generation_date.isoformat()}

        lock = _generation_lock(generation_date)
        if not lock.acquire(blocking=False):
            raise GenerationInProgress(generation_date)
        try:
            started = time.perf_counter()
            inputs = self.read_inputs(generation_date)
            log.info(
                "Inputs: %d daily, %d station, %d unit rows, %d KPI points",
                len(inputs.daily_grid),
                len(inputs.stations),
                len(inputs.units),
                len(inputs.kpis),
                extra=extra,
            )
            bundle = compute_bundle(inputs, generation_date, self.config)

            rows_written: Dict[str, int] = {}
            if should_persist:
                rows_written = dict(self.repository.write_bundle(bundle))
            record_generation(bundle, rows_written)
            log.info(
                "Generation complete: %d demand points, %d grids, %d stations, %d units, %d KPI points in %.3fs",
                len(bundle.demand_forecasts),
                len(bundle.capacity_timeline),
                len(bundle.station_reliability),
                len(bundle.unit_risk),
                len(bundle.kpi_forecasts),
                time.perf_counter() - started,
                extra=extra,
            )
            return ForecastRun(bundle=bundle, persisted=should_persist, rows_written=rows_written)
        except Exception:
            record_failure()
            log.exception("Forecast generation failed", extra=extra)
            raise
        finally:
            lock.release()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="gridoutlook forecast engine")
    parser.add_argument("--db", default=None, help="DuckDB file (default: store.duckdb_path from config)")
    parser.add_argument("--config", default=None, help="Engine config YAML (default: configs/forecast_engine.yaml)")
    parser.add_argument("--as-of", default=None, help="Generation date YYYY-MM-DD (default: today)")
    parser.add_argument("--load-dir", default=None, help="Directory of CSV/Parquet exports to load first")
    parser.add_argument("--no-persist", action="store_true", help="Compute only; do not write results")
    parser.add_argument("--report", default=None, help="Write a markdown report to this path")
    parser.add_argument("--json", default=None, help="Write the full bundle as JSON to this path")
    parser.add_argument("--metrics-textfile", default=None, help="Write Prometheus metrics to this file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level)
    config = load_engine_config(args.config)
    set_engine_info(__version__, args.config or "defaults")

    store = DuckDBForecastStore(args.db or config.store.duckdb_path)
    try:
        if args.load_dir:
            load_directory(args.load_dir, store, config.primary_grid)
        orchestrator = ForecastOrchestrator(store, config)
        result = orchestrator.run(args.as_of, persist=False if args.no_persist else None)
    finally:
        store.close()

    if args.report:
        write_forecast_report(result.bundle, args.report)
        log.info("Wrote report: %s", args.report)
    if args.json:
        write_bundle_json(result.bundle, args.json)
        log.info("Wrote bundle: %s", args.json)
    if args.metrics_textfile:
        write_metrics_textfile(args.metrics_textfile)


if __name__ == "__main__":
    main()
