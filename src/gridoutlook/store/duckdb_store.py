"""DuckDB-backed reading store and forecast result tables."""
from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import astuple
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import duckdb

from gridoutlook.data.records import ForecastBundle
from gridoutlook.data.schemas import (
    DailyGridReading,
    DailyStationReading,
    DailyUnitReading,
    MonthlyKpiPoint,
)
from gridoutlook.store.base import RESULT_TABLES, PersistenceError

log = logging.getLogger(__name__)

CONFIRMED = "confirmed"
# batch_id stored for rows loaded without an upload batch; treated as confirmed
NO_BATCH = 0

_GRID_COLUMNS = (
    "date",
    "grid",
    "total_capacity_mw",
    "expected_peak_mw",
    "served_peak_mw",
    "suppressed_peak_mw",
    "day_served_peak_mw",
    "day_suppressed_peak_mw",
    "utilization_pct",
    "reserve_margin_pct",
    "sub_grid_capacity_json",
    "renewable_capacity_mw",
)
_STATION_COLUMNS = (
    "date",
    "station",
    "total_units",
    "units_online",
    "units_offline",
    "units_no_data",
    "derated_capacity_mw",
    "available_capacity_mw",
    "utilization_pct",
    "batch_id",
)
_UNIT_COLUMNS = (
    "date",
    "station",
    "engine",
    "unit_id",
    "derated_capacity_mw",
    "available_mw",
    "status",
    "utilization_pct",
    "batch_id",
)

_RESULT_COLUMNS = {
    "forecast_demand": (
        "grid",
        "projected_month",
        "projected_peak_mw",
        "confidence_low_mw",
        "confidence_high_mw",
        "growth_rate_pct",
        "data_source",
    ),
    "forecast_capacity": (
        "grid",
        "current_capacity_mw",
        "projected_capacity_mw",
        "shortfall_month",
        "reserve_margin_pct",
        "months_until_shortfall",
        "risk_level",
    ),
    "forecast_load_shedding": (
        "period_days",
        "avg_shed_mw",
        "max_shed_mw",
        "shed_days_count",
        "trend",
        "projected_avg_6mo",
    ),
    "forecast_station_reliability": (
        "station",
        "period_days",
        "uptime_pct",
        "avg_utilization_pct",
        "total_units",
        "online_units",
        "offline_units",
        "failure_count",
        "mtbf_days",
        "trend",
        "risk_level",
    ),
    "forecast_unit_risk": (
        "station",
        "engine",
        "unit_id",
        "derated_mw",
        "uptime_pct",
        "failure_count",
        "mtbf_days",
        "days_since_last_failure",
        "predicted_failure_days",
        "risk_level",
        "risk_score",
    ),
    "forecast_kpi": (
        "kpi_name",
        "projected_month",
        "projected_value",
        "confidence_low",
        "confidence_high",
        "trend",
    ),
}

_RESULT_ORDER = {
    "forecast_demand": "grid, projected_month",
    "forecast_capacity": "grid",
    "forecast_load_shedding": "period_days",
    "forecast_station_reliability": (
        "CASE risk_level WHEN 'critical' THEN 0 WHEN 'warning' THEN 1 ELSE 2 END, station"
    ),
    "forecast_unit_risk": "risk_score DESC, station, unit_id",
    "forecast_kpi": "kpi_name, projected_month",
}


def _batched_row(values: Dict[str, Any], columns: Sequence[str]) -> List[Any]:
    if values["batch_id"] is None:
        values["batch_id"] = NO_BATCH
    return [values[c] for c in columns]


def get_forecast_duckdb_path() -> str:
    """Resolve store path with env override support."""
    return os.environ.get("GRIDOUTLOOK_DUCKDB_PATH", "data/gridoutlook.duckdb")


class DuckDBForecastStore:
    """
    Reading tables, upload batch status and the forecast result tables.

    All access goes through one connection guarded by a lock. Result writes
    replace a whole generation inside a single transaction.
    """

    def __init__(self, duckdb_path: str | None = None) -> None:
        self.duckdb_path = duckdb_path or get_forecast_duckdb_path()
        if self.duckdb_path != ":memory:":
            Path(self.duckdb_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(self.duckdb_path)
        self._lock = threading.Lock()
        self._init_tables()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "DuckDBForecastStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _init_tables(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS daily_grid_readings (
                date DATE,
                grid VARCHAR,
                total_capacity_mw DOUBLE,
                expected_peak_mw DOUBLE,
                served_peak_mw DOUBLE,
                suppressed_peak_mw DOUBLE,
                day_served_peak_mw DOUBLE,
                day_suppressed_peak_mw DOUBLE,
                utilization_pct DOUBLE,
                reserve_margin_pct DOUBLE,
                sub_grid_capacity_json VARCHAR,
                renewable_capacity_mw DOUBLE,
                PRIMARY KEY (date, grid)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS station_readings (
                date DATE,
                station VARCHAR,
                total_units INTEGER,
                units_online INTEGER,
                units_offline INTEGER,
                units_no_data INTEGER,
                derated_capacity_mw DOUBLE,
                available_capacity_mw DOUBLE,
                utilization_pct DOUBLE,
                batch_id BIGINT NOT NULL DEFAULT 0,
                PRIMARY KEY (date, station, batch_id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS unit_readings (
                date DATE,
                station VARCHAR,
                engine VARCHAR,
                unit_id VARCHAR,
                derated_capacity_mw DOUBLE,
                available_mw DOUBLE,
                status VARCHAR,
                utilization_pct DOUBLE,
                batch_id BIGINT NOT NULL DEFAULT 0,
                PRIMARY KEY (date, station, unit_id, batch_id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS monthly_kpis (
                month DATE,
                kpi_name VARCHAR,
                value DOUBLE,
                PRIMARY KEY (month, kpi_name)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS upload_batches (
                batch_id BIGINT PRIMARY KEY,
                status VARCHAR,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_generation (
                generation_date DATE,
                input_fingerprint VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_demand (
                generation_date DATE,
                grid VARCHAR,
                projected_month DATE,
                projected_peak_mw DOUBLE,
                confidence_low_mw DOUBLE,
                confidence_high_mw DOUBLE,
                growth_rate_pct DOUBLE,
                data_source VARCHAR
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_capacity (
                generation_date DATE,
                grid VARCHAR,
                current_capacity_mw DOUBLE,
                projected_capacity_mw DOUBLE,
                shortfall_month DATE,
                reserve_margin_pct DOUBLE,
                months_until_shortfall INTEGER,
                risk_level VARCHAR
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_load_shedding (
                generation_date DATE,
                period_days INTEGER,
                avg_shed_mw DOUBLE,
                max_shed_mw DOUBLE,
                shed_days_count INTEGER,
                trend VARCHAR,
                projected_avg_6mo DOUBLE
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_station_reliability (
                generation_date DATE,
                station VARCHAR,
                period_days INTEGER,
                uptime_pct DOUBLE,
                avg_utilization_pct DOUBLE,
                total_units INTEGER,
                online_units INTEGER,
                offline_units INTEGER,
                failure_count INTEGER,
                mtbf_days DOUBLE,
                trend VARCHAR,
                risk_level VARCHAR
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_unit_risk (
                generation_date DATE,
                station VARCHAR,
                engine VARCHAR,
                unit_id VARCHAR,
                derated_mw DOUBLE,
                uptime_pct DOUBLE,
                failure_count INTEGER,
                mtbf_days DOUBLE,
                days_since_last_failure INTEGER,
                predicted_failure_days INTEGER,
                risk_level VARCHAR,
                risk_score INTEGER
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS forecast_kpi (
                generation_date DATE,
                kpi_name VARCHAR,
                projected_month DATE,
                projected_value DOUBLE,
                confidence_low DOUBLE,
                confidence_high DOUBLE,
                trend VARCHAR
            )
            """,
        ]
        with self._lock:
            for statement in statements:
                self._conn.execute(statement)

    # ---- queries ---------------------------------------------------------

    def _query(self, table: str, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, list(params))
                columns = [c[0] for c in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except duckdb.Error as exc:
                raise PersistenceError("read", table, exc) from exc

    def fetch_daily_grid_readings(self, since: date, until: date) -> List[DailyGridReading]:
        rows = self._query(
            "daily_grid_readings",
            f"SELECT {', '.join(_GRID_COLUMNS)} FROM daily_grid_readings "
            "WHERE date BETWEEN ? AND ? ORDER BY date, grid",
            [since, until],
        )
        readings = []
        for row in rows:
            raw = row.pop("sub_grid_capacity_json")
            row["sub_grid_capacity_mw"] = json.loads(raw) if raw else {}
            readings.append(DailyGridReading.model_validate(row))
        return readings

    def _confirmed_rows(
        self,
        table: str,
        columns: Sequence[str],
        entity: Sequence[str],
        since: date,
        until: date,
    ) -> List[Dict[str, Any]]:
        """
        Rows from confirmed batches (or loaded without one), one per entity and
        day: the highest confirmed batch supersedes earlier ones.
        """
        selected = ", ".join(
            f"NULLIF(r.batch_id, {NO_BATCH}) AS batch_id" if c == "batch_id" else f"r.{c}" for c in columns
        )
        partition = ", ".join(f"r.{c}" for c in ("date", *entity))
        return self._query(
            table,
            f"""
            SELECT {selected}
            FROM {table} r
            LEFT JOIN upload_batches b ON r.batch_id = b.batch_id
            WHERE r.date BETWEEN ? AND ?
              AND (r.batch_id = ? OR b.status = ?)
            QUALIFY ROW_NUMBER() OVER (PARTITION BY {partition} ORDER BY r.batch_id DESC) = 1
            ORDER BY {partition}
            """,
            [since, until, NO_BATCH, CONFIRMED],
        )

    def fetch_station_readings(self, since: date, until: date) -> List[DailyStationReading]:
        rows = self._confirmed_rows("station_readings", _STATION_COLUMNS, ("station",), since, until)
        return [DailyStationReading.model_validate(row) for row in rows]

    def fetch_unit_readings(self, since: date, until: date) -> List[DailyUnitReading]:
        rows = self._confirmed_rows("unit_readings", _UNIT_COLUMNS, ("station", "unit_id"), since, until)
        return [DailyUnitReading.model_validate(row) for row in rows]

    def fetch_monthly_kpis(self) -> List[MonthlyKpiPoint]:
        rows = self._query(
            "monthly_kpis",
            "SELECT month, kpi_name, value FROM monthly_kpis ORDER BY month, kpi_name",
        )
        return [MonthlyKpiPoint.model_validate(row) for row in rows]

    def latest_generation_date(self) -> Optional[date]:
        rows = self._query(
            "forecast_generation",
            "SELECT MAX(generation_date) AS generation_date FROM forecast_generation",
        )
        return rows[0]["generation_date"] if rows else None

    def load_generation(self, generation_date: date) -> Dict[str, List[Dict[str, Any]]]:
        """Stored rows of one generation per table, in display order."""
        result: Dict[str, List[Dict[str, Any]]] = {}
        result["forecast_generation"] = self._query(
            "forecast_generation",
            "SELECT generation_date, input_fingerprint FROM forecast_generation WHERE generation_date = ?",
            [generation_date],
        )
        for table in RESULT_TABLES:
            columns = ", ".join(_RESULT_COLUMNS[table])
            result[table] = self._query(
                table,
                f"SELECT {columns} FROM {table} WHERE generation_date = ? ORDER BY {_RESULT_ORDER[table]}",
                [generation_date],
            )
        return result

    # ---- reading ingestion ----------------------------------------------

    def _upsert(self, table: str, columns: Sequence[str], rows: List[List[Any]]) -> int:
        if not rows:
            return 0
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        with self._lock:
            try:
                self._conn.executemany(sql, rows)
            except duckdb.Error as exc:
                raise PersistenceError("upsert", table, exc) from exc
        log.debug("Upserted %d rows into %s", len(rows), table)
        return len(rows)

    def upsert_daily_grid_readings(self, readings: Iterable[DailyGridReading]) -> int:
        rows = []
        for r in readings:
            values = r.model_dump()
            values["sub_grid_capacity_json"] = json.dumps(values.pop("sub_grid_capacity_mw"), sort_keys=True)
            rows.append([values[c] for c in _GRID_COLUMNS])
        return self._upsert("daily_grid_readings", _GRID_COLUMNS, rows)

    def upsert_station_readings(self, readings: Iterable[DailyStationReading]) -> int:
        rows = [_batched_row(r.model_dump(), _STATION_COLUMNS) for r in readings]
        return self._upsert("station_readings", _STATION_COLUMNS, rows)

    def upsert_unit_readings(self, readings: Iterable[DailyUnitReading]) -> int:
        rows = [_batched_row(r.model_dump(), _UNIT_COLUMNS) for r in readings]
        return self._upsert("unit_readings", _UNIT_COLUMNS, rows)

    def upsert_monthly_kpis(self, points: Iterable[MonthlyKpiPoint]) -> int:
        rows = [[p.month, p.kpi_name, p.value] for p in points]
        return self._upsert("monthly_kpis", ("month", "kpi_name", "value"), rows)

    def register_batch(self, batch_id: int, status: str = "pending") -> None:
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT OR REPLACE INTO upload_batches (batch_id, status, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    """,
                    [batch_id, status],
                )
            except duckdb.Error as exc:
                raise PersistenceError("upsert", "upload_batches", exc) from exc

    def confirm_batch(self, batch_id: int) -> None:
        self.register_batch(batch_id, CONFIRMED)

    # ---- result writes --------------------------------------------------

    def _insert(self, table: str, generation_date: date, records: Sequence[Any]) -> int:
        if not records:
            return 0
        columns = ("generation_date",) + _RESULT_COLUMNS[table]
        placeholders = ", ".join("?" for _ in columns)
        rows = [[generation_date, *astuple(record)] for record in records]
        self._conn.executemany(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            rows,
        )
        return len(rows)

    def write_bundle(self, bundle: ForecastBundle) -> Dict[str, int]:
        """Replace every result row for ``bundle.generation_date`` atomically."""
        payload = {
            "forecast_demand": bundle.demand_forecasts,
            "forecast_capacity": bundle.capacity_timeline,
            "forecast_load_shedding": (bundle.load_shedding,),
            "forecast_station_reliability": bundle.station_reliability,
            "forecast_unit_risk": bundle.persisted_unit_risk,
            "forecast_kpi": bundle.kpi_forecasts,
        }
        counts: Dict[str, int] = {}
        table = "forecast_generation"
        with self._lock:
            self._conn.begin()
            try:
                self._conn.execute(
                    "DELETE FROM forecast_generation WHERE generation_date = ?", [bundle.generation_date]
                )
                for table in RESULT_TABLES:
                    self._conn.execute(f"DELETE FROM {table} WHERE generation_date = ?", [bundle.generation_date])
                for table in RESULT_TABLES:
                    counts[table] = self._insert(table, bundle.generation_date, payload[table])
                table = "forecast_generation"
                self._conn.execute(
                    "INSERT INTO forecast_generation (generation_date, input_fingerprint) VALUES (?, ?)",
                    [bundle.generation_date, bundle.input_fingerprint],
                )
                self._conn.commit()
            except Exception as exc:
                self._conn.rollback()
                raise PersistenceError("write", table, exc) from exc
        log.info(
            "Stored generation %s (%d rows)",
            bundle.generation_date.isoformat(),
            sum(counts.values()),
            extra={"generation_date": bundle.generation_date.isoformat()},
        )
        return counts
