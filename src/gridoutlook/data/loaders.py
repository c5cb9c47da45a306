"""
Data: load operator exports (CSV or Parquet) into typed readings.

Expected files in a load directory (either extension):
    - daily_grid.csv      one row per grid per day
    - stations.csv        one row per station per day
    - units.csv           one row per unit per day
    - monthly_kpis.csv    long (month, kpi_name, value) or wide (month + one column per KPI)

Column names from the upstream reporting tables (``report_date``,
``evening_peak_on_bars_mw`` ...) are accepted as aliases.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import numpy as np
import pandas as pd
from pydantic import BaseModel, ValidationError

from gridoutlook.data.schemas import (
    DailyGridReading,
    DailyStationReading,
    DailyUnitReading,
    MonthlyKpiPoint,
)

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SUB_GRID_PREFIX = "sub_grid_capacity_mw."

_ALIASES = {
    "report_date": "date",
    "evening_peak_on_bars_mw": "served_peak_mw",
    "evening_peak_suppressed_mw": "suppressed_peak_mw",
    "day_peak_on_bars_mw": "day_served_peak_mw",
    "day_peak_suppressed_mw": "day_suppressed_peak_mw",
    "total_fossil_fuel_capacity_mw": "total_capacity_mw",
    "total_dbis_capacity_mw": SUB_GRID_PREFIX + "DBIS",
    "expected_peak_demand_mw": "expected_peak_mw",
    "total_renewable_mwp": "renewable_capacity_mw",
    "system_utilization_pct": "utilization_pct",
    "station_utilization_pct": "utilization_pct",
    "total_available_mw": "available_capacity_mw",
    "total_derated_capacity_mw": "derated_capacity_mw",
    "unit_number": "unit_id",
    "upload_id": "batch_id",
}


class ReadingValidationError(ValueError):
    """A row in an input file could not be parsed into a reading."""

    def __init__(self, source: str, row: int, message: str) -> None:
        self.source = source
        self.row = row
        super().__init__(f"{source}: row {row}: {message}")


def read_frame(path: Path) -> pd.DataFrame:
    if path.suffix == ".parquet":
        return pd.read_parquet(path)
    return pd.read_csv(path)


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    renamed = {c: _ALIASES.get(str(c).strip().lower(), str(c).strip()) for c in df.columns}
    return df.rename(columns=renamed)


def _plain(value: Any) -> Any:
    # numpy scalars -> builtin int/float/bool
    if isinstance(value, np.generic):
        return value.item()
    return value


def _rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Records with NaN/NaT cells turned into None."""
    clean = df.astype(object).where(pd.notna(df), None)
    return [{k: _plain(v) for k, v in row.items()} for row in clean.to_dict(orient="records")]


def _validate_rows(
    model: Type[M],
    rows: List[Dict[str, Any]],
    source: str,
    prepare: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
) -> List[M]:
    readings = []
    for i, row in enumerate(rows, start=1):
        try:
            readings.append(model.model_validate(prepare(row) if prepare else row))
        except (ValidationError, ValueError) as exc:
            raise ReadingValidationError(source, i, str(exc)) from exc
    return readings


def daily_grid_from_frame(df: pd.DataFrame, default_grid: str, source: str = "<frame>") -> List[DailyGridReading]:
    """
    Sub-grid capacities come either from ``sub_grid_capacity_mw.<name>``
    columns (the upstream ``total_dbis_capacity_mw`` is read as the DBIS
    entry) or from a JSON object in a ``sub_grid_capacity_mw`` column.
    Rows without a ``grid`` value belong to ``default_grid``.
    """
    df = _normalize_columns(df)

    def prepare(row: Dict[str, Any]) -> Dict[str, Any]:
        sub_grids: Dict[str, Any] = {}
        raw = row.pop("sub_grid_capacity_mw", None)
        if isinstance(raw, str) and raw.strip():
            sub_grids.update(json.loads(raw))
        elif isinstance(raw, dict):
            sub_grids.update(raw)
        for key in [k for k in row if k.startswith(SUB_GRID_PREFIX)]:
            value = row.pop(key)
            if value is not None:
                sub_grids[key[len(SUB_GRID_PREFIX):]] = value
        row["sub_grid_capacity_mw"] = sub_grids
        if not row.get("grid"):
            row["grid"] = default_grid
        return row

    return _validate_rows(DailyGridReading, _rows(df), source, prepare)


def station_readings_from_frame(df: pd.DataFrame, source: str = "<frame>") -> List[DailyStationReading]:
    return _validate_rows(DailyStationReading, _rows(_normalize_columns(df)), source)


def unit_readings_from_frame(df: pd.DataFrame, source: str = "<frame>") -> List[DailyUnitReading]:
    return _validate_rows(DailyUnitReading, _rows(_normalize_columns(df)), source)


def monthly_kpis_from_frame(df: pd.DataFrame, source: str = "<frame>") -> List[MonthlyKpiPoint]:
    """Accept long or wide layout; wide blanks are dropped, long blanks are errors."""
    df = _normalize_columns(df)
    if "month" not in df.columns and "date" in df.columns:
        df = df.rename(columns={"date": "month"})
    if {"kpi_name", "value"}.issubset(df.columns):
        return _validate_rows(MonthlyKpiPoint, _rows(df[["month", "kpi_name", "value"]]), source)

    long = df.melt(id_vars=["month"], var_name="kpi_name", value_name="value")
    long = long[long["value"].notna()]
    return _validate_rows(MonthlyKpiPoint, _rows(long), source)


def _find(directory: Path, stem: str) -> Optional[Path]:
    for suffix in (".parquet", ".csv"):
        candidate = directory / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_directory(directory: str | Path, store: Any, default_grid: str) -> Dict[str, int]:
    """
    Load every recognised file in ``directory`` into ``store``.

    Batches referenced by station or unit rows are registered as confirmed,
    since files placed in a load directory are already reviewed exports.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(directory)

    counts: Dict[str, int] = {}
    path = _find(directory, "daily_grid")
    if path:
        counts["daily_grid"] = store.upsert_daily_grid_readings(
            daily_grid_from_frame(read_frame(path), default_grid, str(path))
        )

    batch_ids = set()
    path = _find(directory, "stations")
    if path:
        stations = station_readings_from_frame(read_frame(path), str(path))
        batch_ids.update(r.batch_id for r in stations if r.batch_id is not None)
        counts["stations"] = store.upsert_station_readings(stations)
    path = _find(directory, "units")
    if path:
        units = unit_readings_from_frame(read_frame(path), str(path))
        batch_ids.update(r.batch_id for r in units if r.batch_id is not None)
        counts["units"] = store.upsert_unit_readings(units)
    for batch_id in sorted(batch_ids):
        store.confirm_batch(batch_id)

    path = _find(directory, "monthly_kpis")
    if path:
        counts["monthly_kpis"] = store.upsert_monthly_kpis(monthly_kpis_from_frame(read_frame(path), str(path)))

    log.info("Loaded %s from %s", counts, directory)
    return counts
