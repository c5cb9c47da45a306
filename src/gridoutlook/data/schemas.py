"""
Data: Pydantic Schemas for Operational Readings.

This module defines the typed contracts for every series the forecasting
engine consumes. Operator reports arrive with loosely typed cells (numbers as
text, blanks, "-", "n/a", "12.5%"); all of that is normalized here so the
analytics core only ever sees ``float | None`` values and calendar dates.

Series:
    - DailyGridReading: one row per grid per day (capacity, peaks, margins)
    - DailyStationReading: one row per station per day (unit availability)
    - DailyUnitReading: one row per generating unit per day (status)
    - MonthlyKpiPoint: one value per KPI per month

Schema Evolution:
    New optional fields are backwards-compatible. Unknown columns are
    ignored so upstream exports can carry extra data.

Usage:
    >>> from gridoutlook.data.schemas import DailyStationReading
    >>> row = DailyStationReading.model_validate(
    ...     {"date": "2026-01-05", "station": "Canefield", "units_online": "3"}
    ... )
    >>> row.units_online
    3
"""
from __future__ import annotations

import math
import datetime as dt
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gridoutlook.utils.time import first_of_month, to_date

_NULL_TOKENS = {"", "-", "--", "n/a", "na", "null", "none", "nan"}


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a loosely formatted numeric cell.

    Accepts ints, floats and strings such as ``"1,234.5"`` or ``"87.5%"``.
    Blank and placeholder cells (``"-"``, ``"n/a"``) become None.

    Raises:
        ValueError: for text that is not a number, and for infinities.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a numeric reading")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if text.lower() in _NULL_TOKENS:
            return None
        number = float(text.replace(",", "").rstrip("%").strip())
    if math.isnan(number):
        return None
    if not math.isfinite(number):
        raise ValueError(f"non-finite reading: {value!r}")
    return number


def _parse_count(value: Any) -> int:
    number = parse_number(value)
    return int(number) if number is not None else 0


class _Reading(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("date", mode="before", check_fields=False)
    @classmethod
    def _coerce_date(cls, value: Any) -> dt.date:
        return to_date(value)


class DailyGridReading(_Reading):
    """
    System-level daily summary for one grid. All power values are in MW.

    ``served_peak_mw`` is the evening peak actually supplied (on bars) and
    ``suppressed_peak_mw`` the evening peak including suppressed demand; their
    difference is the load shed that evening.
    """
    date: dt.date
    grid: str
    total_capacity_mw: Optional[float] = None
    expected_peak_mw: Optional[float] = None
    served_peak_mw: Optional[float] = Field(None, description="Evening peak on bars (MW)")
    suppressed_peak_mw: Optional[float] = Field(None, description="Evening peak incl. suppressed demand (MW)")
    day_served_peak_mw: Optional[float] = None
    day_suppressed_peak_mw: Optional[float] = None
    utilization_pct: Optional[float] = None
    reserve_margin_pct: Optional[float] = None
    sub_grid_capacity_mw: Dict[str, float] = Field(default_factory=dict)
    renewable_capacity_mw: Optional[float] = None

    @field_validator(
        "total_capacity_mw",
        "expected_peak_mw",
        "served_peak_mw",
        "suppressed_peak_mw",
        "day_served_peak_mw",
        "day_suppressed_peak_mw",
        "utilization_pct",
        "reserve_margin_pct",
        "renewable_capacity_mw",
        mode="before",
    )
    @classmethod
    def _coerce_number(cls, value: Any) -> Optional[float]:
        return parse_number(value)

    @field_validator("sub_grid_capacity_mw", mode="before")
    @classmethod
    def _coerce_sub_grids(cls, value: Any) -> Dict[str, float]:
        if value is None:
            return {}
        parsed: Dict[str, float] = {}
        for name, raw in dict(value).items():
            number = parse_number(raw)
            if number is not None:
                parsed[str(name)] = number
        return parsed


class DailyStationReading(_Reading):
    """Daily unit availability for one power station (confirmed batches only)."""
    date: dt.date
    station: str
    total_units: int = 0
    units_online: int = 0
    units_offline: int = 0
    units_no_data: int = 0
    derated_capacity_mw: Optional[float] = None
    available_capacity_mw: Optional[float] = None
    utilization_pct: Optional[float] = None
    batch_id: Optional[int] = None

    @field_validator("total_units", "units_online", "units_offline", "units_no_data", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return _parse_count(value)

    @field_validator("derated_capacity_mw", "available_capacity_mw", "utilization_pct", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Optional[float]:
        return parse_number(value)

    @property
    def is_online(self) -> bool:
        return self.units_online > 0


class DailyUnitReading(_Reading):
    """Daily status of one generating unit (confirmed batches only)."""
    date: dt.date
    station: str
    engine: str = ""
    unit_id: str
    derated_capacity_mw: Optional[float] = None
    available_mw: Optional[float] = None
    status: str
    utilization_pct: Optional[float] = None
    batch_id: Optional[int] = None

    @field_validator("unit_id", "engine", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip()

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        return str(value or "").strip().lower()

    @field_validator("derated_capacity_mw", "available_mw", "utilization_pct", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Optional[float]:
        return parse_number(value)

    @property
    def is_online(self) -> bool:
        return self.status == "online"

    @property
    def unit_key(self) -> tuple[str, str]:
        return (self.station, self.unit_id)


class MonthlyKpiPoint(BaseModel):
    """A single monthly KPI value; ``month`` is normalized to the first day."""
    month: dt.date
    kpi_name: str
    value: float

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("month", mode="before")
    @classmethod
    def _coerce_month(cls, value: Any) -> dt.date:
        return first_of_month(to_date(value))

    @field_validator("kpi_name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> float:
        number = parse_number(value)
        if number is None:
            raise ValueError("KPI value is required")
        return number
