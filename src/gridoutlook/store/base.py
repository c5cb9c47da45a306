"""Repository contract between the forecast engine and its storage backend."""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Protocol, runtime_checkable

from gridoutlook.data.records import ForecastBundle
from gridoutlook.data.schemas import (
    DailyGridReading,
    DailyStationReading,
    DailyUnitReading,
    MonthlyKpiPoint,
)

RESULT_TABLES = (
    "forecast_demand",
    "forecast_capacity",
    "forecast_load_shedding",
    "forecast_station_reliability",
    "forecast_unit_risk",
    "forecast_kpi",
)


class PersistenceError(RuntimeError):
    """A read or write against the backing store failed."""

    def __init__(self, operation: str, table: str, cause: BaseException) -> None:
        self.operation = operation
        self.table = table
        self.cause = cause
        super().__init__(f"{operation} failed on {table}: {cause}")


@runtime_checkable
class ForecastRepository(Protocol):
    """
    Inputs and outputs of one forecast generation.

    Station and unit reads return rows from confirmed upload batches only; an
    empty result means there is no data yet. ``write_bundle`` replaces every
    result row for the bundle's generation date in one all-or-nothing step and
    returns the number of rows written per result table.
    """

    def fetch_daily_grid_readings(self, since: date, until: date) -> List[DailyGridReading]: ...

    def fetch_station_readings(self, since: date, until: date) -> List[DailyStationReading]: ...

    def fetch_unit_readings(self, since: date, until: date) -> List[DailyUnitReading]: ...

    def fetch_monthly_kpis(self) -> List[MonthlyKpiPoint]: ...

    def write_bundle(self, bundle: ForecastBundle) -> Dict[str, int]: ...
