"""
PyTest Configuration and Fixtures for gridoutlook Tests.

Factories build typed readings day by day so each test states only the
series it cares about.
"""
from __future__ import annotations

import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Generator, List, Optional, Sequence

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gridoutlook.data.schemas import (  # noqa: E402
    DailyGridReading,
    DailyStationReading,
    DailyUnitReading,
    MonthlyKpiPoint,
)
from gridoutlook.store.duckdb_store import DuckDBForecastStore  # noqa: E402
from gridoutlook.utils.config import ForecastEngineConfig  # noqa: E402
from gridoutlook.utils.time import add_months  # noqa: E402

AS_OF = date(2026, 3, 15)


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def engine_config() -> ForecastEngineConfig:
    return ForecastEngineConfig()


# =============================================================================
# READING FACTORIES
# =============================================================================

@pytest.fixture
def make_grid_days() -> Callable[..., List[DailyGridReading]]:
    """Daily grid rows ending on ``end`` (default AS_OF), one per value."""

    def _make(
        served: Sequence[Optional[float]],
        grid: str = "DBIS",
        end: date = AS_OF,
        suppressed: Optional[Sequence[Optional[float]]] = None,
        **fields: Any,
    ) -> List[DailyGridReading]:
        start = end - timedelta(days=len(served) - 1)
        rows = []
        for i, value in enumerate(served):
            rows.append(
                DailyGridReading(
                    date=start + timedelta(days=i),
                    grid=grid,
                    served_peak_mw=value,
                    suppressed_peak_mw=suppressed[i] if suppressed is not None else None,
                    **fields,
                )
            )
        return rows

    return _make


@pytest.fixture
def make_station_days() -> Callable[..., List[DailyStationReading]]:
    """Consecutive station days from online flags, ending on ``end``."""

    def _make(
        station: str,
        online: Sequence[bool],
        end: date = AS_OF,
        total_units: int = 4,
        utilization: Optional[float] = None,
        batch_id: Optional[int] = None,
    ) -> List[DailyStationReading]:
        start = end - timedelta(days=len(online) - 1)
        return [
            DailyStationReading(
                date=start + timedelta(days=i),
                station=station,
                total_units=total_units,
                units_online=2 if flag else 0,
                units_offline=total_units - (2 if flag else 0),
                utilization_pct=utilization,
                batch_id=batch_id,
            )
            for i, flag in enumerate(online)
        ]

    return _make


@pytest.fixture
def make_unit_days() -> Callable[..., List[DailyUnitReading]]:
    """Consecutive unit days from status strings, ending on ``end``."""

    def _make(
        station: str,
        unit_id: str,
        statuses: Sequence[str],
        end: date = AS_OF,
        engine: str = "Wartsila",
        derated: Optional[float] = 5.0,
        batch_id: Optional[int] = None,
    ) -> List[DailyUnitReading]:
        start = end - timedelta(days=len(statuses) - 1)
        return [
            DailyUnitReading(
                date=start + timedelta(days=i),
                station=station,
                engine=engine,
                unit_id=unit_id,
                derated_capacity_mw=derated,
                status=status,
                batch_id=batch_id,
            )
            for i, status in enumerate(statuses)
        ]

    return _make


@pytest.fixture
def make_kpi_series() -> Callable[..., List[MonthlyKpiPoint]]:
    """Monthly points for one KPI, the last one in the month before AS_OF."""

    def _make(name: str, values: Sequence[float], last_month: date = add_months(AS_OF, -1)) -> List[MonthlyKpiPoint]:
        first = add_months(last_month, -(len(values) - 1))
        return [
            MonthlyKpiPoint(month=add_months(first, i), kpi_name=name, value=value)
            for i, value in enumerate(values)
        ]

    return _make


@pytest.fixture
def sample_inputs(make_grid_days, make_station_days, make_unit_days, make_kpi_series) -> dict:
    """A small but complete data set touching every analyzer."""
    served = [100.0 + (i % 7) + i * 0.2 for i in range(60)]
    suppressed = [s + (4.0 if i % 5 == 0 else 0.0) for i, s in enumerate(served)]
    daily = make_grid_days(
        served,
        suppressed=suppressed,
        sub_grid_capacity_mw={"DBIS": 125.0},
        total_capacity_mw=140.0,
    )

    stations = (
        make_station_days("Garden of Eden", [True] * 30)
        + make_station_days("Canefield", [True, False] * 15, utilization=61.0)
        + make_station_days("Onverwagt", [False] * 25 + [True] * 5)
    )
    units = (
        make_unit_days("Canefield", "1", ["online", "offline"] * 15)
        + make_unit_days("Canefield", "2", ["online"] * 30)
        + make_unit_days("Garden of Eden", "7", ["online"] * 25 + ["offline"] * 5)
    )
    kpis = (
        make_kpi_series("Peak Demand Essequibo", [10.0, 10.5, 11.2, 11.8, 12.1, 12.9])
        + make_kpi_series("Installed Capacity Essequibo", [14.0] * 6)
        + make_kpi_series("Collection Rate %", [91.0, 93.5, 95.0, 97.5, 98.0, 99.5])
        + make_kpi_series("Affected Customers", [1200.0, 900.0, 700.0, 400.0, 250.0, 100.0])
    )
    return {"daily_grid": daily, "stations": stations, "units": units, "kpis": kpis}


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def store(tmp_path: Path) -> Generator[DuckDBForecastStore, None, None]:
    """A DuckDB store in a temporary file."""
    forecast_store = DuckDBForecastStore(str(tmp_path / "forecast.duckdb"))
    yield forecast_store
    forecast_store.close()


@pytest.fixture
def restore_root_logging() -> Generator[None, None, None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    if hasattr(root, "_gridoutlook_configured"):
        delattr(root, "_gridoutlook_configured")


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that touch a DuckDB file"
    )
