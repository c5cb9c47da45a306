"""Forecast persistence: repository contract and DuckDB store."""

from .base import ForecastRepository, PersistenceError
from .duckdb_store import DuckDBForecastStore, get_forecast_duckdb_path

__all__ = ["DuckDBForecastStore", "ForecastRepository", "PersistenceError", "get_forecast_duckdb_path"]
