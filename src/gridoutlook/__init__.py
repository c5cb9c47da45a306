"""
gridoutlook: Statistical Outlook Engine for Grid Operations.

This package turns the daily and monthly operating records of an electric
utility into deterministic forward-looking projections:
- Peak demand growth per grid with confidence bands
- Capacity adequacy and months until a projected shortfall
- Load shedding trend and six-month projection
- Station reliability and per-unit failure risk
- Twelve-month projections for the monthly KPI catalog

Main Modules:
    - analytics: regression toolkit and the individual analyzers
    - data: typed reading schemas, result records and file loaders
    - store: repository contract and the DuckDB implementation
    - pipeline: the orchestrator and its command line entry point
    - monitoring: Prometheus metrics and generation reports

Example:
    >>> from gridoutlook.store import DuckDBForecastStore
    >>> from gridoutlook.pipeline.run import ForecastOrchestrator
    >>> ForecastOrchestrator(DuckDBForecastStore("data/gridoutlook.duckdb")).run()

Version: 0.1.0
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
