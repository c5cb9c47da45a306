"""Monitoring package.

Contains Prometheus metrics for forecast generations and report helpers.
"""

from .report import summarize_bundle, write_forecast_report

__all__ = ["summarize_bundle", "write_forecast_report"]
