"""
gridoutlook Utilities Package.

Key modules:
    - config: YAML configuration loading and Pydantic validation models
    - logging: Structured logging setup with configurable handlers
    - metrics: goodness-of-fit helpers used by the regression toolkit
    - time: calendar date and month arithmetic

Example usage:
    >>> from gridoutlook.utils.config import load_engine_config
    >>> cfg = load_engine_config()
    >>> cfg.demand.horizon_months
    24
"""

from gridoutlook.utils.config import ConfigError, load_engine_config
from gridoutlook.utils.logging import setup_logging

__all__ = [
    "ConfigError",
    "load_engine_config",
    "setup_logging",
]
