"""
Configuration from environment variables and command-line flags.
"""

from .loader import ConfigError, ConfigLoader
from .schema import Config, LoggingConfig, MetricGroup, MetricsConfig, WebConfig

__all__ = [
    "Config",
    "ConfigError",
    "ConfigLoader",
    "LoggingConfig",
    "MetricGroup",
    "MetricsConfig",
    "WebConfig",
]
