"""
Prometheus exposition: registry bridge and HTTP listener.
"""

from .registry import PrometheusCollector, build_families, create_registry
from .server import ExporterError, MetricsServer

__all__ = [
    "ExporterError",
    "MetricsServer",
    "PrometheusCollector",
    "build_families",
    "create_registry",
]
