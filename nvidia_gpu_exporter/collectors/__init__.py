"""
Metric collectors for GPU telemetry.
"""

from .base import Collector, CollectorResult
from .catalog import DEVICE_METRICS, SUMMARY_METRICS, DeviceMetric, DeviceReader, build_catalog
from .gpu import GPUCollector

__all__ = [
    "Collector",
    "CollectorResult",
    "DeviceMetric",
    "DeviceReader",
    "DEVICE_METRICS",
    "SUMMARY_METRICS",
    "GPUCollector",
    "build_catalog",
]
