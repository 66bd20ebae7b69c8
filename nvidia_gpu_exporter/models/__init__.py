"""
Data models for devices, metric definitions and samples.
"""

from .device import GPUDevice
from .metric import MetricDefinition, Observation, Sample

__all__ = [
    "GPUDevice",
    "MetricDefinition",
    "Observation",
    "Sample",
]
