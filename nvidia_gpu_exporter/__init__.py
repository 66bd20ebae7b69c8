"""
Prometheus exporter for NVIDIA GPU telemetry read through NVML.
"""

from .const import APP_VERSION

__version__ = APP_VERSION

__all__ = ["__version__"]
