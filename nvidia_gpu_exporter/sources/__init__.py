"""
Telemetry sources that read GPU attributes from the driver.
"""

from .base import (
    ClockType,
    MemoryInfo,
    TelemetryError,
    TelemetrySource,
    TelemetryUnavailableError,
    UtilizationRates,
)

__all__ = [
    "ClockType",
    "MemoryInfo",
    "TelemetryError",
    "TelemetrySource",
    "TelemetryUnavailableError",
    "UtilizationRates",
]
