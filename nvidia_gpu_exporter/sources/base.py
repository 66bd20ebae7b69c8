"""
Telemetry source interface.

A telemetry source wraps the process-wide native library that talks to the
GPU driver. It exposes device enumeration and one accessor per attribute.
Every accessor is independently fallible: an unsupported attribute and a
transient read failure are both reported as TelemetryError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TelemetryError(Exception):
    """Exception raised when a telemetry read fails or is not supported."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class TelemetryUnavailableError(TelemetryError):
    """The native telemetry library could not be loaded or initialized."""


class ClockType(Enum):
    """Clock domains that can be queried on a device."""
    GRAPHICS = "graphics"
    SM = "sm"
    MEMORY = "memory"


@dataclass(frozen=True)
class MemoryInfo:
    """Framebuffer memory usage in bytes."""
    total: int
    used: int
    free: int


@dataclass(frozen=True)
class UtilizationRates:
    """Utilization over the driver's last sample period, in percent."""
    gpu: int
    memory: int


class TelemetrySource(ABC):
    """
    Abstract GPU telemetry source.

    Handles returned by device_handle() are opaque to callers and only
    valid until the library is shut down.
    """

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the underlying library.

        Called once per process before any other method.

        Raises:
            TelemetryUnavailableError: If the library cannot be loaded
        """

    @abstractmethod
    def shutdown(self) -> None:
        """Release the underlying library. Called once at process exit."""

    @abstractmethod
    def driver_version(self) -> str:
        pass

    @abstractmethod
    def device_count(self) -> int:
        pass

    @abstractmethod
    def device_handle(self, index: int) -> Any:
        pass

    # Identity

    @abstractmethod
    def minor_number(self, handle: Any) -> int:
        pass

    @abstractmethod
    def uuid(self, handle: Any) -> str:
        pass

    @abstractmethod
    def name(self, handle: Any) -> str:
        pass

    # Telemetry attributes

    @abstractmethod
    def temperature(self, handle: Any) -> int:
        """GPU core temperature in degrees Celsius."""

    @abstractmethod
    def power_usage(self, handle: Any) -> int:
        """Current board power draw in milliwatts."""

    @abstractmethod
    def average_power_usage(self, handle: Any, window: float) -> float:
        """Power draw in milliwatts averaged by the driver over the last window seconds."""

    @abstractmethod
    def power_limit(self, handle: Any) -> int:
        """Power management limit in milliwatts."""

    @abstractmethod
    def enforced_power_limit(self, handle: Any) -> int:
        """Effective power limit in milliwatts after all constraints are applied."""

    @abstractmethod
    def fan_speed(self, handle: Any) -> int:
        """Intended fan speed in percent."""

    @abstractmethod
    def memory_info(self, handle: Any) -> MemoryInfo:
        pass

    @abstractmethod
    def utilization_rates(self, handle: Any) -> UtilizationRates:
        pass

    @abstractmethod
    def average_gpu_utilization(self, handle: Any, window: float) -> float:
        """GPU utilization in percent averaged over the last window seconds."""

    @abstractmethod
    def encoder_utilization(self, handle: Any) -> int:
        pass

    @abstractmethod
    def decoder_utilization(self, handle: Any) -> int:
        pass

    @abstractmethod
    def clock(self, handle: Any, clock_type: ClockType) -> int:
        """Current clock speed in MHz."""

    @abstractmethod
    def pcie_link_generation(self, handle: Any) -> int:
        pass

    @abstractmethod
    def pcie_link_width(self, handle: Any) -> int:
        pass
