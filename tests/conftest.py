"""
Pytest configuration and fixtures.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

import pytest

from nvidia_gpu_exporter.logging import ROOT_LOGGER
from nvidia_gpu_exporter.sources.base import (
    ClockType,
    MemoryInfo,
    TelemetryError,
    TelemetrySource,
    TelemetryUnavailableError,
    UtilizationRates,
)


def default_values() -> dict[str, Any]:
    return {
        "temperature": 65,
        "power_usage": 120000,
        "average_power_usage": 110500.0,
        "power_limit": 250000,
        "enforced_power_limit": 240000,
        "fan_speed": 40,
        "memory_info": MemoryInfo(total=16 * 1024**3, used=4 * 1024**3, free=12 * 1024**3),
        "utilization_rates": UtilizationRates(gpu=75, memory=30),
        "average_gpu_utilization": 70.0,
        "encoder_utilization": 5,
        "decoder_utilization": 3,
        "clock_graphics": 1590,
        "clock_sm": 1590,
        "clock_memory": 5001,
        "pcie_link_generation": 4,
        "pcie_link_width": 16,
    }


@dataclass
class FakeDevice:
    """Scripted GPU: identity, attribute values and failing operations."""

    minor_number: int
    uuid: str
    name: str = "Tesla T4"
    values: dict[str, Any] = field(default_factory=default_values)
    failing: set[str] = field(default_factory=set)

    @property
    def labels(self) -> dict[str, str]:
        return {"minor_number": str(self.minor_number), "uuid": self.uuid, "name": self.name}


@dataclass
class Call:
    thread: str
    operation: str
    device: str | None = None


class FakeSource(TelemetrySource):
    """
    In-memory telemetry source.

    Every call is recorded with the calling thread and the device UUID so
    tests can assert on gating, ordering and isolation.
    """

    def __init__(self, devices: list[FakeDevice] | None = None):
        self.devices = list(devices or [])
        self.count: int | None = None  # Overrides len(devices) when set
        self.count_error = False
        self.init_error = False
        self.driver_error = False
        self.handle_errors: set[int] = set()
        self.calls: list[Call] = []
        self.lock = threading.Lock()

    def _record(self, operation: str, device: FakeDevice | None = None) -> None:
        with self.lock:
            self.calls.append(
                Call(threading.current_thread().name, operation, device.uuid if device else None)
            )

    def operations(self, device: str | None = None) -> list[str]:
        return [c.operation for c in self.calls if device is None or c.device == device]

    def _read(self, operation: str, handle: FakeDevice) -> Any:
        self._record(operation, handle)
        if operation in handle.failing:
            raise TelemetryError(operation, "Not Supported")
        return handle.values[operation]

    def initialize(self) -> None:
        self._record("initialize")
        if self.init_error:
            raise TelemetryUnavailableError("nvmlInit", "NVML Shared Library Not Found")

    def shutdown(self) -> None:
        self._record("shutdown")

    def driver_version(self) -> str:
        self._record("driver_version")
        if self.driver_error:
            raise TelemetryError("driver_version", "Unknown Error")
        return "535.104.05"

    def device_count(self) -> int:
        self._record("device_count")
        if self.count_error:
            raise TelemetryError("device_count", "Driver Not Loaded")
        return len(self.devices) if self.count is None else self.count

    def device_handle(self, index: int) -> Any:
        self._record("device_handle")
        if index in self.handle_errors or index >= len(self.devices):
            raise TelemetryError("device_handle", "GPU is lost")
        return self.devices[index]

    def minor_number(self, handle: Any) -> int:
        self._record("minor_number", handle)
        if "minor_number" in handle.failing:
            raise TelemetryError("minor_number", "Not Supported")
        return handle.minor_number

    def uuid(self, handle: Any) -> str:
        self._record("uuid", handle)
        if "uuid" in handle.failing:
            raise TelemetryError("uuid", "Not Supported")
        return handle.uuid

    def name(self, handle: Any) -> str:
        self._record("name", handle)
        if "name" in handle.failing:
            raise TelemetryError("name", "Not Supported")
        return handle.name

    def temperature(self, handle: Any) -> int:
        return self._read("temperature", handle)

    def power_usage(self, handle: Any) -> int:
        return self._read("power_usage", handle)

    def average_power_usage(self, handle: Any, window: float) -> float:
        return self._read("average_power_usage", handle)

    def power_limit(self, handle: Any) -> int:
        return self._read("power_limit", handle)

    def enforced_power_limit(self, handle: Any) -> int:
        return self._read("enforced_power_limit", handle)

    def fan_speed(self, handle: Any) -> int:
        return self._read("fan_speed", handle)

    def memory_info(self, handle: Any) -> MemoryInfo:
        return self._read("memory_info", handle)

    def utilization_rates(self, handle: Any) -> UtilizationRates:
        return self._read("utilization_rates", handle)

    def average_gpu_utilization(self, handle: Any, window: float) -> float:
        return self._read("average_gpu_utilization", handle)

    def encoder_utilization(self, handle: Any) -> int:
        return self._read("encoder_utilization", handle)

    def decoder_utilization(self, handle: Any) -> int:
        return self._read("decoder_utilization", handle)

    def clock(self, handle: Any, clock_type: ClockType) -> int:
        return self._read(f"clock_{clock_type.value}", handle)

    def pcie_link_generation(self, handle: Any) -> int:
        return self._read("pcie_link_generation", handle)

    def pcie_link_width(self, handle: Any) -> int:
        return self._read("pcie_link_width", handle)


@pytest.fixture
def gpu0() -> FakeDevice:
    return FakeDevice(minor_number=0, uuid="GPU-aaaaaaaa-0000")


@pytest.fixture
def gpu1() -> FakeDevice:
    return FakeDevice(minor_number=1, uuid="GPU-bbbbbbbb-1111", name="Tesla V100")


@pytest.fixture
def source(gpu0: FakeDevice, gpu1: FakeDevice) -> FakeSource:
    """Two healthy GPUs."""
    return FakeSource([gpu0, gpu1])


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging so they don't outlive captured streams."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith(f"{ROOT_LOGGER}."):
            logging.getLogger(name).setLevel(logging.NOTSET)
