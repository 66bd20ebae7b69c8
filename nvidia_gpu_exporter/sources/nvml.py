"""
NVML telemetry source.

Reads GPU telemetry through the NVIDIA Management Library using the
nvidia-ml-py bindings (imported as pynvml). Every NVMLError is translated
to TelemetryError so callers never depend on pynvml directly.

Rolling averages (power, GPU utilization) come from the driver's own sample
buffer: nvmlDeviceGetSamples returns every sample newer than a timestamp,
and the mean of those samples is reported.
"""

import time
from collections.abc import Callable
from typing import Any

import pynvml

from ..logging import get_logger
from .base import (
    ClockType,
    MemoryInfo,
    TelemetryError,
    TelemetrySource,
    TelemetryUnavailableError,
    UtilizationRates,
)


logger = get_logger("sources.nvml")


_CLOCK_TYPES = {
    ClockType.GRAPHICS: pynvml.NVML_CLOCK_GRAPHICS,
    ClockType.SM: pynvml.NVML_CLOCK_SM,
    ClockType.MEMORY: pynvml.NVML_CLOCK_MEM,
}

# nvmlValueType_t -> field of the c_nvmlValue_t union
_SAMPLE_VALUE_FIELDS = {
    pynvml.NVML_VALUE_TYPE_DOUBLE: "dVal",
    pynvml.NVML_VALUE_TYPE_UNSIGNED_INT: "uiVal",
    pynvml.NVML_VALUE_TYPE_UNSIGNED_LONG: "ulVal",
    pynvml.NVML_VALUE_TYPE_UNSIGNED_LONG_LONG: "ullVal",
    pynvml.NVML_VALUE_TYPE_SIGNED_LONG_LONG: "sllVal",
}


def _decode(value: str | bytes) -> str:
    """Older bindings return bytes for strings."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _call(operation: str, func: Callable[..., Any], *args: Any) -> Any:
    """Call an NVML function, translating NVMLError to TelemetryError."""
    try:
        return func(*args)
    except pynvml.NVMLError as e:
        raise TelemetryError(operation, str(e)) from e


def average_samples(value_type: int, samples: list[Any]) -> float:
    """
    Average the values of an nvmlDeviceGetSamples result.

    Args:
        value_type: nvmlValueType_t reported alongside the samples
        samples: Sample structs with a sampleValue union

    Returns:
        Mean sample value

    Raises:
        TelemetryError: If there are no samples or the value type is unknown
    """
    field_name = _SAMPLE_VALUE_FIELDS.get(value_type)
    if field_name is None:
        raise TelemetryError("samples", f"unsupported sample value type {value_type}")
    if not samples:
        raise TelemetryError("samples", "no samples in window")

    total = 0.0
    for sample in samples:
        total += float(getattr(sample.sampleValue, field_name))
    return total / len(samples)


class NVMLSource(TelemetrySource):
    """
    Telemetry source backed by NVML.

    The library handle is process-wide; initialize() and shutdown() must be
    called exactly once each, and callers must serialize all other calls.
    """

    def __init__(self) -> None:
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as e:
            raise TelemetryUnavailableError("nvmlInit", str(e)) from e
        self._initialized = True
        logger.debug("NVML initialized")

    def shutdown(self) -> None:
        if not self._initialized:
            return
        self._initialized = False
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as e:
            logger.warning(f"NVML shutdown failed: {e}")
            return
        logger.debug("NVML shut down")

    def driver_version(self) -> str:
        return _decode(_call("driver_version", pynvml.nvmlSystemGetDriverVersion))

    def device_count(self) -> int:
        return int(_call("device_count", pynvml.nvmlDeviceGetCount))

    def device_handle(self, index: int) -> Any:
        return _call("device_handle", pynvml.nvmlDeviceGetHandleByIndex, index)

    def minor_number(self, handle: Any) -> int:
        return int(_call("minor_number", pynvml.nvmlDeviceGetMinorNumber, handle))

    def uuid(self, handle: Any) -> str:
        return _decode(_call("uuid", pynvml.nvmlDeviceGetUUID, handle))

    def name(self, handle: Any) -> str:
        return _decode(_call("name", pynvml.nvmlDeviceGetName, handle))

    def temperature(self, handle: Any) -> int:
        return _call(
            "temperature",
            pynvml.nvmlDeviceGetTemperature,
            handle,
            pynvml.NVML_TEMPERATURE_GPU,
        )

    def power_usage(self, handle: Any) -> int:
        return _call("power_usage", pynvml.nvmlDeviceGetPowerUsage, handle)

    def average_power_usage(self, handle: Any, window: float) -> float:
        return self._average("average_power_usage", handle, pynvml.NVML_TOTAL_POWER_SAMPLES, window)

    def power_limit(self, handle: Any) -> int:
        return _call("power_limit", pynvml.nvmlDeviceGetPowerManagementLimit, handle)

    def enforced_power_limit(self, handle: Any) -> int:
        return _call("enforced_power_limit", pynvml.nvmlDeviceGetEnforcedPowerLimit, handle)

    def fan_speed(self, handle: Any) -> int:
        return _call("fan_speed", pynvml.nvmlDeviceGetFanSpeed, handle)

    def memory_info(self, handle: Any) -> MemoryInfo:
        info = _call("memory_info", pynvml.nvmlDeviceGetMemoryInfo, handle)
        return MemoryInfo(total=int(info.total), used=int(info.used), free=int(info.free))

    def utilization_rates(self, handle: Any) -> UtilizationRates:
        rates = _call("utilization_rates", pynvml.nvmlDeviceGetUtilizationRates, handle)
        return UtilizationRates(gpu=int(rates.gpu), memory=int(rates.memory))

    def average_gpu_utilization(self, handle: Any, window: float) -> float:
        return self._average(
            "average_gpu_utilization", handle, pynvml.NVML_GPU_UTILIZATION_SAMPLES, window
        )

    def encoder_utilization(self, handle: Any) -> int:
        # [utilization, sampling period in us]
        return _call("encoder_utilization", pynvml.nvmlDeviceGetEncoderUtilization, handle)[0]

    def decoder_utilization(self, handle: Any) -> int:
        return _call("decoder_utilization", pynvml.nvmlDeviceGetDecoderUtilization, handle)[0]

    def clock(self, handle: Any, clock_type: ClockType) -> int:
        return _call(
            f"clock_{clock_type.value}",
            pynvml.nvmlDeviceGetClockInfo,
            handle,
            _CLOCK_TYPES[clock_type],
        )

    def pcie_link_generation(self, handle: Any) -> int:
        return _call("pcie_link_generation", pynvml.nvmlDeviceGetCurrPcieLinkGeneration, handle)

    def pcie_link_width(self, handle: Any) -> int:
        return _call("pcie_link_width", pynvml.nvmlDeviceGetCurrPcieLinkWidth, handle)

    def _average(self, operation: str, handle: Any, sample_type: int, window: float) -> float:
        """Average driver samples newer than now - window."""
        try:
            last_seen_us = int((time.time() - window) * 1_000_000)
        except (ValueError, OverflowError) as e:
            raise TelemetryError(operation, f"invalid sample window {window!r}") from e
        value_type, samples = _call(
            operation, pynvml.nvmlDeviceGetSamples, handle, sample_type, last_seen_us
        )
        try:
            return average_samples(value_type, samples)
        except TelemetryError as e:
            raise TelemetryError(operation, str(e)) from e
