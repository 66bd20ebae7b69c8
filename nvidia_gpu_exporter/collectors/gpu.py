"""
GPU collector.

Runs one device sweep per scrape:
- enumerate devices (failure makes the whole sweep unhealthy)
- resolve each device's identity (failure skips that device)
- read every enabled attribute independently (failure omits that sample)

All reads go through the injected TelemetrySource and are strictly
sequential; the library behind it is not safe for concurrent use.
"""

from typing import Any

from ..config.schema import MetricsConfig
from ..logging import get_logger
from ..models.device import GPUDevice
from ..models.metric import MetricDefinition, Observation
from ..sources.base import TelemetryError, TelemetrySource
from .base import Collector, CollectorResult
from .catalog import (
    DEVICE_COUNT,
    DEVICE_INFO,
    DRIVER_INFO,
    SUMMARY_METRICS,
    UP,
    DeviceMetric,
    DeviceReader,
    build_catalog,
)


logger = get_logger("collectors.gpu")


class GPUCollector(Collector):
    """
    Collector for per-GPU telemetry.

    The metric catalog is fixed at construction from the configuration;
    disabled metric groups are neither described nor read.
    """

    def __init__(self, source: TelemetrySource, config: MetricsConfig | None = None):
        """
        Initialize GPU collector.

        Args:
            source: Initialized telemetry source (owned by the caller)
            config: Metrics configuration (defaults if None)
        """
        super().__init__(name="gpu")
        self.source = source
        self.config = config or MetricsConfig()
        self._metrics = build_catalog(self.config)
        self._definitions = list(SUMMARY_METRICS) + [m.definition for m in self._metrics]

    def describe(self) -> list[MetricDefinition]:
        return list(self._definitions)

    def unhealthy_result(self, error: str) -> CollectorResult:
        result = super().unhealthy_result(error)
        result.set(UP.key, 0)
        return result

    def sweep(self) -> CollectorResult:
        """Collect one snapshot of all devices."""
        try:
            count = self.source.device_count()
        except TelemetryError as e:
            logger.error(f"Failed to collect metrics: {e}")
            return self.unhealthy_result(str(e))

        result = CollectorResult()
        result.set(UP.key, 1)
        result.set(DEVICE_COUNT.key, count)

        try:
            version = self.source.driver_version()
            result.set(DRIVER_INFO.key, 1, (version,))
        except TelemetryError as e:
            logger.debug(f"Driver version unavailable: {e}")

        for index in range(count):
            resolved = self._resolve_device(index)
            if resolved is None:
                continue

            device, handle = resolved
            result.set(DEVICE_INFO.key, 1, device.info_labels)

            reader = DeviceReader(self.source, handle)
            for metric in self._metrics:
                result.add(metric.key, device.labels, self._observe(metric, device, reader))

        logger.debug(f"Collected {len(result)} samples from {count} devices")
        return result

    def _resolve_device(self, index: int) -> tuple[GPUDevice, Any] | None:
        """
        Resolve the handle and identity of a device.

        Identity fields are the label set of every other sample, so a device
        with any unresolved field is skipped entirely.

        Returns:
            (device, handle), or None if the device must be skipped
        """
        try:
            handle = self.source.device_handle(index)
            device = GPUDevice(
                index=index,
                minor_number=self.source.minor_number(handle),
                uuid=self.source.uuid(handle),
                name=self.source.name(handle),
            )
        except TelemetryError as e:
            logger.warning(f"Skipping GPU {index}: {e}")
            return None

        return device, handle

    def _observe(
        self, metric: DeviceMetric, device: GPUDevice, reader: DeviceReader
    ) -> Observation:
        """Read one metric; failures are expected on some hardware and only logged at debug."""
        try:
            raw = metric.fetch(reader, self.config)
        except TelemetryError as e:
            logger.debug(f"{metric.key} unavailable for {device}: {e}")
            return Observation.missing()

        return Observation.of(float(raw) / metric.divisor)
