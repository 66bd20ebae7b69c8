"""
GPU metric catalog.

Each per-device metric pairs its definition with the accessor that reads
it and, for optional metrics, the configuration group that gates it.
Power is read in milliwatts and exported in watts.

Accessors are read through a DeviceReader, so metrics derived from the same
reading (memory total/used, GPU/memory utilization) share one snapshot.

duty_cycle and avg_duty_cycle repeat utilization_gpu and
utilization_gpu_average under the names older dashboards query.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..config.schema import MetricGroup, MetricsConfig
from ..models.metric import MetricDefinition
from ..sources.base import ClockType, TelemetryError, TelemetrySource


MILLIWATTS_PER_WATT = 1000.0


class DeviceReader:
    """
    Read access to one device for the duration of a single sweep.

    Each accessor is called at most once per argument list; its value, or
    the TelemetryError it raised, is returned to every later caller.
    """

    def __init__(self, source: TelemetrySource, handle: Any):
        self.source = source
        self.handle = handle
        self._readings: dict[tuple[str, tuple[Any, ...]], Any] = {}
        self._errors: dict[tuple[str, tuple[Any, ...]], TelemetryError] = {}

    def read(self, accessor: str, *args: Any) -> Any:
        """
        Call a TelemetrySource accessor for this device.

        Args:
            accessor: TelemetrySource method name
            *args: Arguments after the device handle

        Raises:
            TelemetryError: If the accessor failed (now or earlier in the sweep)
        """
        key = (accessor, args)
        if key in self._errors:
            raise self._errors[key]
        if key not in self._readings:
            try:
                self._readings[key] = getattr(self.source, accessor)(self.handle, *args)
            except TelemetryError as e:
                self._errors[key] = e
                raise
        return self._readings[key]


# Accessor signature: (device reader, metrics config) -> raw value
Fetch = Callable[[DeviceReader, MetricsConfig], float]


@dataclass(frozen=True)
class DeviceMetric:
    """A per-device gauge and how to read it."""

    definition: MetricDefinition
    fetch: Fetch
    group: MetricGroup | None = None
    divisor: float = 1.0

    @property
    def key(self) -> str:
        return self.definition.key


# Collector-level metrics

UP = MetricDefinition(
    key="up",
    help="NVML Metric Collection Operational",
    labels=(),
)

DRIVER_INFO = MetricDefinition(
    key="driver_info",
    help="NVML Info",
    labels=("version",),
)

DEVICE_COUNT = MetricDefinition(
    key="device_count",
    help="Count of found nvidia devices",
    labels=(),
)

DEVICE_INFO = MetricDefinition(
    key="info",
    help="Info as reported by the device",
    labels=("index", "minor_number", "uuid", "name"),
)

SUMMARY_METRICS = (UP, DRIVER_INFO, DEVICE_COUNT, DEVICE_INFO)


def _metric(
    key: str,
    help: str,
    fetch: Fetch,
    group: MetricGroup | None = None,
    divisor: float = 1.0,
) -> DeviceMetric:
    return DeviceMetric(
        definition=MetricDefinition(key=key, help=help),
        fetch=fetch,
        group=group,
        divisor=divisor,
    )


DEVICE_METRICS = (
    _metric(
        "temperatures",
        "Temperature as reported by the device, in degrees Celsius",
        lambda reader, config: reader.read("temperature"),
    ),
    _metric(
        "power_usage",
        "Power usage as reported by the device, in watts",
        lambda reader, config: reader.read("power_usage"),
        divisor=MILLIWATTS_PER_WATT,
    ),
    _metric(
        "power_usage_average",
        "Power usage as reported by the device averaged over the sample window, in watts",
        lambda reader, config: reader.read("average_power_usage", config.average_window),
        group=MetricGroup.POWER_AVERAGE,
        divisor=MILLIWATTS_PER_WATT,
    ),
    _metric(
        "power_limit",
        "Power management limit of the device, in watts",
        lambda reader, config: reader.read("power_limit"),
        group=MetricGroup.POWER_LIMIT,
        divisor=MILLIWATTS_PER_WATT,
    ),
    _metric(
        "enforced_power_limit",
        "Effective power limit enforced by the driver, in watts",
        lambda reader, config: reader.read("enforced_power_limit"),
        group=MetricGroup.POWER_LIMIT,
        divisor=MILLIWATTS_PER_WATT,
    ),
    _metric(
        "fanspeed",
        "Fan speed as reported by the device, in percent",
        lambda reader, config: reader.read("fan_speed"),
        group=MetricGroup.FAN_SPEED,
    ),
    _metric(
        "memory_total",
        "Total memory as reported by the device, in bytes",
        lambda reader, config: reader.read("memory_info").total,
    ),
    _metric(
        "memory_used",
        "Used memory as reported by the device, in bytes",
        lambda reader, config: reader.read("memory_info").used,
    ),
    _metric(
        "utilization_memory",
        "Memory utilization as reported by the device, in percent",
        lambda reader, config: reader.read("utilization_rates").memory,
    ),
    _metric(
        "utilization_gpu",
        "GPU utilization as reported by the device, in percent",
        lambda reader, config: reader.read("utilization_rates").gpu,
    ),
    _metric(
        "utilization_gpu_average",
        "GPU utilization as reported by the device averaged over the sample window, in percent",
        lambda reader, config: reader.read("average_gpu_utilization", config.average_window),
    ),
    _metric(
        "utilization_encoder",
        "Percent of time over the last sample period during which the GPU video encoder was being used.",
        lambda reader, config: reader.read("encoder_utilization"),
    ),
    _metric(
        "utilization_decoder",
        "Percent of time over the last sample period during which the GPU video decoder was being used.",
        lambda reader, config: reader.read("decoder_utilization"),
    ),
    _metric(
        "duty_cycle",
        "Percent of time over the past sample period during which one or more kernels were executing on the GPU device",
        lambda reader, config: reader.read("utilization_rates").gpu,
    ),
    _metric(
        "avg_duty_cycle",
        "Average time over the sample window during which one or more kernels were executing on the GPU device",
        lambda reader, config: reader.read("average_gpu_utilization", config.average_window),
    ),
    _metric(
        "clock_graphics",
        "Current graphics clock speed, in MHz",
        lambda reader, config: reader.read("clock", ClockType.GRAPHICS),
    ),
    _metric(
        "clock_sm",
        "Current SM clock speed, in MHz",
        lambda reader, config: reader.read("clock", ClockType.SM),
    ),
    _metric(
        "clock_memory",
        "Current memory clock speed, in MHz",
        lambda reader, config: reader.read("clock", ClockType.MEMORY),
    ),
    _metric(
        "pcie_link_generation",
        "Current PCIe link generation",
        lambda reader, config: reader.read("pcie_link_generation"),
    ),
    _metric(
        "pcie_link_width",
        "Current PCIe link width, in lanes",
        lambda reader, config: reader.read("pcie_link_width"),
    ),
)


def build_catalog(config: MetricsConfig) -> list[DeviceMetric]:
    """
    Select the per-device metrics enabled by the configuration.

    Args:
        config: Metrics configuration

    Returns:
        Enabled DeviceMetric entries, in export order
    """
    return [metric for metric in DEVICE_METRICS if config.enabled(metric.group)]
