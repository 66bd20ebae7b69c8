"""
Tests for the GPU collector sweep.
"""

import logging
import threading

import pytest

from nvidia_gpu_exporter.collectors.base import CollectorResult
from nvidia_gpu_exporter.collectors.catalog import DEVICE_METRICS, DeviceReader, build_catalog
from nvidia_gpu_exporter.collectors.gpu import GPUCollector
from nvidia_gpu_exporter.config.schema import MetricsConfig
from nvidia_gpu_exporter.models.metric import Observation
from nvidia_gpu_exporter.sources.base import ClockType, MemoryInfo, TelemetryError

from .conftest import FakeDevice, FakeSource


def series(device: FakeDevice) -> tuple[str, str, str]:
    return (str(device.minor_number), device.uuid, device.name)


def samples_for(result: CollectorResult, device: FakeDevice) -> list:
    return [s for s in result if device.uuid in s.labels]


def snapshot(result: CollectorResult) -> dict:
    return {key: sample.value for key, sample in result.samples.items()}


def test_healthy_sweep(source: FakeSource, gpu0: FakeDevice, gpu1: FakeDevice) -> None:
    """Test a full sweep over two healthy devices."""
    result = GPUCollector(source).collect()

    assert result.healthy
    assert result.get("up") == 1
    assert result.get("device_count") == 2
    assert result.get("driver_info", ("535.104.05",)) == 1
    assert result.get("info", ("0", "0", gpu0.uuid, "Tesla T4")) == 1
    assert result.get("info", ("1", "1", gpu1.uuid, "Tesla V100")) == 1

    for device in (gpu0, gpu1):
        labels = series(device)
        assert result.get("temperatures", labels) == 65
        assert result.get("power_usage", labels) == 120.0
        assert result.get("power_usage_average", labels) == 110.5
        assert result.get("power_limit", labels) == 250.0
        assert result.get("enforced_power_limit", labels) == 240.0
        assert result.get("fanspeed", labels) == 40
        assert result.get("memory_total", labels) == 16 * 1024**3
        assert result.get("memory_used", labels) == 4 * 1024**3
        assert result.get("utilization_memory", labels) == 30
        assert result.get("utilization_gpu", labels) == 75
        assert result.get("duty_cycle", labels) == 75
        assert result.get("utilization_gpu_average", labels) == 70.0
        assert result.get("avg_duty_cycle", labels) == 70.0
        assert result.get("utilization_encoder", labels) == 5
        assert result.get("utilization_decoder", labels) == 3
        assert result.get("clock_graphics", labels) == 1590
        assert result.get("clock_sm", labels) == 1590
        assert result.get("clock_memory", labels) == 5001
        assert result.get("pcie_link_generation", labels) == 4
        assert result.get("pcie_link_width", labels) == 16

    # up, driver_info, device_count + 2 info + 2 * catalog
    assert len(result) == 3 + 2 + 2 * len(DEVICE_METRICS)


def test_handle_failure_skips_device(
    source: FakeSource, gpu0: FakeDevice, gpu1: FakeDevice, caplog: pytest.LogCaptureFixture
) -> None:
    """Second device cannot be opened: first is reported, count still says 2."""
    source.handle_errors = {1}

    with caplog.at_level(logging.WARNING, logger="nvidia_gpu_exporter"):
        result = GPUCollector(source).collect()

    assert result.get("up") == 1
    assert result.get("device_count") == 2
    assert result.get("temperatures", series(gpu0)) == 65
    assert result.get("power_usage", series(gpu0)) == 120.0
    assert samples_for(result, gpu1) == []
    assert "Skipping GPU 1" in caplog.text


@pytest.mark.parametrize("field", ["minor_number", "uuid", "name"])
def test_identity_failure_skips_device(
    source: FakeSource, gpu0: FakeDevice, gpu1: FakeDevice, field: str
) -> None:
    gpu1.failing.add(field)

    result = GPUCollector(source).collect()

    assert samples_for(result, gpu1) == []
    assert result.get("info", ("1", "1", gpu1.uuid, "Tesla V100")) is None
    assert "temperature" not in source.operations(gpu1.uuid)
    assert len(samples_for(result, gpu0)) == 1 + len(DEVICE_METRICS)


def test_metric_failure_is_isolated(source: FakeSource, gpu0: FakeDevice, gpu1: FakeDevice) -> None:
    """A failing accessor only removes its own sample."""
    gpu0.failing.add("temperature")

    result = GPUCollector(source).collect()

    assert result.get("temperatures", series(gpu0)) is None
    assert result.get("power_usage", series(gpu0)) == 120.0
    assert result.get("fanspeed", series(gpu0)) == 40
    assert result.get("temperatures", series(gpu1)) == 65
    assert result.get("up") == 1


def test_failed_read_is_absent_not_zero(source: FakeSource, gpu0: FakeDevice) -> None:
    gpu0.failing.add("utilization_rates")

    result = GPUCollector(source).collect()

    for key in ("utilization_gpu", "utilization_memory", "duty_cycle"):
        assert result.get(key, series(gpu0)) is None
        assert all(s.value != 0 for s in result.for_metric(key))


def test_count_failure(source: FakeSource, caplog: pytest.LogCaptureFixture) -> None:
    """Enumeration failure reports up=0 and nothing else."""
    source.count_error = True

    result = GPUCollector(source).collect()

    assert not result.healthy
    assert result.get("up") == 0
    assert len(result) == 1
    assert source.operations() == ["device_count"]
    assert "Failed to collect metrics" in caplog.text


def test_count_failure_recovers(source: FakeSource) -> None:
    collector = GPUCollector(source)
    source.count_error = True
    assert collector.collect().get("up") == 0

    source.count_error = False
    result = collector.collect()
    assert result.get("up") == 1
    assert result.get("device_count") == 2


def test_device_count_is_reported_count(source: FakeSource) -> None:
    """device_count reflects enumeration, not how many devices resolved."""
    source.count = 3

    result = GPUCollector(source).collect()

    assert result.get("device_count") == 3
    assert len(result.for_metric("info")) == 2


def test_no_devices() -> None:
    source = FakeSource([])

    result = GPUCollector(source).collect()

    assert result.get("up") == 1
    assert result.get("device_count") == 0
    assert len(result) == 3


def test_driver_version_failure(source: FakeSource, gpu0: FakeDevice) -> None:
    source.driver_error = True

    result = GPUCollector(source).collect()

    assert result.for_metric("driver_info") == []
    assert result.get("up") == 1
    assert result.get("temperatures", series(gpu0)) == 65


def test_fan_speed_disabled(
    source: FakeSource, gpu0: FakeDevice, caplog: pytest.LogCaptureFixture
) -> None:
    """Disabled fan speed is never read, never reported and never logged as a failure."""
    gpu0.failing.add("fan_speed")
    collector = GPUCollector(source, MetricsConfig(fan_speed=False))

    with caplog.at_level(logging.DEBUG, logger="nvidia_gpu_exporter"):
        result = collector.collect()

    assert "fan_speed" not in source.operations()
    assert result.for_metric("fanspeed") == []
    assert "fanspeed" not in [d.key for d in collector.describe()]
    assert "fanspeed" not in caplog.text
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_power_groups_disabled(source: FakeSource) -> None:
    collector = GPUCollector(source, MetricsConfig(power_limit=False, power_average=False))

    result = collector.collect()
    operations = source.operations()

    for op in ("power_limit", "enforced_power_limit", "average_power_usage"):
        assert op not in operations
    for key in ("power_limit", "enforced_power_limit", "power_usage_average"):
        assert result.for_metric(key) == []
    assert result.for_metric("power_usage") != []


def test_average_window_is_passed(source: FakeSource) -> None:
    windows = []

    def average_power_usage(handle, window):
        windows.append(window)
        return 100000.0

    source.average_power_usage = average_power_usage
    GPUCollector(source, MetricsConfig(average_window=30.0)).collect()

    assert windows == [30.0, 30.0]


def test_no_ghost_samples(source: FakeSource, gpu0: FakeDevice, gpu1: FakeDevice) -> None:
    """A series missing from one sweep is not carried over from the previous one."""
    collector = GPUCollector(source)
    first = collector.collect()
    assert first.get("fanspeed", series(gpu0)) == 40

    gpu0.failing.add("fan_speed")
    second = collector.collect()
    assert second.get("fanspeed", series(gpu0)) is None
    assert second.get("fanspeed", series(gpu1)) == 40

    source.devices.pop()
    third = collector.collect()
    assert samples_for(third, gpu1) == []
    assert third.get("device_count") == 1


def test_sweeps_are_idempotent(source: FakeSource) -> None:
    collector = GPUCollector(source)

    assert snapshot(collector.collect()) == snapshot(collector.collect())


def test_unexpected_exception_marks_unhealthy(
    source: FakeSource, caplog: pytest.LogCaptureFixture
) -> None:
    def temperature(handle):
        raise RuntimeError("boom")

    source.temperature = temperature

    result = GPUCollector(source).collect()

    assert not result.healthy
    assert result.get("up") == 0
    assert len(result) == 1
    assert "boom" in caplog.text


def test_sweeps_are_serialized(gpu0: FakeDevice, gpu1: FakeDevice) -> None:
    """A second scrape waits for the running sweep and then does its own."""
    entered = threading.Event()
    release = threading.Event()

    class BlockingSource(FakeSource):
        def device_count(self) -> int:
            count = super().device_count()
            if threading.current_thread().name == "scrape-1":
                entered.set()
                assert release.wait(5)
            return count

    source = BlockingSource([gpu0, gpu1])
    collector = GPUCollector(source)
    results = {}

    def scrape() -> None:
        results[threading.current_thread().name] = collector.collect()

    first = threading.Thread(target=scrape, name="scrape-1")
    second = threading.Thread(target=scrape, name="scrape-2")

    first.start()
    assert entered.wait(5)
    second.start()
    second.join(0.2)

    # The second sweep has not touched the source while the first holds the lock
    assert second.is_alive()
    assert {c.thread for c in source.calls} == {"scrape-1"}

    release.set()
    first.join(5)
    second.join(5)

    threads = [c.thread for c in source.calls]
    boundary = threads.index("scrape-2")
    assert set(threads[:boundary]) == {"scrape-1"}
    assert set(threads[boundary:]) == {"scrape-2"}
    assert snapshot(results["scrape-1"]) == snapshot(results["scrape-2"])


def test_describe_has_no_side_effects(source: FakeSource) -> None:
    collector = GPUCollector(source)

    definitions = collector.describe()

    assert source.calls == []
    assert [d.key for d in definitions[:4]] == ["up", "driver_info", "device_count", "info"]
    assert len(definitions) == 4 + len(DEVICE_METRICS)


def test_build_catalog_order() -> None:
    keys = [m.key for m in build_catalog(MetricsConfig(fan_speed=False))]

    assert keys[0] == "temperatures"
    assert "fanspeed" not in keys
    assert keys.index("utilization_gpu") < keys.index("duty_cycle")


def test_result_drops_missing_observations() -> None:
    result = CollectorResult()
    result.add("temperatures", ("0", "GPU-x", "T4"), Observation.missing())
    result.add("fanspeed", ("0", "GPU-x", "T4"), Observation.of(0))

    assert result.get("temperatures", ("0", "GPU-x", "T4")) is None
    assert result.get("fanspeed", ("0", "GPU-x", "T4")) == 0.0
    assert len(result) == 1


def test_shared_readings_are_read_once(
    source: FakeSource, gpu0: FakeDevice, gpu1: FakeDevice
) -> None:
    """Metrics derived from one reading share a single driver call per device."""
    gpu1.failing.add("utilization_rates")

    result = GPUCollector(source).collect()

    for device in (gpu0, gpu1):
        operations = source.operations(device.uuid)
        assert operations.count("memory_info") == 1
        assert operations.count("utilization_rates") == 1
        assert operations.count("average_gpu_utilization") == 1
    assert result.get("memory_total", series(gpu0)) == 16 * 1024**3
    assert result.get("memory_used", series(gpu0)) == 4 * 1024**3
    assert result.get("duty_cycle", series(gpu1)) is None


def test_shared_readings_are_per_sweep(source: FakeSource, gpu0: FakeDevice) -> None:
    collector = GPUCollector(source)
    collector.collect()

    gpu0.values["memory_info"] = MemoryInfo(total=8, used=2, free=6)
    result = collector.collect()

    assert result.get("memory_total", series(gpu0)) == 8
    assert source.operations(gpu0.uuid).count("memory_info") == 2


def test_device_reader_caches_errors(source: FakeSource, gpu0: FakeDevice) -> None:
    gpu0.failing.add("clock_sm")
    reader = DeviceReader(source, gpu0)

    assert reader.read("clock", ClockType.GRAPHICS) == 1590
    assert reader.read("clock", ClockType.GRAPHICS) == 1590
    for _ in range(2):
        with pytest.raises(TelemetryError):
            reader.read("clock", ClockType.SM)

    assert source.operations(gpu0.uuid) == ["clock_graphics", "clock_sm"]
