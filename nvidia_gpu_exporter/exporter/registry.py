"""
Prometheus registry integration.

Bridges a Collector to prometheus_client's custom collector protocol:
describe() yields empty metric families for name validation at
registration time, collect() runs one sweep per scrape and converts its
samples to gauge families.
"""

from collections.abc import Iterator

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import CollectorRegistry

from ..collectors.base import Collector, CollectorResult
from ..logging import get_logger
from ..models.metric import MetricDefinition


logger = get_logger("exporter.registry")


def _family(definition: MetricDefinition) -> GaugeMetricFamily:
    return GaugeMetricFamily(definition.name, definition.help, labels=definition.labels)


def build_families(
    definitions: list[MetricDefinition],
    result: CollectorResult,
) -> list[GaugeMetricFamily]:
    """
    Group a sweep's samples into metric families.

    Families without samples are left out so the exposition only lists
    metrics that were actually observed.

    Args:
        definitions: Metric catalog, in export order
        result: Sweep result

    Returns:
        Gauge families with at least one sample
    """
    families = {definition.key: _family(definition) for definition in definitions}

    for sample in result:
        family = families.get(sample.metric)
        if family is None:
            logger.warning(f"Dropping sample for undescribed metric {sample.metric}")
            continue
        family.add_metric(list(sample.labels), sample.value)

    return [family for family in families.values() if family.samples]


class PrometheusCollector:
    """Adapter exposing a Collector through a prometheus_client registry."""

    def __init__(self, collector: Collector):
        self.collector = collector

    def describe(self) -> Iterator[GaugeMetricFamily]:
        for definition in self.collector.describe():
            yield _family(definition)

    def collect(self) -> Iterator[GaugeMetricFamily]:
        result = self.collector.collect()
        yield from build_families(self.collector.describe(), result)


def create_registry(collector: Collector) -> CollectorRegistry:
    """
    Create a registry holding only the given collector.

    The default registry's process and platform collectors are not included.

    Args:
        collector: Collector to expose

    Returns:
        New CollectorRegistry
    """
    registry = CollectorRegistry(auto_describe=True)
    registry.register(PrometheusCollector(collector))
    return registry
