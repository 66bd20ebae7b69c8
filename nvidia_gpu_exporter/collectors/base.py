"""
Base collector interface for metric collection.

A collector owns a static catalog of metric definitions and produces a
fresh CollectorResult on every collect() call. Collection is demand-driven
(one call per scrape) and serialized by a per-collector lock.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

from ..logging import get_logger
from ..models.metric import MetricDefinition, Observation, Sample


logger = get_logger("collectors")


@dataclass
class CollectorResult:
    """Samples gathered by a single collection cycle."""

    # (metric key, label values) -> sample; at most one sample per series
    samples: dict[tuple[str, tuple[str, ...]], Sample] = field(default_factory=dict)

    # Whether the source could be enumerated at all
    healthy: bool = True

    # Error message if collection failed
    error: str | None = None

    # Collection timestamp
    timestamp: datetime = field(default_factory=datetime.now)

    def add(self, metric: str, labels: tuple[str, ...], observation: Observation) -> None:
        """Add an observation; missing observations are dropped, never stored as zero."""
        if not observation.present:
            return
        sample = Sample(metric=metric, labels=labels, value=observation.value)
        self.samples[sample.key] = sample

    def set(self, metric: str, value: float, labels: tuple[str, ...] = ()) -> None:
        """Set a sample value."""
        self.add(metric, labels, Observation.of(value))

    def set_error(self, error: str) -> None:
        """Mark collection as failed, discarding any partial samples."""
        self.healthy = False
        self.error = error
        self.samples = {}

    def get(self, metric: str, labels: tuple[str, ...] = ()) -> float | None:
        """Get a sample value, or None if the series was not collected."""
        sample = self.samples.get((metric, labels))
        return sample.value if sample else None

    def for_metric(self, metric: str) -> list[Sample]:
        """Get all samples of one metric."""
        return [s for s in self.samples.values() if s.metric == metric]

    def __iter__(self) -> Iterator[Sample]:
        return iter(self.samples.values())

    def __len__(self) -> int:
        return len(self.samples)

    def __repr__(self) -> str:
        status = "OK" if self.healthy else f"ERROR: {self.error}"
        return f"CollectorResult({len(self.samples)} samples, {status})"


class Collector(ABC):
    """
    Abstract base class for metric collectors.

    Each collector is responsible for:
    1. Describing its static metric catalog (describe)
    2. Running one complete sweep per request (sweep)

    collect() wraps sweep() with the serialization lock and converts
    unexpected exceptions into an unhealthy result.
    """

    def __init__(self, name: str):
        """
        Initialize collector.

        Args:
            name: Human-readable collector name
        """
        self.name = name
        self._lock = threading.Lock()

    @abstractmethod
    def describe(self) -> list[MetricDefinition]:
        """
        Describe every metric this collector can emit.

        Must be free of side effects; used for registration before the
        first collection.
        """
        pass

    @abstractmethod
    def sweep(self) -> CollectorResult:
        """
        Run one collection cycle.

        Called with the collector lock held.

        Returns:
            CollectorResult with this cycle's samples only
        """
        pass

    def unhealthy_result(self, error: str) -> CollectorResult:
        """Build the result reported when a whole cycle fails."""
        result = CollectorResult()
        result.set_error(error)
        return result

    def collect(self) -> CollectorResult:
        """
        Run a sweep under the collector lock.

        Concurrent callers block until the running sweep finishes and then
        perform their own sweep.

        Returns:
            CollectorResult, unhealthy if the sweep raised
        """
        with self._lock:
            try:
                result = self.sweep()
            except Exception as e:
                logger.exception(f"Collector {self.name} failed: {e}")
                result = self.unhealthy_result(str(e))
            return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"
