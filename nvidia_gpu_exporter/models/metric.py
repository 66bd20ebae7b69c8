"""
Metric definition, observation and sample models.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..const import DEVICE_LABELS, NAMESPACE


@dataclass(frozen=True)
class MetricDefinition:
    """
    Static description of one exported gauge.

    Created once at process start and shared read-only by all sweeps.
    """

    key: str
    help: str
    labels: tuple[str, ...] = DEVICE_LABELS

    @property
    def name(self) -> str:
        """Fully qualified metric name (namespace_key)."""
        return f"{NAMESPACE}_{self.key}"


@dataclass(frozen=True)
class Observation:
    """
    Result of a single telemetry accessor call.

    A missing observation means the value is unknown for this sweep,
    which is different from a value of zero.
    """

    value: float = 0.0
    present: bool = False

    @classmethod
    def of(cls, value: float) -> Observation:
        return cls(value=float(value), present=True)

    @classmethod
    def missing(cls) -> Observation:
        return cls()


@dataclass(frozen=True)
class Sample:
    """One (metric, label values, value) observation produced by a sweep."""

    metric: str
    labels: tuple[str, ...]
    value: float

    @property
    def key(self) -> tuple[str, tuple[str, ...]]:
        """Identity of the series this sample belongs to."""
        return (self.metric, self.labels)
