"""Metric datum and writer protocol."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import IntEnum, StrEnum
from typing import Protocol, runtime_checkable


class Unit(StrEnum):
    COUNT = "Count"
    MILLISECONDS = "Milliseconds"
    SECONDS = "Seconds"
    BYTES = "Bytes"


class Priority(IntEnum):
    LOW = 1
    HIGH = 2


@dataclass(frozen=True, slots=True)
class MetricDatum:
    """One measurement of one metric under one set of dimensions."""

    metric_name: str
    value: float
    unit: Unit = Unit.COUNT
    dimensions: Mapping[str, str] = field(default_factory=dict)
    priority: Priority = Priority.HIGH


@runtime_checkable
class MetricWriter(Protocol):
    """Anything that accepts metric data. Must be safe for concurrent use."""

    def write(self, data: Sequence[MetricDatum]) -> None: ...


def with_dimensions(
    data: Sequence[MetricDatum],
    dimensions_by_suffix: Mapping[str, Mapping[str, str]],
) -> list[MetricDatum]:
    """Repeat every datum once per dimension set.

    The mapping key is appended to the metric name so each name stays
    unique to one set of dimensions::

        with_dimensions([count], {"PerRoute": {...route...}, "": {...server...}})
        # -> HttpRequestCountPerRoute{Method, Path, ServerName}, HttpRequestCount{ServerName}
    """
    return [
        replace(datum, metric_name=datum.metric_name + suffix, dimensions=dict(dimensions))
        for datum in data
        for suffix, dimensions in dimensions_by_suffix.items()
    ]


class NullMetricWriter:
    """Discards everything."""

    def write(self, data: Sequence[MetricDatum]) -> None:
        return None
