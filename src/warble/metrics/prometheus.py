"""Prometheus metric writer.

Metric names are snake_cased and prefixed (``HttpRequestCount`` ->
``warble_http_request_count``); dimension names become snake_cased
label names. Count data go to a ``Counter`` (exposed with a ``_total``
suffix), millisecond and second data to a ``Histogram``, anything else
to a ``Gauge``.

Metric objects are shared per registry, so several writers (one per
server) can record into the same registry without registering a name
twice.
"""

import re
import threading
import weakref
from collections.abc import Sequence

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from warble.metrics.datum import MetricDatum, Unit

MILLISECOND_BUCKETS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)
SECOND_BUCKETS = Histogram.DEFAULT_BUCKETS

_SNAKE_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z0-9])|(?<=[0-9])(?=[A-Z][a-z])|(?<=[A-Z])(?=[A-Z][a-z])")

type _Metric = Counter | Histogram | Gauge

_metrics: weakref.WeakKeyDictionary[CollectorRegistry, dict[tuple[str, tuple[str, ...]], _Metric]] = (
    weakref.WeakKeyDictionary()
)
_lock = threading.Lock()


def snake_case(name: str) -> str:
    """``HttpStatus2XX`` -> ``http_status_2xx``, ``ServerName`` -> ``server_name``."""
    return _SNAKE_BOUNDARY.sub("_", name).lower()


class PrometheusMetricWriter:
    """Records metric data in a ``prometheus_client`` registry."""

    __slots__ = ("_namespace", "_registry")

    def __init__(self, registry: CollectorRegistry | None = None, *, namespace: str = "warble") -> None:
        self._registry = registry if registry is not None else REGISTRY
        self._namespace = namespace

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def metric_name(self, name: str) -> str:
        base = snake_case(name)
        return f"{self._namespace}_{base}" if self._namespace else base

    def write(self, data: Sequence[MetricDatum]) -> None:
        for datum in data:
            labels = {snake_case(key): str(value) for key, value in datum.dimensions.items()}
            metric = self._metric(datum, tuple(sorted(labels)))
            child = metric.labels(**labels) if labels else metric
            if isinstance(metric, Counter):
                child.inc(datum.value)
            elif isinstance(metric, Histogram):
                child.observe(datum.value)
            else:
                child.set(datum.value)

    def _metric(self, datum: MetricDatum, label_names: tuple[str, ...]) -> _Metric:
        name = self.metric_name(datum.metric_name)
        key = (name, label_names)
        with _lock:
            cache = _metrics.setdefault(self._registry, {})
            metric = cache.get(key)
            if metric is None:
                metric = cache[key] = self._create(name, datum.unit, label_names)
        return metric

    def _create(self, name: str, unit: Unit, label_names: tuple[str, ...]) -> _Metric:
        documentation = f"{name} ({unit})"
        if unit is Unit.COUNT:
            return Counter(name, documentation, label_names, registry=self._registry)
        if unit is Unit.MILLISECONDS:
            return Histogram(name, documentation, label_names, registry=self._registry, buckets=MILLISECOND_BUCKETS)
        if unit is Unit.SECONDS:
            return Histogram(name, documentation, label_names, registry=self._registry, buckets=SECOND_BUCKETS)
        return Gauge(name, documentation, label_names, registry=self._registry)
