"""Metric data and writers.

The request pipeline emits ``MetricDatum`` values; a ``MetricWriter``
ships them somewhere. ``PrometheusMetricWriter`` records them in a
``prometheus_client`` registry.
"""
