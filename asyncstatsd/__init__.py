from asyncstatsd.client import StatsClient
from asyncstatsd.common import MeasureMode
from asyncstatsd.errors import (
    ClosedClientError, Error, FlushTimeoutError, InvalidConfigurationError, InvalidMetricError, InvalidMetricNameError,
    InvalidMetricValueError, SocketError
)
from asyncstatsd.metric import Count, Gauge, Histogram, Metric, Set, Timing
from asyncstatsd.metrics import Metrics, build_metrics

__all__ = [
    "ClosedClientError",
    "Count",
    "Error",
    "FlushTimeoutError",
    "Gauge",
    "Histogram",
    "InvalidConfigurationError",
    "InvalidMetricError",
    "InvalidMetricNameError",
    "InvalidMetricValueError",
    "MeasureMode",
    "Metric",
    "Metrics",
    "Set",
    "SocketError",
    "StatsClient",
    "Timing",
    "build_metrics",
]
