"""
asyncstatsd - StatsD line encoding

Line format: "[prefix.]name:value|type[|@sample_rate]"

Integral values are rendered without a decimal point, fractional values are
rounded to VALUE_PRECISION decimal places with trailing zeros removed.
"""
import math
from typing import Optional

from asyncstatsd.common import MeasureMode
from asyncstatsd.errors import InvalidMetricNameError, InvalidMetricValueError
from asyncstatsd.metric import Count, Gauge, Histogram, Metric, Set, Timing

RESERVED_CHARACTERS = (":", "|", "\n")
VALUE_PRECISION = 6


def check_name(name, what="metric name"):
    if not isinstance(name, str) or not name:
        raise InvalidMetricNameError("Invalid {} {!r}: must be a non-empty string".format(what, name))
    for char in RESERVED_CHARACTERS:
        if char in name:
            raise InvalidMetricNameError("Invalid {} {!r}: contains reserved character {!r}".format(what, name, char))
    return name


def format_number(value) -> str:
    # bool is an int subclass but never a meaningful metric value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidMetricValueError("Metric value {!r} is not a number".format(value))
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise InvalidMetricValueError("Metric value {!r} is not finite".format(value))
    if value.is_integer():
        return str(int(value))
    text = "{:.{}f}".format(value, VALUE_PRECISION).rstrip("0").rstrip(".")
    if text == "-0":
        return "0"
    return text


def format_sample_rate(sample_rate: Optional[float]) -> str:
    if sample_rate is None:
        return ""
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, float)) \
            or not math.isfinite(sample_rate) or not 0 < sample_rate <= 1:
        raise InvalidMetricValueError("Sample rate {!r} must be in range (0, 1]".format(sample_rate))
    if sample_rate == 1:
        return ""
    return "|@" + format_number(sample_rate)


def _value_and_type(metric: Metric, measure_mode: MeasureMode):
    measure_type = "h" if measure_mode == MeasureMode.histogram else "ms"
    if isinstance(metric, Count):
        return format_number(metric.delta), "c"
    elif isinstance(metric, Gauge):
        return format_number(metric.value), "g"
    elif isinstance(metric, Timing):
        return format_number(metric.milliseconds), measure_type
    elif isinstance(metric, Histogram):
        return format_number(metric.value), measure_type
    elif isinstance(metric, Set):
        member = metric.member
        if isinstance(member, int) and not isinstance(member, bool):
            return str(member), "s"
        return check_name(member, what="set member"), "s"
    raise TypeError("Unsupported metric type {!r}".format(type(metric).__name__))


def encode(metric: Metric, prefix: Optional[str] = None, measure_mode: MeasureMode = MeasureMode.time) -> str:
    """Render `metric` as a single StatsD line, raises InvalidMetricError for anything that can't be sent as-is"""
    if not isinstance(metric, Metric):
        raise TypeError("Expected a Metric, got {!r}".format(type(metric).__name__))
    name = check_name(metric.name)
    value, metric_type = _value_and_type(metric, MeasureMode(measure_mode))
    sample_rate = format_sample_rate(metric.sample_rate)
    if prefix:
        name = "{}.{}".format(prefix, name)
    return "{}:{}|{}{}".format(name, value, metric_type, sample_rate)
