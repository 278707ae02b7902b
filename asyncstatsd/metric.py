"""
asyncstatsd - metric value types

Each type maps to exactly one StatsD line, see asyncstatsd.encoder.
"""
from dataclasses import dataclass
from typing import Optional, Union

Number = Union[int, float]


@dataclass(frozen=True)
class Metric:
    name: str


@dataclass(frozen=True)
class Count(Metric):
    delta: Number = 1
    sample_rate: Optional[float] = None


@dataclass(frozen=True)
class Gauge(Metric):
    value: Number
    sample_rate: Optional[float] = None


@dataclass(frozen=True)
class Timing(Metric):
    milliseconds: Number
    sample_rate: Optional[float] = None


@dataclass(frozen=True)
class Histogram(Metric):
    value: Number
    sample_rate: Optional[float] = None


@dataclass(frozen=True)
class Set(Metric):
    member: Union[str, int]
    sample_rate: Optional[float] = None
