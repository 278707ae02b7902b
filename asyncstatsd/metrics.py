"""
Semantic metric calls on top of StatsClient

"""
import logging
import time
from concurrent.futures import Future
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union

from asyncstatsd.client import StatsClient
from asyncstatsd.metric import Count, Gauge, Histogram, Set, Timing

LOG = logging.getLogger(__name__)

Clock = Callable[[], float]


class Metrics:
    """Turns increment / gauge / timing style calls into metric values sent through `client`.

    `clock` returns seconds and is only used to compute elapsed time for `timer()`.
    """
    def __init__(self, client: StatsClient, clock: Clock = time.monotonic) -> None:
        self.client = client
        self.clock = clock

    def increment(self, metric: str, delta: int = 1) -> Future:
        return self.client.send(Count(metric, delta))

    def decrement(self, metric: str, delta: int = 1) -> Future:
        return self.client.send(Count(metric, -delta))

    def gauge(self, metric: str, value: float) -> Future:
        return self.client.send(Gauge(metric, value))

    def timing(self, metric: str, milliseconds: float) -> Future:
        return self.client.send(Timing(metric, milliseconds))

    def histogram(self, metric: str, value: float) -> Future:
        return self.client.send(Histogram(metric, value))

    def measure(self, metric: str, value: float) -> Future:
        # sent as "ms" or "h" depending on the client's measure mode
        return self.client.send(Timing(metric, value))

    def set_member(self, metric: str, member: Union[str, int]) -> Future:
        return self.client.send(Set(metric, member))

    @contextmanager
    def timer(self, metric: str) -> Iterator[None]:
        start = self.clock()
        try:
            yield
        finally:
            elapsed_ms = int(round((self.clock() - start) * 1000))
            self.timing(metric, elapsed_ms)

    def unexpected_exception(self, ex: Exception, where: str) -> Future:
        return self.increment("exception.{}.{}".format(where, ex.__class__.__name__))

    def close(self) -> Future:
        return self.client.close()


def build_metrics(config=None, *, client: Optional[StatsClient] = None, clock: Optional[Clock] = None) -> Metrics:
    """Build a Metrics facade from a client config, or around a pre-built `client` which takes precedence"""
    if client is None:
        LOG.info("Initializing StatsD client")
        client = StatsClient.from_config(config)
    return Metrics(client, clock=clock or time.monotonic)
