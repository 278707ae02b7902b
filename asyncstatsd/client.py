"""
asyncstatsd - asynchronous StatsD client

Sends never block on the network: metrics are encoded, coalesced into
datagrams and handed to the transport's sender thread. Every send returns a
concurrent.futures.Future resolved once all of its datagrams have been accepted
by the operating system.

Close ordering: `close()` sets the closed flag inside the buffer lock and
flushes what is buffered at that moment. A send that took the buffer lock
before that is included in the final flush, any later send fails with
ClosedClientError.

With a flush_probability strictly between 0 and 100 a single send can stay
buffered after its own append. The sender thread flushes such lines once it has
been idle for `idle_flush_interval` seconds, so those futures resolve within a
bounded delay. flush_probability=0 keeps lines buffered until `flush()`,
`close()` or a full datagram.
"""
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional, Sequence, Union

from asyncstatsd.buffer import DEFAULT_MAX_DATAGRAM_SIZE, BatchingBuffer
from asyncstatsd.common import MeasureMode
from asyncstatsd.completion import Datagram, PendingSend, track
from asyncstatsd.config import ClientConfig
from asyncstatsd.encoder import check_name, encode
from asyncstatsd.errors import (ClosedClientError, FlushTimeoutError, InvalidConfigurationError, InvalidMetricError)
from asyncstatsd.metric import Metric
from asyncstatsd.transport import UDPTransport

MetricOrMetrics = Union[Metric, Sequence[Metric]]


class StatsClient:
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8125,
        *,
        flush_probability: int = 100,
        measure_mode: Union[MeasureMode, str] = MeasureMode.time,
        prefix: Optional[str] = None,
        max_datagram_size: int = DEFAULT_MAX_DATAGRAM_SIZE,
        close_timeout: float = 5.0,
        idle_flush_interval: float = 1.0,
        rng=None,
    ):
        self.log = logging.getLogger("StatsClient")
        try:
            self.measure_mode = MeasureMode(measure_mode)
        except ValueError as ex:
            raise InvalidConfigurationError("Invalid measure_mode {!r}".format(measure_mode)) from ex
        if prefix:
            try:
                check_name(prefix, what="prefix")
            except InvalidMetricError as ex:
                raise InvalidConfigurationError(str(ex)) from ex
        self.prefix = prefix or None
        self.close_timeout = close_timeout
        self.buffer = BatchingBuffer(
            self._write_datagram,
            max_datagram_size=max_datagram_size,
            flush_probability=flush_probability,
            rng=rng,
        )
        if idle_flush_interval <= 0:
            raise InvalidConfigurationError("idle_flush_interval must be positive, got {!r}".format(idle_flush_interval))
        # p=0 only flushes on demand and p=100 never leaves anything buffered
        on_idle = self._idle_flush if 0 < flush_probability < 100 else None
        self.transport = UDPTransport(host, port, on_idle=on_idle, idle_interval=idle_flush_interval)
        self._close_lock = threading.Lock()
        self._close_future: Optional[Future] = None
        self.log.info(
            "Sending metrics to %s:%s, flush_probability=%d, measure_mode=%s, prefix=%r", host, port, flush_probability,
            self.measure_mode, self.prefix
        )

    @classmethod
    def from_config(cls, config) -> "StatsClient":
        if not isinstance(config, ClientConfig):
            config = ClientConfig.from_dict(config)
        return cls(
            config.host,
            config.port,
            flush_probability=config.flush_probability,
            measure_mode=config.measure_mode,
            prefix=config.prefix,
            max_datagram_size=config.max_datagram_size,
            close_timeout=config.close_timeout,
            idle_flush_interval=config.idle_flush_interval,
        )

    def __enter__(self) -> "StatsClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._close_future is not None

    def send(self, metrics: MetricOrMetrics) -> Future:
        """Send a single metric or a batch of metrics.

        A batch is flushed as soon as all of its lines are buffered so that its future can complete; a single metric
        may stay buffered until a later send, an idle flush, `flush()` or `close()` flushes it, depending on
        flush_probability. Anything that is not a Metric or an iterable of Metrics fails the returned future with
        TypeError.
        """
        pending_send = PendingSend()
        if self.closed:
            return self._reject(pending_send, ClosedClientError("Can't send metrics, client is closed"))
        try:
            batch = as_batch(metrics)
        except TypeError as ex:
            return self._reject(pending_send, ex)
        is_batch = not isinstance(metrics, Metric)
        try:
            lines = [encode(metric, self.prefix, self.measure_mode).encode("utf-8") for metric in batch]
        except InvalidMetricError as ex:
            return self._reject(pending_send, ex)
        pending_send.mark_encoded()
        if not lines:
            pending_send.seal()
            return pending_send.future
        try:
            self.buffer.append(lines, pending_send, force_flush=is_batch)
        except ClosedClientError as ex:
            return self._reject(pending_send, ex)
        return pending_send.future

    def flush(self) -> Future:
        """Flush whatever is buffered, the future resolves when that datagram has been handed off"""
        pending_send = PendingSend()
        datagram = self.buffer.flush()
        if datagram is None:
            pending_send.seal()
            return pending_send.future
        return self._watch(datagram, pending_send)

    def close(self) -> Future:
        """Flush buffered metrics and release the socket.

        The returned future is already resolved, except when close() is called from a send's done callback: the
        sender thread can only write the final datagram after that callback returns, so the future resolves then.
        """
        with self._close_lock:
            if self._close_future is not None:
                return self._close_future
            pending_send = PendingSend()
            self._close_future = pending_send.future
        datagram = self.buffer.close()
        if datagram is None:
            pending_send.seal()
        else:
            self._watch(datagram, pending_send)
            if not self.transport.on_sender_thread:
                try:
                    pending_send.future.exception(timeout=self.close_timeout)
                except FutureTimeoutError:
                    self.log.warning("Final flush did not complete in %.1fs", self.close_timeout)
                    pending_send.fail(
                        FlushTimeoutError("Final flush did not complete in {}s".format(self.close_timeout))
                    )
        self.transport.close(timeout=self.close_timeout)
        self.log.info("StatsClient closed")
        return pending_send.future

    def _idle_flush(self) -> None:
        # runs on the sender thread; flushing only queues the datagram behind the current one
        datagram = self.buffer.flush()
        if datagram is not None:
            self.log.debug("Idle flush of %d buffered lines", len(datagram.lines))

    def _write_datagram(self, datagram: Datagram) -> None:
        # called by the buffer with its lock held, transport.write() only queues
        track(datagram, self.transport.write(datagram.payload))

    def _watch(self, datagram: Datagram, pending_send: PendingSend) -> Future:
        pending_send.add_datagram()
        pending_send.seal()
        datagram.future.add_done_callback(lambda done: pending_send.datagram_done(done.exception()))
        return pending_send.future

    def _reject(self, pending_send: PendingSend, exception: Exception) -> Future:
        self.log.debug("Rejected send: %s: %s", exception.__class__.__name__, exception)
        pending_send.fail(exception)
        return pending_send.future


def as_batch(metrics) -> List[Metric]:
    if isinstance(metrics, Metric):
        return [metrics]
    if isinstance(metrics, (str, bytes)):
        raise TypeError("Expected a Metric or an iterable of Metrics, got {}".format(type(metrics).__name__))
    try:
        batch = list(metrics)
    except TypeError as ex:
        raise TypeError("Expected a Metric or an iterable of Metrics, got {}".format(type(metrics).__name__)) from ex
    for metric in batch:
        if not isinstance(metric, Metric):
            raise TypeError("Expected a Metric in batch, got {}".format(type(metric).__name__))
    return batch
