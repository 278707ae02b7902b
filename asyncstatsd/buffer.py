"""
asyncstatsd - datagram batching buffer

Encoded lines are coalesced into a datagram of at most `max_datagram_size`
bytes. After every appended line a random integer in [0, 100) is drawn and the
datagram is flushed when it is below `flush_probability`: 100 flushes every
line immediately, 0 only flushes when the size limit is reached or when a flush
is explicitly requested.
"""
import logging
import random
import threading
from typing import Callable, List, Optional, Sequence

from asyncstatsd.completion import Datagram, PendingSend
from asyncstatsd.errors import ClosedClientError, InvalidConfigurationError

DEFAULT_MAX_DATAGRAM_SIZE = 1400


class BatchingBuffer:
    def __init__(
        self,
        on_flush: Callable[[Datagram], None],
        *,
        max_datagram_size: int = DEFAULT_MAX_DATAGRAM_SIZE,
        flush_probability: int = 100,
        rng: Optional[random.Random] = None,
    ):
        if isinstance(flush_probability, bool) or not isinstance(flush_probability, int) \
                or not 0 <= flush_probability <= 100:
            raise InvalidConfigurationError(
                "flush_probability must be an integer between 0 and 100, got {!r}".format(flush_probability)
            )
        if max_datagram_size < 1:
            raise InvalidConfigurationError("max_datagram_size must be positive, got {!r}".format(max_datagram_size))
        self.log = logging.getLogger("BatchingBuffer")
        self.on_flush = on_flush
        self.max_datagram_size = max_datagram_size
        self.flush_probability = flush_probability
        self.rng = rng or random.Random()
        self.closed = False
        self._lock = threading.Lock()
        self._current = Datagram()

    @property
    def pending_lines(self) -> int:
        with self._lock:
            return len(self._current)

    def append(self, lines: Sequence[bytes], pending_send: PendingSend, *, force_flush: bool = False) -> List[Datagram]:
        """Buffer all `lines` of one send, returns the datagrams flushed while doing so"""
        flushed = []
        with self._lock:
            if self.closed:
                raise ClosedClientError("Can't buffer metrics, client is closed")
            for line in lines:
                if self._current.lines and self._current.size_with(line) > self.max_datagram_size:
                    flushed.append(self._flush_locked())
                if len(line) > self.max_datagram_size:
                    self.log.warning(
                        "Line of %d bytes exceeds max datagram size %d, sending it alone", len(line),
                        self.max_datagram_size
                    )
                self._current.add_line(line, pending_send)
                # a full datagram can never take another line
                if self._current.size >= self.max_datagram_size or self.rng.randrange(100) < self.flush_probability:
                    flushed.append(self._flush_locked())
            if force_flush and self._current.lines:
                flushed.append(self._flush_locked())
        pending_send.seal()
        return flushed

    def flush(self) -> Optional[Datagram]:
        with self._lock:
            if not self._current.lines:
                return None
            return self._flush_locked()

    def close(self) -> Optional[Datagram]:
        """Mark the buffer closed and flush anything pending; later appends raise ClosedClientError"""
        with self._lock:
            self.closed = True
            if not self._current.lines:
                return None
            return self._flush_locked()

    def _flush_locked(self) -> Datagram:
        datagram, self._current = self._current, Datagram()
        self.log.debug("Flushing %r", datagram)
        # on_flush only queues the datagram, the actual socket write happens elsewhere
        self.on_flush(datagram)
        return datagram
