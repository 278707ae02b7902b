"""
asyncstatsd - completion tracking for sends and datagrams

A send may be coalesced with other sends into one datagram, and a batch send
may be split over several datagrams. PendingSend resolves its handle once
every datagram holding one of its lines has been handed off, or fails it on the
first datagram failure.
"""
import enum
import logging
import threading
from concurrent.futures import Future
from typing import List, Optional

from asyncstatsd.common import StrEnum

LOG = logging.getLogger(__name__)


@enum.unique
class SendState(StrEnum):
    created = "created"
    encoded = "encoded"
    buffered = "buffered"
    flushed = "flushed"
    failed = "failed"


TERMINAL_STATES = {SendState.flushed, SendState.failed}


class PendingSend:
    """Single `send()` call; its future is resolved outside of the internal lock so callbacks may send again"""
    def __init__(self) -> None:
        self.future: Future = Future()
        self.future.set_running_or_notify_cancel()
        self.state = SendState.created
        self._lock = threading.Lock()
        self._outstanding = 0
        self._sealed = False

    def __repr__(self):
        return "<PendingSend state={} outstanding={} sealed={}>".format(self.state, self._outstanding, self._sealed)

    def mark_encoded(self) -> None:
        with self._lock:
            if self.state == SendState.created:
                self.state = SendState.encoded

    def add_datagram(self) -> None:
        with self._lock:
            self._outstanding += 1
            if self.state not in TERMINAL_STATES:
                self.state = SendState.buffered

    def seal(self) -> None:
        """No more lines of this send will be buffered"""
        with self._lock:
            self._sealed = True
            resolved = self._transition()
        self._settle(resolved, None)

    def datagram_done(self, exception: Optional[BaseException] = None) -> None:
        with self._lock:
            self._outstanding -= 1
            resolved = self._transition(exception)
        self._settle(resolved, exception)

    def fail(self, exception: BaseException) -> None:
        with self._lock:
            resolved = self._transition(exception)
        self._settle(resolved, exception)

    def _transition(self, exception=None):
        if self.state in TERMINAL_STATES:
            return False
        if exception is not None:
            self.state = SendState.failed
            return True
        if not self._sealed or self._outstanding > 0:
            return False
        self.state = SendState.flushed
        return True

    def _settle(self, resolved, exception):
        if not resolved:
            return
        if exception is not None:
            self.future.set_exception(exception)
        else:
            self.future.set_result(None)


class Datagram:
    """Lines coalesced into one UDP payload together with the sends they belong to"""
    def __init__(self) -> None:
        self.lines: List[bytes] = []
        self.pending_sends: List[PendingSend] = []
        self.size = 0
        self.future: Optional[Future] = None

    def __len__(self):
        return len(self.lines)

    def __repr__(self):
        return "<Datagram lines={} size={} sends={}>".format(len(self.lines), self.size, len(self.pending_sends))

    def size_with(self, line: bytes) -> int:
        if not self.lines:
            return len(line)
        return self.size + 1 + len(line)

    def add_line(self, line: bytes, pending_send: PendingSend) -> None:
        self.size = self.size_with(line)
        self.lines.append(line)
        # lines of one send are appended contiguously so checking the last entry is enough
        if not self.pending_sends or self.pending_sends[-1] is not pending_send:
            self.pending_sends.append(pending_send)
            pending_send.add_datagram()

    @property
    def payload(self) -> bytes:
        return b"\n".join(self.lines)


def track(datagram: Datagram, future: Future) -> None:
    """Resolve every send coalesced into `datagram` once the transport resolves `future`"""
    datagram.future = future

    def on_done(done: Future) -> None:
        exception = done.exception()
        if exception is not None:
            LOG.debug("Datagram %r failed: %s: %s", datagram, exception.__class__.__name__, exception)
        for pending_send in datagram.pending_sends:
            pending_send.datagram_done(exception)

    future.add_done_callback(on_done)


def failed_future(exception: BaseException) -> Future:
    future: Future = Future()
    future.set_running_or_notify_cancel()
    future.set_exception(exception)
    return future

