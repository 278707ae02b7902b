"""
asyncstatsd - UDP transport

A single non-blocking UDP socket connected to the StatsD server. Callers hand
payloads to `write()`, which only queues them; a sender thread owns the socket
and performs the actual writes. When the queue stays empty for `idle_interval`
seconds the sender calls the optional `on_idle` hook.

"""
import logging
import select
import socket
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from queue import Empty
from typing import Callable, Optional

from asyncstatsd.common import ClientThread, QuitEvent, SendQueue
from asyncstatsd.completion import failed_future
from asyncstatsd.errors import ClosedClientError, InvalidConfigurationError, SocketError


@dataclass(frozen=True)
class OutgoingDatagram:
    payload: bytes
    future: Future


def open_udp_socket(host: str, port: int) -> socket.socket:
    try:
        addrinfo = socket.getaddrinfo(host, port, 0, socket.SOCK_DGRAM)
    except socket.gaierror as ex:
        raise InvalidConfigurationError("Can't resolve StatsD address {}:{}: {}".format(host, port, ex)) from ex
    family, sock_type, proto, _, address = addrinfo[0]
    sock = socket.socket(family, sock_type, proto)
    try:
        sock.setblocking(False)
        # connected UDP socket: plain send() and no per-datagram address lookup
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    return sock


class DatagramSender(ClientThread):
    WRITABLE_TIMEOUT = 1.0

    def __init__(
        self,
        sock: socket.socket,
        send_queue: SendQueue,
        *,
        on_idle: Optional[Callable[[], None]] = None,
        idle_interval: float = 1.0,
    ):
        super().__init__(name="DatagramSender")
        self.log = logging.getLogger("DatagramSender")
        self.socket = sock
        self.send_queue = send_queue
        self.on_idle = on_idle
        self.idle_interval = idle_interval
        self.running = True
        self.close_socket_on_exit = False

    def run_safe(self):
        try:
            while self.running:
                try:
                    item = self.send_queue.get(timeout=self.idle_interval)
                except Empty:
                    self.handle_idle()
                    continue
                if item is QuitEvent:
                    break
                self.send_datagram(item)
        finally:
            if self.close_socket_on_exit:
                self.socket.close()
        self.log.debug("Quitting DatagramSender")

    def handle_idle(self) -> None:
        if self.on_idle is None:
            return
        try:
            self.on_idle()
        except Exception:  # pylint: disable=broad-except
            self.log.exception("Idle callback failed")

    def send_datagram(self, item: OutgoingDatagram) -> None:
        try:
            _, writable, _ = select.select([], [self.socket], [], self.WRITABLE_TIMEOUT)
            if not writable:
                raise BlockingIOError("socket not writable after {}s".format(self.WRITABLE_TIMEOUT))
            sent = self.socket.send(item.payload)
        except (OSError, ValueError) as ex:
            # ValueError: socket was closed underneath us by a timed out close()
            self.log.warning(
                "Failed to send datagram of %d bytes: %s: %s", len(item.payload), ex.__class__.__name__, ex
            )
            error = SocketError("Failed to send datagram: {}".format(ex))
            error.__cause__ = ex
            item.future.set_exception(error)
            return
        item.future.set_result(sent)


class UDPTransport:
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8125,
        *,
        on_idle: Optional[Callable[[], None]] = None,
        idle_interval: float = 1.0,
    ):
        self.log = logging.getLogger("UDPTransport")
        self.address = (host, port)
        self.socket = open_udp_socket(host, port)
        self.send_queue = SendQueue()
        self.closed = False
        self._lock = threading.Lock()
        self.sender = DatagramSender(self.socket, self.send_queue, on_idle=on_idle, idle_interval=idle_interval)
        self.sender.start()
        self.log.debug("UDPTransport initialized for %s:%s", host, port)

    @property
    def on_sender_thread(self) -> bool:
        return threading.current_thread() is self.sender

    def write(self, payload: bytes) -> Future:
        """Queue `payload` for sending, the returned future resolves once the OS has accepted it"""
        with self._lock:
            if self.closed:
                return failed_future(ClosedClientError("Transport to {}:{} is closed".format(*self.address)))
            future: Future = Future()
            future.set_running_or_notify_cancel()
            self.send_queue.put(OutgoingDatagram(payload=payload, future=future))
        return future

    def close(self, timeout: float = 5.0) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            if self.on_sender_thread:
                # called from a completion callback, the sender can't join itself
                self.sender.close_socket_on_exit = True
            self.send_queue.put(QuitEvent)
        if self.on_sender_thread:
            self.log.debug("UDPTransport to %s:%s closing from sender thread", *self.address)
            return
        self.sender.join(timeout)
        if self.sender.is_alive():
            self.log.warning("DatagramSender did not finish within %.1fs, dropping pending datagrams", timeout)
            self.sender.running = False
        self._fail_leftovers()
        self.socket.close()
        self.log.debug("UDPTransport to %s:%s closed", *self.address)

    def _fail_leftovers(self):
        while True:
            try:
                item = self.send_queue.get_nowait()
            except Empty:
                return
            if item is not QuitEvent:
                item.future.set_exception(ClosedClientError("Transport closed before datagram was sent"))
