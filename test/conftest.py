"""
asyncstatsd: fixtures for tests

"""
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Callable, Iterator, List, Optional, Type

import pytest

from asyncstatsd import logutil

logutil.configure_logging()


def udp_port_is_free(hostname: str, port: int) -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.bind((hostname, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


@pytest.fixture(scope="session", name="get_available_port")
def fixture_get_available_port() -> Callable[[], int]:
    first_free_port = 30000

    def get_available_port():
        nonlocal first_free_port
        port = first_free_port
        while port < 40000:
            if udp_port_is_free("127.0.0.1", port):
                first_free_port = port + 1
                return port
            port += 1
        raise RuntimeError("No available port")

    return get_available_port


class RefusingSocket:
    """Writable socket whose sends fail like an ICMP port unreachable does on a connected UDP socket"""
    def __init__(self, sock):
        self.sock = sock

    def fileno(self):
        return self.sock.fileno()

    def close(self):
        self.sock.close()

    def send(self, payload):
        raise ConnectionRefusedError(111, "Connection refused")


class StallingSocket:
    """Socket whose sends block until `release` is set"""
    def __init__(self, sock, release: threading.Event):
        self.sock = sock
        self.release = release

    def fileno(self):
        return self.sock.fileno()

    def close(self):
        self.sock.close()

    def send(self, payload):
        self.release.wait()
        return self.sock.send(payload)


class UdpServer:
    """Receives StatsD datagrams in a background thread and records them"""
    def __init__(self, port: int, recvbuf: Optional[int] = None) -> None:
        self.port = port
        self.socket = socket.socket(family=socket.AF_INET, type=socket.SOCK_DGRAM)
        if recvbuf:
            self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, recvbuf)
        self.socket.settimeout(0.1)
        self.datagrams: List[str] = []
        self.condition = threading.Condition()
        self.running = False
        self.executor = ThreadPoolExecutor(max_workers=1)

    def __enter__(self) -> "UdpServer":
        self.socket.bind(("127.0.0.1", self.port))
        self.running = True
        self.executor.submit(self._receive)
        return self

    def __exit__(self, exc_type: Type, exc_val: BaseException, exc_tb: TracebackType) -> None:
        self.running = False
        self.executor.shutdown(wait=True)
        self.socket.close()

    def _receive(self) -> None:
        while self.running:
            try:
                data = self.socket.recv(65535)
            except socket.timeout:
                continue
            with self.condition:
                self.datagrams.append(data.decode("utf-8"))
                self.condition.notify_all()

    def _line_count(self) -> int:
        return sum(len(datagram.split("\n")) for datagram in self.datagrams)

    def wait_for_items(self, count: int, timeout: float = 10.0) -> bool:
        deadline = time.monotonic() + timeout
        with self.condition:
            while self._line_count() < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self.condition.wait(remaining)
            return True

    def wait_for_datagrams(self, count: int, timeout: float = 10.0) -> bool:
        with self.condition:
            return self.condition.wait_for(lambda: len(self.datagrams) >= count, timeout)

    def get_items_snapshot(self) -> List[str]:
        with self.condition:
            return [line for datagram in self.datagrams for line in datagram.split("\n")]

    def get_datagrams_snapshot(self) -> List[str]:
        with self.condition:
            return list(self.datagrams)


@pytest.fixture(name="udp_server")
def fixture_udp_server(get_available_port: Callable[[], int]) -> Iterator[UdpServer]:
    with UdpServer(port=get_available_port()) as udp_server:
        yield udp_server
