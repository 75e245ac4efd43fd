"""Shared fixtures: a relay server on an ephemeral port and a local echo server."""

import socket
import threading
import time
from collections.abc import Callable, Iterator

import pytest

from socks4_relay.core.config import ServerConfig
from socks4_relay.core.lib.proxy_server import SocksServer
from socks4_relay.core.utils.utils import close_quietly

TIMEOUT = 3.0


def wait_for(predicate: Callable[[], bool], timeout: float = TIMEOUT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def recv_exact(sock: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def read_until_closed(sock: socket.socket) -> bytes:
    """Read everything until the peer closes; a reset counts as closed."""
    data = b""
    try:
        while chunk := sock.recv(4096):
            data += chunk
    except ConnectionResetError:
        pass
    return data


def socks4_request(port: int, ip: str, command: int = 1, version: int = 4) -> bytes:
    return bytes([version, command]) + port.to_bytes(2, "big") + socket.inet_aton(ip)


class RunningServer:
    """A server serving on a background thread."""

    def __init__(self, server: SocksServer) -> None:
        self.server = server
        self.listener = socket.create_server(("127.0.0.1", 0))
        self.address = self.listener.getsockname()
        self.error: BaseException | None = None
        self.thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self) -> None:
        try:
            self.server.serve(self.listener)
        except BaseException as exc:  # noqa: BLE001 - surfaced to the test
            self.error = exc

    def start(self) -> "RunningServer":
        self.thread.start()
        return self

    def connect(self) -> socket.socket:
        sock = socket.create_connection(self.address, timeout=TIMEOUT)
        return sock

    def stop(self) -> None:
        self.server.close()
        self.thread.join(TIMEOUT)


@pytest.fixture
def make_server() -> Iterator[Callable[..., RunningServer]]:
    running: list[RunningServer] = []

    def factory(**overrides) -> RunningServer:
        settings = {
            "dial_timeout": 1.0,
            "accept_retry_delay": 0.001,
            "handshake_timeout": 2.0,
            "poll_interval": 0.05,
        }
        settings.update(overrides)
        instance = RunningServer(SocksServer(ServerConfig(**settings))).start()
        running.append(instance)
        return instance

    yield factory

    for instance in running:
        instance.stop()


@pytest.fixture
def relay(make_server) -> RunningServer:
    return make_server()


@pytest.fixture
def loopback_relay(make_server) -> RunningServer:
    return make_server(allow_loopback=True)


@pytest.fixture
def echo_port() -> Iterator[int]:
    """Port of a local server that echoes every connection back."""
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(0.05)
    stop = threading.Event()
    conns: list[socket.socket] = []

    def echo(conn: socket.socket) -> None:
        try:
            while data := conn.recv(4096):
                conn.sendall(data)
        except OSError:
            pass
        finally:
            close_quietly(conn)

    def serve() -> None:
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            conn.settimeout(None)
            conns.append(conn)
            threading.Thread(target=echo, args=(conn,), daemon=True).start()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()

    yield listener.getsockname()[1]

    stop.set()
    thread.join(TIMEOUT)
    close_quietly(listener)
    for conn in conns:
        close_quietly(conn)


@pytest.fixture
def closed_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
