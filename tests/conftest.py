"""
Pytest configuration and fixtures for FCP client tests.
"""

import pytest
import os
import socket
import sys
import tempfile
import threading

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


NODE_HELLO = [
    "NodeHello",
    "CompressionCodecs=4 - GZIP(0), BZIP2(1), LZMA(2), LZMA_NEW(3)",
    "Revision=build01466",
    "Testnet=false",
    "Version=Fred,0.7,1.0,1466",
    "Build=1466",
    "ConnectionIdentifier=14318898267048452a81b36e7f13a3f0",
    "Node=Fred",
    "ExtBuild=29",
    "FCPVersion=2.0",
    "NodeLanguage=ENGLISH",
    "ExtRevision=v29",
    "EndMessage",
]


class FakeNode:
    """
    Scripted stand-in for a node: a listening socket on localhost.

    Tests accept the client's connection, read the lines it wrote and write
    replies line by line.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server.bind(("127.0.0.1", 0))
        self._server.listen(4)
        self._server.settimeout(timeout)
        self.host, self.port = self._server.getsockname()
        self._client = None
        self._reader = None
        self._lock = threading.Lock()

    def accept(self) -> None:
        """Accept the next client connection."""
        self.close_client()
        sock, _ = self._server.accept()
        sock.settimeout(self.timeout)
        with self._lock:
            self._client = sock
            self._reader = sock.makefile("rb")

    def read_line(self) -> str:
        raw = self._reader.readline()
        if not raw:
            raise EOFError("Client closed the connection")
        return raw.decode("utf-8").rstrip("\r\n")

    def collect_until(self, terminator: str = "EndMessage") -> list:
        """Read lines up to and including ``terminator``."""
        lines = []
        while True:
            line = self.read_line()
            lines.append(line)
            if line == terminator:
                return lines

    def read_bytes(self, count: int) -> bytes:
        data = self._reader.read(count)
        if len(data) < count:
            raise EOFError("Client closed the connection")
        return data

    def write_lines(self, *lines: str) -> None:
        self.write_bytes("".join(line + "\n" for line in lines).encode("utf-8"))

    def write_bytes(self, data: bytes) -> None:
        self._client.sendall(data)

    def connect_node(self) -> list:
        """Accept a client, read its ClientHello and greet it."""
        self.accept()
        hello = self.collect_until("EndMessage")
        self.write_lines(*NODE_HELLO)
        return hello

    def close_client(self) -> None:
        with self._lock:
            reader, client = self._reader, self._client
            self._reader = self._client = None
        for resource in (reader, client):
            if resource is None:
                continue
            try:
                resource.close()
            except OSError:
                pass

    def close(self) -> None:
        self.close_client()
        self._server.close()


class StubConnection:
    """Connection double recording registrations and sent messages."""

    endpoint = "stub:9481"

    def __init__(self, fail_send=None):
        self.listeners = []
        self.sent = []
        self.events = []
        self.closed = False
        self.fail_send = fail_send

    def add_listener(self, listener):
        self.events.append("add")
        if listener not in self.listeners:
            self.listeners.append(listener)

    def remove_listener(self, listener):
        self.events.append("remove")
        if listener in self.listeners:
            self.listeners.remove(listener)

    def send_message(self, message):
        self.events.append("send")
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(message)

    def close(self):
        self.closed = True

    def deliver(self, message):
        for listener in list(self.listeners):
            listener.message_received(self, message)

    def drop(self, cause=None):
        for listener in list(self.listeners):
            listener.connection_closed(self, cause)


def extract_identifier(lines) -> str:
    """Value of the Identifier line, or "" if there is none."""
    for line in lines:
        if line.startswith("Identifier="):
            return line.split("=", 1)[1]
    return ""


def fcp_message(lines, name: str, *required: str) -> bool:
    """True if ``lines`` is a message named ``name`` containing every required line."""
    return bool(lines) and lines[0] == name and all(line in lines for line in required)


@pytest.fixture
def fake_node():
    """A fake node listening on a free localhost port."""
    node = FakeNode()
    yield node
    node.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir
