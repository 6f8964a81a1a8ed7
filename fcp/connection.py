"""
Connection to an FCP node.

One FcpConnection owns one socket. A background thread decodes messages off
the socket one at a time and hands each to every registered listener in
arrival order. Listeners correlate messages to requests themselves.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from enum import Enum, auto
from threading import Lock, RLock
from typing import BinaryIO, Dict, Optional, Tuple

from . import codec
from .codec import PayloadStream
from .config import CONNECT_TIMEOUT, DEFAULT_HOST, DEFAULT_PORT
from .exceptions import (
    AlreadyConnectedError,
    ConnectionClosedError,
    FcpConnectionError,
    MessageEncodeError,
    MessageParseError,
    NotConnectedError,
    PayloadTruncatedError,
)
from .message import Message
from .stats import ConnectionStats, stat_message_received

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection state enumeration."""
    IDLE = auto()       # Never connected
    CONNECTED = auto()  # Socket open, receive thread running
    CLOSING = auto()    # close() called, receive thread winding down
    CLOSED = auto()     # Socket released; may connect again


class FcpListener:
    """
    Observer of an FcpConnection.

    Both callbacks run on the connection's receive thread and must return
    quickly. The default implementations do nothing.
    """

    def message_received(self, connection: "FcpConnection", message: Message) -> None:
        pass

    def connection_closed(self, connection: "FcpConnection", cause: Optional[BaseException]) -> None:
        pass


class ListenerRegistry:
    """
    Listeners keyed by identity, kept in registration order.

    Dispatch iterates over a snapshot, so listeners may add or remove
    themselves (or others) from inside a callback without affecting the
    pass in progress.
    """

    def __init__(self):
        self._lock = Lock()
        self._listeners: Dict[int, FcpListener] = {}

    def add(self, listener: FcpListener) -> None:
        with self._lock:
            self._listeners.setdefault(id(listener), listener)

    def remove(self, listener: FcpListener) -> None:
        with self._lock:
            self._listeners.pop(id(listener), None)

    def snapshot(self) -> Tuple[FcpListener, ...]:
        with self._lock:
            return tuple(self._listeners.values())

    def __contains__(self, listener: object) -> bool:
        with self._lock:
            return self._listeners.get(id(listener)) is listener

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


class FcpConnection:
    """
    A single connection to a node.

    Not reconnected automatically; after the connection closes, connect()
    may be called again.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        connect_timeout: float = CONNECT_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.stats = ConnectionStats()

        self._state_lock = RLock()
        self._send_lock = Lock()
        self._listeners = ListenerRegistry()

        self._state = ConnectionState.IDLE
        self._socket: Optional[socket.socket] = None
        self._writer: Optional[BinaryIO] = None
        self._thread: Optional[threading.Thread] = None
        self._abort_cause: Optional[BaseException] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def is_closed(self) -> bool:
        """True once close() was called or the socket went away."""
        return self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED)

    def connect(self) -> None:
        """
        Open the socket and start the receive thread.

        Raises:
            AlreadyConnectedError: If the connection is live or still closing
            FcpConnectionError: If the node cannot be reached
        """
        with self._state_lock:
            if self._state in (ConnectionState.CONNECTED, ConnectionState.CLOSING):
                raise AlreadyConnectedError(self.endpoint)

            try:
                sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
            except OSError as e:
                raise FcpConnectionError(f"Cannot connect to {self.endpoint}: {e}") from e
            sock.settimeout(None)

            reader = sock.makefile("rb")
            self._socket = sock
            self._writer = sock.makefile("wb")
            self._abort_cause = None
            self._state = ConnectionState.CONNECTED
            self.stats.connects += 1
            self.stats.connected_at = time.time()
            self._thread = threading.Thread(
                target=self._receive_loop,
                args=(sock, reader),
                name=f"fcp-receive-{self.endpoint}",
                daemon=True,
            )
            self._thread.start()

        logger.info("Connected to %s", self.endpoint)

    def close(self) -> None:
        """
        Close the connection. Idempotent and safe from any thread.

        Listeners are notified by the receive thread as it exits, not here.
        """
        with self._state_lock:
            if self._state is not ConnectionState.CONNECTED:
                return
            self._state = ConnectionState.CLOSING
            sock = self._socket

        logger.info("Closing connection to %s", self.endpoint)
        _shutdown(sock)

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Block until the receive thread has exited; False on timeout."""
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return not self.is_connected()
        thread.join(timeout)
        return not thread.is_alive()

    def __enter__(self) -> "FcpConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: FcpListener) -> None:
        self._listeners.add(listener)

    def remove_listener(self, listener: FcpListener) -> None:
        self._listeners.remove(listener)

    def has_listener(self, listener: FcpListener) -> bool:
        return listener in self._listeners

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send_message(self, message: Message) -> None:
        """
        Write one message. Concurrent callers never interleave on the wire.

        Raises:
            NotConnectedError: If the connection is not live
            MessageEncodeError: If the message cannot be encoded (nothing sent)
            FcpConnectionError: If writing fails; the connection is closed
        """
        with self._send_lock:
            writer = self._writer
            if self._state is not ConnectionState.CONNECTED or writer is None:
                raise NotConnectedError(self.endpoint)

            try:
                written = codec.write_message(writer, message)
            except PayloadTruncatedError as e:
                self._abort(e)
                raise
            except MessageEncodeError:
                raise
            except (OSError, ValueError) as e:
                self._abort(e)
                raise FcpConnectionError(f"Sending {message.name} to {self.endpoint} failed: {e}") from e

            self.stats.messages_sent += 1
            self.stats.bytes_sent += written
        logger.debug("Sent %s (%d bytes) to %s", message.name, written, self.endpoint)

    def _abort(self, cause: BaseException) -> None:
        """Tear the connection down after a failure that left the wire unusable."""
        with self._state_lock:
            if self._state is not ConnectionState.CONNECTED:
                return
            self._abort_cause = cause
            self._state = ConnectionState.CLOSING
            sock = self._socket
        logger.warning("Aborting connection to %s: %s", self.endpoint, cause)
        _shutdown(sock)

    # -------------------------------------------------------------------------
    # Receiving
    # -------------------------------------------------------------------------

    def _receive_loop(self, sock: socket.socket, reader: BinaryIO) -> None:
        cause: Optional[BaseException] = None
        try:
            while True:
                message = codec.decode(reader)
                if message is None:
                    if self._state is ConnectionState.CONNECTED:
                        cause = ConnectionClosedError(f"Node at {self.endpoint} closed the connection")
                    break

                self.stats.messages_received += 1
                stat_message_received(message.name)
                logger.debug("Received %s from %s", message.name, self.endpoint)

                self._dispatch(message)

                payload = message.payload
                if isinstance(payload, PayloadStream) and payload.remaining:
                    skipped = payload.drain()
                    logger.debug("Discarded %d unread payload bytes of %s", skipped, message.name)
        except (OSError, ValueError, MessageParseError) as e:
            if self._state is ConnectionState.CONNECTED:
                logger.error("Connection to %s failed: %s", self.endpoint, e)
                cause = e
        finally:
            if self._abort_cause is not None:
                cause = self._abort_cause
            self._teardown(sock, reader)
            self._notify_closed(cause)

    def _dispatch(self, message: Message) -> None:
        for listener in self._listeners.snapshot():
            try:
                listener.message_received(self, message)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, message.name)

    def _notify_closed(self, cause: Optional[BaseException]) -> None:
        if cause is None:
            logger.info("Connection to %s closed", self.endpoint)
        else:
            logger.info("Connection to %s closed: %s", self.endpoint, cause)
        for listener in self._listeners.snapshot():
            try:
                listener.connection_closed(self, cause)
            except Exception:
                logger.exception("Listener %r failed on connection close", listener)

    def _teardown(self, sock: socket.socket, reader: BinaryIO) -> None:
        _shutdown(sock)
        with self._state_lock:
            writer = self._writer if self._socket is sock else None
            if self._socket is sock:
                self._state = ConnectionState.CLOSED
                self._socket = None
        with self._send_lock:
            if writer is not None and self._writer is writer:
                self._writer = None
            for resource in (writer, reader, sock):
                if resource is None:
                    continue
                try:
                    resource.close()
                except OSError:
                    pass  # Peer already gone

    def __repr__(self) -> str:
        return f"FcpConnection({self.endpoint}, {self._state.name})"


def _shutdown(sock: Optional[socket.socket]) -> None:
    """Shut both directions down so a blocked reader wakes up."""
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass  # Already shut down or never fully connected
