"""
Wire codec for FCP messages.

Format:
    Name
    Key=Value
    ...
    EndMessage

Messages carrying a payload end with a ``Data`` line instead, followed
immediately by exactly ``DataLength`` raw bytes. Lines are read with either
LF or CRLF endings and always written with LF.
"""

from __future__ import annotations

import io
import logging
import shutil
from typing import BinaryIO, Optional

from .config import (
    COPY_CHUNK_SIZE,
    DATA_LENGTH_FIELD,
    DATA_TERMINATOR,
    END_MESSAGE,
    MAX_LINE_LENGTH,
)
from .exceptions import MessageEncodeError, MessageParseError, PayloadTruncatedError
from .message import Message

logger = logging.getLogger(__name__)


# =============================================================================
# Payload stream
# =============================================================================

class PayloadStream(io.RawIOBase):
    """
    Read-only view onto the next ``length`` bytes of an underlying stream.

    The receive loop hands this to listeners in place of a buffered payload.
    Whatever the listeners leave unread is discarded by :meth:`drain` before
    the next message is decoded, keeping the framing intact. Closing the view
    does not close the underlying stream.
    """

    def __init__(self, stream: BinaryIO, length: int):
        super().__init__()
        self._stream = stream
        self._length = length
        self._remaining = length

    @property
    def length(self) -> int:
        return self._length

    @property
    def remaining(self) -> int:
        return self._remaining

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining == 0 or len(buffer) == 0:
            return 0
        view = memoryview(buffer)[: min(len(buffer), self._remaining)]
        count = self._stream.readinto(view)
        if not count:
            raise MessageParseError(
                f"Stream ended with {self._remaining} of {self._length} payload bytes unread"
            )
        self._remaining -= count
        return count

    def drain(self) -> int:
        """Discard the unread rest of the payload, returning how many bytes were skipped."""
        skipped = 0
        while self._remaining:
            chunk = self._stream.read(min(self._remaining, COPY_CHUNK_SIZE))
            if not chunk:
                raise MessageParseError(
                    f"Stream ended with {self._remaining} of {self._length} payload bytes unread"
                )
            self._remaining -= len(chunk)
            skipped += len(chunk)
        return skipped

    def __repr__(self) -> str:
        return f"PayloadStream(length={self._length}, remaining={self._remaining})"


# =============================================================================
# Encoding
# =============================================================================

def _check_token(kind: str, text: str, allow_equals: bool = True) -> None:
    if "\n" in text or "\r" in text:
        raise MessageEncodeError(f"{kind} contains a line break: {text!r}")
    if not allow_equals and "=" in text:
        raise MessageEncodeError(f"{kind} contains '=': {text!r}")


def encode_header(message: Message) -> bytes:
    """Encode everything up to and including the terminator line."""
    _check_token("Message name", message.name)
    if not message.name:
        raise MessageEncodeError("Message name is empty")

    lines = [message.name]
    for key, value in message.fields.items():
        _check_token("Field name", key, allow_equals=False)
        _check_token(f"Value of {key}", value)
        lines.append(f"{key}={value}")
    lines.append(DATA_TERMINATOR if message.payload is not None else END_MESSAGE)
    return ("\n".join(lines) + "\n").encode("utf-8")


def encode(message: Message) -> bytes:
    """
    Encode a message, payload included, to wire bytes.

    The ``DataLength`` field is written as given; it is the producer's job to
    make it match the payload.
    """
    header = encode_header(message)
    payload = message.payload
    if payload is None:
        return header
    if isinstance(payload, (bytes, bytearray)):
        return header + bytes(payload)
    length = message.data_length
    return header + (payload.read(length) if length is not None else payload.read())


def write_message(stream: BinaryIO, message: Message) -> int:
    """
    Write a message to a binary stream without buffering file payloads.

    Returns:
        Number of bytes written
    """
    header = encode_header(message)
    stream.write(header)
    written = len(header)

    payload = message.payload
    if isinstance(payload, (bytes, bytearray)):
        stream.write(payload)
        written += len(payload)
    elif payload is not None:
        length = message.data_length
        if length is None:
            before = payload.tell() if payload.seekable() else None
            shutil.copyfileobj(payload, stream, COPY_CHUNK_SIZE)
            if before is not None:
                written += payload.tell() - before
        else:
            written += _copy_exactly(payload, stream, length)
    stream.flush()
    return written


def _copy_exactly(source: BinaryIO, target: BinaryIO, length: int) -> int:
    remaining = length
    while remaining:
        chunk = source.read(min(remaining, COPY_CHUNK_SIZE))
        if not chunk:
            raise PayloadTruncatedError(length, remaining)
        target.write(chunk)
        remaining -= len(chunk)
    return length


# =============================================================================
# Decoding
# =============================================================================

def _read_line(stream: BinaryIO) -> Optional[str]:
    """Read one line without its terminator; None at end of stream."""
    raw = stream.readline(MAX_LINE_LENGTH + 1)
    if not raw:
        return None
    if not raw.endswith(b"\n"):
        if len(raw) > MAX_LINE_LENGTH:
            raise MessageParseError(f"Line longer than {MAX_LINE_LENGTH} bytes")
        raise MessageParseError("Stream ended in the middle of a line")
    raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MessageParseError(f"Line is not valid UTF-8: {e}") from e


def decode(stream: BinaryIO) -> Optional[Message]:
    """
    Read the next message from a binary stream.

    A payload-bearing message is returned with a :class:`PayloadStream`
    bound to ``stream``; it must be read or drained before the next call.

    Returns:
        The decoded message, or None if the stream ended cleanly before a
        new message began

    Raises:
        MessageParseError: On malformed input or a truncated message
    """
    name = _read_line(stream)
    while name is not None and not name.strip():
        name = _read_line(stream)
    if name is None:
        return None
    name = name.strip()
    if "=" in name:
        raise MessageParseError(f"Expected a message name, got field line {name!r}")

    fields = {}
    while True:
        line = _read_line(stream)
        if line is None:
            raise MessageParseError(f"Stream ended before {name} was terminated")
        if line == END_MESSAGE:
            return Message(name, fields)
        if line == DATA_TERMINATOR:
            return Message(name, fields, _payload_stream(stream, name, fields))
        if not line:
            continue
        key, sep, value = line.partition("=")
        if not sep or not key:
            raise MessageParseError(f"Malformed line in {name}: {line!r}")
        fields[key] = value


def _payload_stream(stream: BinaryIO, name: str, fields: dict) -> PayloadStream:
    raw_length = fields.get(DATA_LENGTH_FIELD)
    if raw_length is None:
        raise MessageParseError(f"{name} carries data without {DATA_LENGTH_FIELD}")
    try:
        length = int(raw_length)
    except ValueError as e:
        raise MessageParseError(f"{name} has invalid {DATA_LENGTH_FIELD}={raw_length!r}") from e
    if length < 0:
        raise MessageParseError(f"{name} has negative {DATA_LENGTH_FIELD}={length}")
    return PayloadStream(stream, length)
