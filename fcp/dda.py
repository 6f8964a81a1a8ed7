"""
Direct disk access (DDA) handshake.

Before a node reads or writes local files on a client's behalf it refuses
the request with ProtocolError code 25 and expects the client to prove it
can access the directory itself:

    client                          node
    TestDDARequest  ------------->
                    <-------------  TestDDAReply (file to read, file to write)
    TestDDAResponse ------------->  (first line of the read file)
                    <-------------  TestDDAComplete (read/write verdict)

After a favourable verdict the client resends the refused request. Replies
for any other directory are ignored at every step.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple

from . import commands
from .config import DDA_REQUIRED_CODE, FAILED_TO_READ
from .connection import FcpConnection
from .dialog import FcpDialog, RequestDialog
from .exceptions import NodeRefusedError
from .message import Message
from .messages import ProtocolError, TestDDAComplete, TestDDAReply

logger = logging.getLogger(__name__)


# =============================================================================
# Challenge files
# =============================================================================

def read_challenge(path: Optional[str]) -> str:
    """
    Read the first line of the node's challenge file.

    Returns:
        The line without its terminator, or FAILED_TO_READ if the file
        cannot be read
    """
    if not path:
        return FAILED_TO_READ
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.readline().rstrip("\r\n")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read DDA challenge %s: %s", path, e)
        return FAILED_TO_READ


def write_challenge(path: Optional[str], content: Optional[str]) -> bool:
    """
    Write the node's challenge content.

    Returns:
        True if the content was written; failures are left for the node
        to report in its verdict
    """
    if not path or content is None:
        return False
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return True
    except OSError as e:
        logger.debug("Cannot write DDA challenge %s: %s", path, e)
        return False


# =============================================================================
# Session
# =============================================================================

class HandshakeState(Enum):
    """Handshake progress for one directory."""
    REQUESTED = auto()  # TestDDARequest sent
    RESPONDED = auto()  # TestDDAResponse sent
    GRANTED = auto()    # Node allowed the wanted access
    DENIED = auto()     # Node refused some wanted access


@dataclass
class DirectDiskAccessSession:
    """State of one handshake, keyed by directory."""

    directory: str
    want_read: bool
    want_write: bool
    state: HandshakeState = HandshakeState.REQUESTED
    read_filename: Optional[str] = None
    write_filename: Optional[str] = None
    content_to_write: Optional[str] = None
    read_content: Optional[str] = None
    wrote_content: bool = False
    read_allowed: bool = False
    write_allowed: bool = False

    def request(self) -> Message:
        return commands.dda_test_request(self.directory, self.want_read, self.want_write)

    def matches(self, directory: Optional[str]) -> bool:
        return directory == self.directory

    @property
    def is_resolved(self) -> bool:
        return self.state in (HandshakeState.GRANTED, HandshakeState.DENIED)

    @property
    def granted(self) -> bool:
        return self.state is HandshakeState.GRANTED

    def answer(self, reply: TestDDAReply) -> Message:
        """Perform the challenge from ``reply`` and build the TestDDAResponse."""
        self.read_filename = reply.read_filename
        self.write_filename = reply.write_filename
        self.content_to_write = reply.content_to_write

        if self.write_filename:
            self.wrote_content = write_challenge(self.write_filename, self.content_to_write)
        if self.want_read or self.read_filename:
            self.read_content = read_challenge(self.read_filename)

        self.state = HandshakeState.RESPONDED
        return commands.dda_test_response(self.directory, self.read_content)

    def complete(self, completion: TestDDAComplete) -> bool:
        """Record the verdict; True if every wanted access was granted."""
        self.read_allowed = completion.is_read_directory_allowed
        self.write_allowed = completion.is_write_directory_allowed
        granted = (self.read_allowed or not self.want_read) and (self.write_allowed or not self.want_write)
        self.state = HandshakeState.GRANTED if granted else HandshakeState.DENIED
        return granted


# =============================================================================
# Dialogs
# =============================================================================

class DirectDiskAccessDialog(RequestDialog):
    """
    Request dialog that can recover from a code 25 refusal.

    Subclasses implement :meth:`disk_access` for requests that touch local
    files. Any other refusal, a denied verdict, or a second code 25 after a
    completed handshake finishes the dialog with no result.
    """

    def __init__(self, connection: FcpConnection, owns_connection: bool = False):
        super().__init__(connection, owns_connection)
        self.session: Optional[DirectDiskAccessSession] = None
        self.refusal: Optional[ProtocolError] = None

    def disk_access(self) -> Optional[Tuple[str, bool, bool]]:
        """``(directory, want_read, want_write)`` the sent request needs, or None."""
        return None

    def consume_refusal(self, protocol_error: ProtocolError) -> None:
        self.refusal = protocol_error
        self.finish(None)

    def consume_protocol_error(self, protocol_error: ProtocolError) -> None:
        if protocol_error.code == DDA_REQUIRED_CODE and self.session is None:
            access = self.disk_access()
            if access is not None:
                directory, want_read, want_write = access
                self.session = DirectDiskAccessSession(directory, want_read, want_write)
                logger.debug("Node wants disk access proven for %s", directory)
                self.send_message(self.session.request())
                return
        self.consume_refusal(protocol_error)

    def consume_test_dda_reply(self, test_dda_reply: TestDDAReply) -> None:
        session = self.session
        if session is None or session.state is not HandshakeState.REQUESTED:
            return
        if not session.matches(test_dda_reply.directory):
            logger.debug("Ignoring TestDDAReply for %s", test_dda_reply.directory)
            return
        self.send_message(session.answer(test_dda_reply))

    def consume_test_dda_complete(self, test_dda_complete: TestDDAComplete) -> None:
        session = self.session
        if session is None or session.is_resolved:
            return
        if not session.matches(test_dda_complete.directory):
            logger.debug("Ignoring TestDDAComplete for %s", test_dda_complete.directory)
            return
        if session.complete(test_dda_complete):
            logger.debug("Disk access to %s granted, resending %s", session.directory, self.message.name)
            self.send_message(self.message)
        else:
            logger.info(
                "Node denied disk access to %s (read=%s, write=%s)",
                session.directory, session.read_allowed, session.write_allowed,
            )
            self.finish(None)


@dataclass(frozen=True)
class DirectDiskAccessResult:
    """Verdict of a standalone disk access test."""
    read_allowed: bool
    write_allowed: bool


class TestDDADialog(FcpDialog):
    """
    Runs the handshake on its own and resolves with the node's verdict.

    A ProtocolError without an Identifier is the refusal of the TestDDARequest
    and fails the dialog with NodeRefusedError.
    """

    __test__ = False

    def __init__(
        self,
        connection: FcpConnection,
        directory: str,
        want_read: bool,
        want_write: bool,
        owns_connection: bool = False,
    ):
        super().__init__(connection, owns_connection)
        self.session = DirectDiskAccessSession(directory, want_read, want_write)

    def request(self) -> Message:
        return self.session.request()

    def consume_test_dda_reply(self, test_dda_reply: TestDDAReply) -> None:
        if self.session.state is HandshakeState.REQUESTED and self.session.matches(test_dda_reply.directory):
            self.send_message(self.session.answer(test_dda_reply))

    def consume_test_dda_complete(self, test_dda_complete: TestDDAComplete) -> None:
        if not self.session.is_resolved and self.session.matches(test_dda_complete.directory):
            self.session.complete(test_dda_complete)

    def consume_protocol_error(self, protocol_error: ProtocolError) -> None:
        if protocol_error.identifier is not None:
            return
        raise NodeRefusedError(protocol_error.code, protocol_error.code_description or "")

    def is_finished(self) -> bool:
        return self.session.is_resolved

    def get_result(self) -> DirectDiskAccessResult:
        return DirectDiskAccessResult(self.session.read_allowed, self.session.write_allowed)


def challenge_directory(filename: str) -> str:
    """Directory the node checks for a file it is asked to read or write."""
    return os.path.dirname(os.path.abspath(filename))
