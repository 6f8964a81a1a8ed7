"""
Request/reply correlation on top of an FcpConnection.

A dialog sends one message, listens to everything the connection receives,
and resolves a single Future once its completion predicate holds. Each
received message is classified by kind and handed to the matching
``consume_*`` hook; hooks do nothing unless a subclass overrides them.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, InvalidStateError
from threading import RLock
from typing import Any, Optional

from .connection import FcpConnection, FcpListener
from .exceptions import ConnectionClosedError, DialogAlreadySentError, DuplicateClientNameError
from .message import Message
from .messages import (
    AllData,
    CloseConnectionDuplicateClientName,
    ConfigData,
    DataFound,
    EndListPeerNotes,
    EndListPeers,
    EndListPersistentRequests,
    FCPPluginReply,
    FinishedCompression,
    GetFailed,
    IdentifierCollision,
    MessageKind,
    NodeData,
    NodeHello,
    Peer,
    PeerNote,
    PeerRemoved,
    PersistentGet,
    PersistentPut,
    PersistentPutDir,
    PersistentRequestModified,
    PersistentRequestRemoved,
    PluginInfo,
    PluginRemoved,
    ProtocolError,
    PutFailed,
    PutFetchable,
    PutSuccessful,
    ReceivedBookmarkFeed,
    SentFeed,
    SimpleProgress,
    SSKKeypair,
    StartedCompression,
    SubscribedUSK,
    SubscribedUSKUpdate,
    TestDDAComplete,
    TestDDAReply,
    UnknownNodeIdentifier,
    UnknownPeerNoteType,
    URIGenerated,
    classify,
)

logger = logging.getLogger(__name__)


class FcpDialog(FcpListener):
    """
    Turns the connection's message stream into one result.

    Subclasses override :meth:`is_finished`, :meth:`get_result` and the
    hooks for the messages they care about. Hooks and the predicate run on
    the connection's receive thread, one message at a time, so subclass
    state needs no locking.

    Setting ``correlate_by_identifier`` makes the dialog skip messages whose
    ``Identifier`` differs from the one it sent. Messages without an
    identifier (NodeHello, TestDDAReply, ...) are always delivered.

    Usage:
        with MyDialog(connection) as dialog:
            result = dialog.send(message).result()
    """

    correlate_by_identifier = False

    def __init__(self, connection: FcpConnection, owns_connection: bool = False):
        self.connection = connection
        self.owns_connection = owns_connection
        self._future: Future = Future()
        self._lock = RLock()
        self._message: Optional[Message] = None
        self._finished = False
        self._released = False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def message(self) -> Optional[Message]:
        """The message this dialog sent."""
        return self._message

    @property
    def identifier(self) -> Optional[str]:
        return self._message.identifier if self._message is not None else None

    @property
    def future(self) -> Future:
        return self._future

    def send(self, message: Message) -> Future:
        """
        Register on the connection, then send ``message``.

        Returns:
            Future resolving with :meth:`get_result`, or failing with the
            error that ended the dialog

        Raises:
            DialogAlreadySentError: If this dialog already sent a message
            FcpConnectionError: If sending fails (the dialog is released)
        """
        with self._lock:
            if self._message is not None:
                raise DialogAlreadySentError(self._message.name)
            self._message = message

        # Registered before the write so an immediate reply cannot be missed
        self.connection.add_listener(self)
        try:
            self.connection.send_message(message)
        except Exception as e:
            self._fail(e)
            raise

        self._check_finished()
        return self._future

    def send_message(self, message: Message) -> None:
        """Send a follow-up message on the dialog's connection."""
        self.connection.send_message(message)

    def close(self) -> None:
        """
        Stop observing the connection. Safe to call repeatedly.

        An unresolved Future is cancelled; the node is not told to abort.
        """
        with self._lock:
            self._finished = True
        self._release()
        self._future.cancel()

    def __enter__(self) -> "FcpDialog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Subclass contract
    # -------------------------------------------------------------------------

    def is_finished(self) -> bool:
        return False

    def get_result(self) -> Any:
        return None

    def is_mine(self, message: Message) -> bool:
        """True if ``message`` carries no identifier or the one this dialog sent."""
        identifier = message.identifier
        return identifier is None or identifier == self.identifier

    # -------------------------------------------------------------------------
    # FcpListener
    # -------------------------------------------------------------------------

    def message_received(self, connection: FcpConnection, message: Message) -> None:
        if self._finished:
            return
        if self.correlate_by_identifier and not self.is_mine(message):
            return

        kind, view = classify(message)
        try:
            getattr(self, kind.hook_name)(view)
            if kind is MessageKind.CLOSE_CONNECTION_DUPLICATE_CLIENT_NAME:
                raise DuplicateClientNameError(
                    f"{connection.endpoint} closed the connection: duplicate client name"
                )
            self._check_finished()
        except Exception as e:
            logger.debug("Dialog %r failed on %s: %s", self, message.name, e)
            self._fail(e)

    def connection_closed(self, connection: FcpConnection, cause: Optional[BaseException]) -> None:
        if self._finished:
            return
        error = ConnectionClosedError(f"Connection to {connection.endpoint} closed", cause)
        error.__cause__ = cause
        self._fail(error)

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def _check_finished(self) -> None:
        with self._lock:
            if self._finished or not self.is_finished():
                return
            self._finished = True
        try:
            result = self.get_result()
        except Exception as e:
            self._set_exception(e)
        else:
            try:
                self._future.set_result(result)
            except InvalidStateError:
                pass  # Cancelled by close()
        self._release()

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            self._finished = True
        self._set_exception(error)
        self._release()

    def _set_exception(self, error: BaseException) -> None:
        try:
            self._future.set_exception(error)
        except InvalidStateError:
            pass  # Already resolved or cancelled

    def _release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self.connection.remove_listener(self)
        if self.owns_connection:
            self.connection.close()

    def __repr__(self) -> str:
        name = self._message.name if self._message is not None else "-"
        return f"{type(self).__name__}({name}, identifier={self.identifier})"

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def consume_node_hello(self, node_hello: NodeHello) -> None:
        pass

    def consume_close_connection_duplicate_client_name(
        self, close_connection_duplicate_client_name: CloseConnectionDuplicateClientName
    ) -> None:
        pass

    def consume_ssk_keypair(self, ssk_keypair: SSKKeypair) -> None:
        pass

    def consume_peer(self, peer: Peer) -> None:
        pass

    def consume_end_list_peers(self, end_list_peers: EndListPeers) -> None:
        pass

    def consume_peer_note(self, peer_note: PeerNote) -> None:
        pass

    def consume_end_list_peer_notes(self, end_list_peer_notes: EndListPeerNotes) -> None:
        pass

    def consume_peer_removed(self, peer_removed: PeerRemoved) -> None:
        pass

    def consume_node_data(self, node_data: NodeData) -> None:
        pass

    def consume_test_dda_reply(self, test_dda_reply: TestDDAReply) -> None:
        pass

    def consume_test_dda_complete(self, test_dda_complete: TestDDAComplete) -> None:
        pass

    def consume_persistent_get(self, persistent_get: PersistentGet) -> None:
        pass

    def consume_persistent_put(self, persistent_put: PersistentPut) -> None:
        pass

    def consume_end_list_persistent_requests(
        self, end_list_persistent_requests: EndListPersistentRequests
    ) -> None:
        pass

    def consume_uri_generated(self, uri_generated: URIGenerated) -> None:
        pass

    def consume_data_found(self, data_found: DataFound) -> None:
        pass

    def consume_all_data(self, all_data: AllData) -> None:
        pass

    def consume_simple_progress(self, simple_progress: SimpleProgress) -> None:
        pass

    def consume_started_compression(self, started_compression: StartedCompression) -> None:
        pass

    def consume_finished_compression(self, finished_compression: FinishedCompression) -> None:
        pass

    def consume_unknown_peer_note_type(self, unknown_peer_note_type: UnknownPeerNoteType) -> None:
        pass

    def consume_unknown_node_identifier(self, unknown_node_identifier: UnknownNodeIdentifier) -> None:
        pass

    def consume_config_data(self, config_data: ConfigData) -> None:
        pass

    def consume_get_failed(self, get_failed: GetFailed) -> None:
        pass

    def consume_put_failed(self, put_failed: PutFailed) -> None:
        pass

    def consume_identifier_collision(self, identifier_collision: IdentifierCollision) -> None:
        pass

    def consume_persistent_put_dir(self, persistent_put_dir: PersistentPutDir) -> None:
        pass

    def consume_persistent_request_removed(
        self, persistent_request_removed: PersistentRequestRemoved
    ) -> None:
        pass

    def consume_subscribed_usk_update(self, subscribed_usk_update: SubscribedUSKUpdate) -> None:
        pass

    def consume_subscribed_usk(self, subscribed_usk: SubscribedUSK) -> None:
        pass

    def consume_plugin_info(self, plugin_info: PluginInfo) -> None:
        pass

    def consume_plugin_removed(self, plugin_removed: PluginRemoved) -> None:
        pass

    def consume_fcp_plugin_reply(self, fcp_plugin_reply: FCPPluginReply) -> None:
        pass

    def consume_persistent_request_modified(
        self, persistent_request_modified: PersistentRequestModified
    ) -> None:
        pass

    def consume_put_successful(self, put_successful: PutSuccessful) -> None:
        pass

    def consume_put_fetchable(self, put_fetchable: PutFetchable) -> None:
        pass

    def consume_sent_feed(self, sent_feed: SentFeed) -> None:
        pass

    def consume_received_bookmark_feed(self, received_bookmark_feed: ReceivedBookmarkFeed) -> None:
        pass

    def consume_protocol_error(self, protocol_error: ProtocolError) -> None:
        pass

    def consume_unknown_message(self, message: Message) -> None:
        pass


class RequestDialog(FcpDialog):
    """
    Dialog for a request carrying an Identifier.

    Ignores traffic for other identifiers and resolves once a hook calls
    :meth:`finish`.
    """

    correlate_by_identifier = True

    def __init__(self, connection: FcpConnection, owns_connection: bool = False):
        super().__init__(connection, owns_connection)
        self.done = False
        self.result: Any = None

    def is_mine(self, message: Message) -> bool:
        """Like :meth:`FcpDialog.is_mine`, but a ProtocolError must name this request."""
        if message.name == MessageKind.PROTOCOL_ERROR.value and message.identifier is None:
            return False
        return super().is_mine(message)

    def finish(self, result: Any = None) -> None:
        self.result = result
        self.done = True

    def is_finished(self) -> bool:
        return self.done

    def get_result(self) -> Any:
        return self.result
