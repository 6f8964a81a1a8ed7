"""
Catalogue of messages a node sends to clients.

Every known message name maps to a :class:`MessageKind` and a read-only
view class with typed accessors over the raw string fields. Names that are
not in the table classify as :attr:`MessageKind.UNKNOWN`.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Tuple, Type

from .message import Message


class MessageKind(Enum):
    """Known node-to-client messages; values are the wire names."""
    NODE_HELLO = "NodeHello"
    CLOSE_CONNECTION_DUPLICATE_CLIENT_NAME = "CloseConnectionDuplicateClientName"
    SSK_KEYPAIR = "SSKKeypair"
    PEER = "Peer"
    END_LIST_PEERS = "EndListPeers"
    PEER_NOTE = "PeerNote"
    END_LIST_PEER_NOTES = "EndListPeerNotes"
    PEER_REMOVED = "PeerRemoved"
    NODE_DATA = "NodeData"
    TEST_DDA_REPLY = "TestDDAReply"
    TEST_DDA_COMPLETE = "TestDDAComplete"
    PERSISTENT_GET = "PersistentGet"
    PERSISTENT_PUT = "PersistentPut"
    END_LIST_PERSISTENT_REQUESTS = "EndListPersistentRequests"
    URI_GENERATED = "URIGenerated"
    DATA_FOUND = "DataFound"
    ALL_DATA = "AllData"
    SIMPLE_PROGRESS = "SimpleProgress"
    STARTED_COMPRESSION = "StartedCompression"
    FINISHED_COMPRESSION = "FinishedCompression"
    UNKNOWN_PEER_NOTE_TYPE = "UnknownPeerNoteType"
    UNKNOWN_NODE_IDENTIFIER = "UnknownNodeIdentifier"
    CONFIG_DATA = "ConfigData"
    GET_FAILED = "GetFailed"
    PUT_FAILED = "PutFailed"
    IDENTIFIER_COLLISION = "IdentifierCollision"
    PERSISTENT_PUT_DIR = "PersistentPutDir"
    PERSISTENT_REQUEST_REMOVED = "PersistentRequestRemoved"
    SUBSCRIBED_USK_UPDATE = "SubscribedUSKUpdate"
    SUBSCRIBED_USK = "SubscribedUSK"
    PLUGIN_INFO = "PluginInfo"
    PLUGIN_REMOVED = "PluginRemoved"
    FCP_PLUGIN_REPLY = "FCPPluginReply"
    PERSISTENT_REQUEST_MODIFIED = "PersistentRequestModified"
    PUT_SUCCESSFUL = "PutSuccessful"
    PUT_FETCHABLE = "PutFetchable"
    SENT_FEED = "SentFeed"
    RECEIVED_BOOKMARK_FEED = "ReceivedBookmarkFeed"
    PROTOCOL_ERROR = "ProtocolError"
    UNKNOWN = ""

    @property
    def hook_name(self) -> str:
        """Name of the dialog method that consumes this kind."""
        if self is MessageKind.UNKNOWN:
            return "consume_unknown_message"
        return "consume_" + self.name.lower()


# =============================================================================
# Base view
# =============================================================================

class ReceivedMessage:
    """Read-only typed view over a received :class:`Message`."""

    kind: MessageKind = MessageKind.UNKNOWN

    __slots__ = ("message",)

    def __init__(self, message: Message):
        self.message = message

    @property
    def name(self) -> str:
        return self.message.name

    @property
    def identifier(self) -> Optional[str]:
        return self.message.identifier

    @property
    def fields(self):
        return self.message.fields

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.message.get(key, default)

    def _int(self, key: str, default: int = -1) -> int:
        value = self.message.get(key)
        try:
            return int(value) if value is not None else default
        except ValueError:
            return default

    def _bool(self, key: str, default: bool = False) -> bool:
        value = self.message.get(key)
        if value is None:
            return default
        return value.strip().lower() == "true"

    def _prefixed(self, prefix: str) -> Dict[str, str]:
        start = prefix + "."
        return {
            key[len(start):]: value
            for key, value in self.message.fields.items()
            if key.startswith(start)
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.message.fields)!r})"


# =============================================================================
# Connection
# =============================================================================

class NodeHello(ReceivedMessage):
    kind = MessageKind.NODE_HELLO
    __slots__ = ()

    @property
    def version(self) -> Optional[str]:
        return self.get("Version")

    @property
    def fcp_version(self) -> Optional[str]:
        return self.get("FCPVersion")

    @property
    def node(self) -> Optional[str]:
        return self.get("Node")

    @property
    def build(self) -> int:
        return self._int("Build")

    @property
    def revision(self) -> Optional[str]:
        return self.get("Revision")

    @property
    def connection_identifier(self) -> Optional[str]:
        return self.get("ConnectionIdentifier")

    @property
    def testnet(self) -> bool:
        return self._bool("Testnet")

    @property
    def node_language(self) -> Optional[str]:
        return self.get("NodeLanguage")


class CloseConnectionDuplicateClientName(ReceivedMessage):
    kind = MessageKind.CLOSE_CONNECTION_DUPLICATE_CLIENT_NAME
    __slots__ = ()


class ProtocolError(ReceivedMessage):
    """Refusal of a request; ``Code`` 25 asks for a disk access test first."""
    kind = MessageKind.PROTOCOL_ERROR
    __slots__ = ()

    @property
    def code(self) -> int:
        return self._int("Code")

    @property
    def code_description(self) -> Optional[str]:
        return self.get("CodeDescription")

    @property
    def extra_description(self) -> Optional[str]:
        return self.get("ExtraDescription")

    @property
    def is_fatal(self) -> bool:
        return self._bool("Fatal")

    @property
    def is_global(self) -> bool:
        return self._bool("Global")


class IdentifierCollision(ReceivedMessage):
    kind = MessageKind.IDENTIFIER_COLLISION
    __slots__ = ()


# =============================================================================
# Keys and transfers
# =============================================================================

class SSKKeypair(ReceivedMessage):
    kind = MessageKind.SSK_KEYPAIR
    __slots__ = ()

    @property
    def insert_uri(self) -> Optional[str]:
        return self.get("InsertURI")

    @property
    def request_uri(self) -> Optional[str]:
        return self.get("RequestURI")


class URIGenerated(ReceivedMessage):
    kind = MessageKind.URI_GENERATED
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")


class DataFound(ReceivedMessage):
    kind = MessageKind.DATA_FOUND
    __slots__ = ()

    @property
    def mime_type(self) -> Optional[str]:
        return self.get("Metadata.ContentType")

    @property
    def data_length(self) -> int:
        return self._int("DataLength")

    @property
    def is_global(self) -> bool:
        return self._bool("Global")


class AllData(ReceivedMessage):
    """Fetched content; the payload streams straight off the socket."""
    kind = MessageKind.ALL_DATA
    __slots__ = ()

    @property
    def data_length(self) -> int:
        return self._int("DataLength")

    @property
    def content_type(self) -> Optional[str]:
        return self.get("Metadata.ContentType")

    @property
    def startup_time(self) -> int:
        return self._int("StartupTime")

    @property
    def completion_time(self) -> int:
        return self._int("CompletionTime")

    @property
    def payload(self) -> Optional[BinaryIO]:
        return self.message.payload


class SimpleProgress(ReceivedMessage):
    kind = MessageKind.SIMPLE_PROGRESS
    __slots__ = ()

    @property
    def total(self) -> int:
        return self._int("Total")

    @property
    def required(self) -> int:
        return self._int("Required")

    @property
    def failed(self) -> int:
        return self._int("Failed")

    @property
    def fatally_failed(self) -> int:
        return self._int("FatallyFailed")

    @property
    def succeeded(self) -> int:
        return self._int("Succeeded")

    @property
    def is_finalized_total(self) -> bool:
        return self._bool("FinalizedTotal")


class StartedCompression(ReceivedMessage):
    kind = MessageKind.STARTED_COMPRESSION
    __slots__ = ()

    @property
    def codec(self) -> int:
        return self._int("Codec")


class FinishedCompression(ReceivedMessage):
    kind = MessageKind.FINISHED_COMPRESSION
    __slots__ = ()

    @property
    def codec(self) -> int:
        return self._int("Codec")

    @property
    def original_size(self) -> int:
        return self._int("OriginalSize")

    @property
    def compressed_size(self) -> int:
        return self._int("CompressedSize")


class _FailureMessage(ReceivedMessage):
    __slots__ = ()

    @property
    def code(self) -> int:
        return self._int("Code")

    @property
    def code_description(self) -> Optional[str]:
        return self.get("CodeDescription")

    @property
    def is_fatal(self) -> bool:
        return self._bool("Fatal")

    @property
    def redirect_uri(self) -> Optional[str]:
        return self.get("RedirectURI")


class GetFailed(_FailureMessage):
    kind = MessageKind.GET_FAILED
    __slots__ = ()


class PutFailed(_FailureMessage):
    kind = MessageKind.PUT_FAILED
    __slots__ = ()

    @property
    def expected_uri(self) -> Optional[str]:
        return self.get("ExpectedURI")


class PutSuccessful(ReceivedMessage):
    kind = MessageKind.PUT_SUCCESSFUL
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")

    @property
    def start_time(self) -> int:
        return self._int("StartupTime")

    @property
    def completion_time(self) -> int:
        return self._int("CompletionTime")


class PutFetchable(ReceivedMessage):
    kind = MessageKind.PUT_FETCHABLE
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")


# =============================================================================
# Persistent requests
# =============================================================================

class PersistentGet(ReceivedMessage):
    kind = MessageKind.PERSISTENT_GET
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")

    @property
    def priority_class(self) -> int:
        return self._int("PriorityClass")


class PersistentPut(ReceivedMessage):
    kind = MessageKind.PERSISTENT_PUT
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")

    @property
    def priority_class(self) -> int:
        return self._int("PriorityClass")


class PersistentPutDir(ReceivedMessage):
    kind = MessageKind.PERSISTENT_PUT_DIR
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")


class EndListPersistentRequests(ReceivedMessage):
    kind = MessageKind.END_LIST_PERSISTENT_REQUESTS
    __slots__ = ()


class PersistentRequestRemoved(ReceivedMessage):
    kind = MessageKind.PERSISTENT_REQUEST_REMOVED
    __slots__ = ()


class PersistentRequestModified(ReceivedMessage):
    kind = MessageKind.PERSISTENT_REQUEST_MODIFIED
    __slots__ = ()

    @property
    def client_token(self) -> Optional[str]:
        return self.get("ClientToken")

    @property
    def priority_class(self) -> int:
        return self._int("PriorityClass")


class SubscribedUSK(ReceivedMessage):
    kind = MessageKind.SUBSCRIBED_USK
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")


class SubscribedUSKUpdate(ReceivedMessage):
    kind = MessageKind.SUBSCRIBED_USK_UPDATE
    __slots__ = ()

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")

    @property
    def edition(self) -> int:
        return self._int("Edition")


# =============================================================================
# Disk access test
# =============================================================================

class TestDDAReply(ReceivedMessage):
    kind = MessageKind.TEST_DDA_REPLY
    __slots__ = ()
    __test__ = False

    @property
    def directory(self) -> Optional[str]:
        return self.get("Directory")

    @property
    def read_filename(self) -> Optional[str]:
        return self.get("ReadFilename")

    @property
    def write_filename(self) -> Optional[str]:
        return self.get("WriteFilename")

    @property
    def content_to_write(self) -> Optional[str]:
        return self.get("ContentToWrite")


class TestDDAComplete(ReceivedMessage):
    kind = MessageKind.TEST_DDA_COMPLETE
    __slots__ = ()
    __test__ = False

    @property
    def directory(self) -> Optional[str]:
        return self.get("Directory")

    @property
    def is_read_directory_allowed(self) -> bool:
        return self._bool("ReadDirectoryAllowed")

    @property
    def is_write_directory_allowed(self) -> bool:
        return self._bool("WriteDirectoryAllowed")


# =============================================================================
# Peers and node
# =============================================================================

class Peer(ReceivedMessage):
    kind = MessageKind.PEER
    __slots__ = ()

    @property
    def identity(self) -> Optional[str]:
        return self.get("identity")

    @property
    def node_identifier(self) -> Optional[str]:
        return self.get("NodeIdentifier")

    @property
    def my_name(self) -> Optional[str]:
        return self.get("myName")

    @property
    def is_opennet(self) -> bool:
        return self._bool("opennet")

    @property
    def physical_udp(self) -> Optional[str]:
        return self.get("physical.udp")

    @property
    def version(self) -> Optional[str]:
        return self.get("version")

    @property
    def last_good_version(self) -> Optional[str]:
        return self.get("lastGoodVersion")

    @property
    def negotiation_types(self) -> List[int]:
        raw = self.get("auth.negTypes") or ""
        return [int(part) for part in raw.split(";") if part.strip().isdigit()]

    def metadata(self, key: Optional[str] = None):
        """All ``metadata.*`` fields, or a single one when ``key`` is given."""
        values = self._prefixed("metadata")
        return values if key is None else values.get(key)

    def volatile(self, key: Optional[str] = None):
        """All ``volatile.*`` fields, or a single one when ``key`` is given."""
        values = self._prefixed("volatile")
        return values if key is None else values.get(key)


class EndListPeers(ReceivedMessage):
    kind = MessageKind.END_LIST_PEERS
    __slots__ = ()


class PeerNote(ReceivedMessage):
    kind = MessageKind.PEER_NOTE
    __slots__ = ()

    @property
    def node_identifier(self) -> Optional[str]:
        return self.get("NodeIdentifier")

    @property
    def note_text(self) -> Optional[str]:
        """Note text as sent, base64 encoded."""
        return self.get("NoteText")

    @property
    def decoded_note_text(self) -> Optional[str]:
        text = self.note_text
        if text is None:
            return None
        try:
            return base64.b64decode(text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None

    @property
    def peer_note_type(self) -> int:
        return self._int("PeerNoteType")


class EndListPeerNotes(ReceivedMessage):
    kind = MessageKind.END_LIST_PEER_NOTES
    __slots__ = ()


class PeerRemoved(ReceivedMessage):
    kind = MessageKind.PEER_REMOVED
    __slots__ = ()

    @property
    def node_identifier(self) -> Optional[str]:
        return self.get("NodeIdentifier")


class UnknownNodeIdentifier(ReceivedMessage):
    kind = MessageKind.UNKNOWN_NODE_IDENTIFIER
    __slots__ = ()

    @property
    def node_identifier(self) -> Optional[str]:
        return self.get("NodeIdentifier")


class UnknownPeerNoteType(ReceivedMessage):
    kind = MessageKind.UNKNOWN_PEER_NOTE_TYPE
    __slots__ = ()

    @property
    def peer_note_type(self) -> int:
        return self._int("PeerNoteType")


class NodeData(ReceivedMessage):
    kind = MessageKind.NODE_DATA
    __slots__ = ()

    @property
    def identity(self) -> Optional[str]:
        return self.get("identity")

    @property
    def my_name(self) -> Optional[str]:
        return self.get("myName")

    @property
    def version(self) -> Optional[str]:
        return self.get("version")

    @property
    def last_good_version(self) -> Optional[str]:
        return self.get("lastGoodVersion")

    @property
    def is_opennet(self) -> bool:
        return self._bool("opennet")

    @property
    def ark_public_uri(self) -> Optional[str]:
        return self.get("ark.pubURI")

    @property
    def ark_private_uri(self) -> Optional[str]:
        return self.get("ark.privURI")

    @property
    def ark_number(self) -> int:
        return self._int("ark.number")

    def volatile(self, key: Optional[str] = None):
        values = self._prefixed("volatile")
        return values if key is None else values.get(key)


class ConfigData(ReceivedMessage):
    """
    Node configuration.

    Each option appears under several prefixes (``current.``, ``default.``,
    ``sortOrder.`` and so on) depending on what the request asked for.
    """
    kind = MessageKind.CONFIG_DATA
    __slots__ = ()

    def current(self, option: str) -> Optional[str]:
        return self.get("current." + option)

    def default(self, option: str) -> Optional[str]:
        return self.get("default." + option)

    def sort_order(self, option: str) -> int:
        return self._int("sortOrder." + option)

    def expert_flag(self, option: str) -> bool:
        return self._bool("expertFlag." + option)

    def force_write_flag(self, option: str) -> bool:
        return self._bool("forceWriteFlag." + option)

    def short_description(self, option: str) -> Optional[str]:
        return self.get("shortDescription." + option)

    def long_description(self, option: str) -> Optional[str]:
        return self.get("longDescription." + option)

    def data_type(self, option: str) -> Optional[str]:
        return self.get("dataType." + option)

    def current_values(self) -> Dict[str, str]:
        return self._prefixed("current")


# =============================================================================
# Plugins and feeds
# =============================================================================

class PluginInfo(ReceivedMessage):
    kind = MessageKind.PLUGIN_INFO
    __slots__ = ()

    @property
    def plugin_name(self) -> Optional[str]:
        return self.get("PluginName")

    @property
    def original_uri(self) -> Optional[str]:
        return self.get("OriginUri")

    @property
    def is_talkable(self) -> bool:
        return self._bool("IsTalkable")

    @property
    def version(self) -> Optional[str]:
        return self.get("Version")

    @property
    def long_version(self) -> Optional[str]:
        return self.get("LongVersion")

    @property
    def is_started(self) -> bool:
        return self._bool("Started")


class PluginRemoved(ReceivedMessage):
    kind = MessageKind.PLUGIN_REMOVED
    __slots__ = ()

    @property
    def plugin_name(self) -> Optional[str]:
        return self.get("PluginName")


class FCPPluginReply(ReceivedMessage):
    """Reply from a plugin; may carry a payload like AllData."""
    kind = MessageKind.FCP_PLUGIN_REPLY
    __slots__ = ()

    @property
    def plugin_name(self) -> Optional[str]:
        return self.get("PluginName")

    @property
    def data_length(self) -> int:
        return self._int("DataLength")

    @property
    def reply(self) -> Dict[str, str]:
        return self._prefixed("Replies")

    @property
    def payload(self) -> Optional[BinaryIO]:
        return self.message.payload


class SentFeed(ReceivedMessage):
    kind = MessageKind.SENT_FEED
    __slots__ = ()

    @property
    def node_status(self) -> int:
        return self._int("NodeStatus")


class ReceivedBookmarkFeed(ReceivedMessage):
    kind = MessageKind.RECEIVED_BOOKMARK_FEED
    __slots__ = ()

    @property
    def bookmark_name(self) -> Optional[str]:
        return self.get("Name")

    @property
    def uri(self) -> Optional[str]:
        return self.get("URI")


# =============================================================================
# Classification
# =============================================================================

_VIEWS: Dict[str, Type[ReceivedMessage]] = {
    view.kind.value: view
    for view in (
        NodeHello, CloseConnectionDuplicateClientName, SSKKeypair, Peer,
        EndListPeers, PeerNote, EndListPeerNotes, PeerRemoved, NodeData,
        TestDDAReply, TestDDAComplete, PersistentGet, PersistentPut,
        EndListPersistentRequests, URIGenerated, DataFound, AllData,
        SimpleProgress, StartedCompression, FinishedCompression,
        UnknownPeerNoteType, UnknownNodeIdentifier, ConfigData, GetFailed,
        PutFailed, IdentifierCollision, PersistentPutDir,
        PersistentRequestRemoved, SubscribedUSKUpdate, SubscribedUSK,
        PluginInfo, PluginRemoved, FCPPluginReply, PersistentRequestModified,
        PutSuccessful, PutFetchable, SentFeed, ReceivedBookmarkFeed,
        ProtocolError,
    )
}


def classify(message: Message) -> Tuple[MessageKind, object]:
    """
    Classify a message by name.

    Returns:
        ``(kind, view)``; for unrecognized names the view is the raw message
    """
    view = _VIEWS.get(message.name)
    if view is None:
        return MessageKind.UNKNOWN, message
    return view.kind, view(message)
