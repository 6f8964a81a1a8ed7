"""
One dialog per client operation.

Each dialog knows which replies complete its request and what result they
produce. Refusals (ProtocolError for the request's identifier) end an
operation with ``refusal_result``; file-based transfers first try the disk
access handshake from :mod:`fcp.dda`.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Callable, List, Optional, Tuple

from .commands import UploadFrom
from .config import COPY_CHUNK_SIZE, SPOOL_MAX_SIZE
from .connection import FcpConnection
from .dda import DirectDiskAccessDialog, challenge_directory
from .dialog import FcpDialog
from .exceptions import NodeRefusedError
from .messages import (
    AllData,
    ConfigData,
    DataFound,
    EndListPeerNotes,
    EndListPeers,
    GetFailed,
    IdentifierCollision,
    NodeData,
    NodeHello,
    Peer,
    PeerNote,
    PeerRemoved,
    PluginInfo,
    PluginRemoved,
    ProtocolError,
    PutFailed,
    PutSuccessful,
    SSKKeypair,
    UnknownNodeIdentifier,
    URIGenerated,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class KeyPair:
    """SSK key pair; the public key is for fetching, the private one for inserting."""
    public_key: str
    private_key: str


@dataclass(frozen=True)
class Key:
    uri: str


@dataclass
class Data:
    """
    Fetched content.

    ``stream`` holds the bytes for direct fetches; for fetches to disk it is
    None and ``filename`` names the file the node wrote.
    """
    mime_type: Optional[str]
    size: int
    stream: Optional[BinaryIO] = None
    filename: Optional[str] = None

    def read(self) -> bytes:
        if self.stream is None:
            with open(self.filename, "rb") as f:
                return f.read()
        return self.stream.read()

    def close(self) -> None:
        if self.stream is not None:
            self.stream.close()

    def __enter__(self) -> "Data":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class OperationDialog(DirectDiskAccessDialog):
    """Request dialog whose refusal resolves with ``refusal_result``."""

    refusal_result = None

    def consume_refusal(self, protocol_error: ProtocolError) -> None:
        logger.info(
            "Node refused %s (code %d: %s)",
            self.message.name, protocol_error.code, protocol_error.code_description or "no description",
        )
        self.refusal = protocol_error
        self.finish(self.refusal_result)

    def consume_identifier_collision(self, identifier_collision: IdentifierCollision) -> None:
        logger.warning("Identifier %s of %s already in use on the node", self.identifier, self.message.name)
        self.finish(self.refusal_result)


# =============================================================================
# Connection setup
# =============================================================================

class ClientHelloDialog(FcpDialog):
    """Greets the node; resolves with its NodeHello."""

    def __init__(self, connection: FcpConnection):
        super().__init__(connection)
        self.node_hello: Optional[NodeHello] = None

    def consume_node_hello(self, node_hello: NodeHello) -> None:
        self.node_hello = node_hello

    def consume_protocol_error(self, protocol_error: ProtocolError) -> None:
        raise NodeRefusedError(
            protocol_error.code, protocol_error.code_description or "", protocol_error.identifier
        )

    def is_finished(self) -> bool:
        return self.node_hello is not None

    def get_result(self) -> NodeHello:
        return self.node_hello


# =============================================================================
# Keys and transfers
# =============================================================================

class GenerateKeypairDialog(OperationDialog):

    def consume_ssk_keypair(self, ssk_keypair: SSKKeypair) -> None:
        self.finish(KeyPair(public_key=ssk_keypair.request_uri, private_key=ssk_keypair.insert_uri))


class ClientGetDialog(OperationDialog):
    """
    Fetches a key.

    Direct fetches copy the AllData payload off the socket into a spooled
    temporary file, kept in memory up to ``spool_max_size`` bytes. Fetches
    to disk complete on DataFound once the node wrote the file.
    """

    def __init__(
        self,
        connection: FcpConnection,
        filename: Optional[str] = None,
        spool_max_size: int = SPOOL_MAX_SIZE,
        owns_connection: bool = False,
    ):
        super().__init__(connection, owns_connection)
        self.filename = filename
        self.spool_max_size = spool_max_size

    def disk_access(self) -> Optional[Tuple[str, bool, bool]]:
        if self.filename is None:
            return None
        return challenge_directory(self.filename), False, True

    def consume_all_data(self, all_data: AllData) -> None:
        spool = tempfile.SpooledTemporaryFile(max_size=self.spool_max_size)
        try:
            if all_data.payload is not None:
                shutil.copyfileobj(all_data.payload, spool, COPY_CHUNK_SIZE)
            spool.seek(0)
        except Exception:
            spool.close()
            raise
        self.finish(Data(all_data.content_type, all_data.data_length, spool))

    def consume_data_found(self, data_found: DataFound) -> None:
        if self.filename is not None:
            self.finish(Data(data_found.mime_type, data_found.data_length, filename=self.filename))

    def consume_get_failed(self, get_failed: GetFailed) -> None:
        logger.info("Fetching %s failed (code %d)", self.message.get("URI"), get_failed.code)
        self.finish(None)


class ClientPutDialog(OperationDialog):
    """Inserts data; ``on_key_generated`` sees the final key as soon as it is known."""

    def __init__(
        self,
        connection: FcpConnection,
        on_key_generated: Optional[Callable[[str], None]] = None,
        owns_connection: bool = False,
    ):
        super().__init__(connection, owns_connection)
        self.on_key_generated = on_key_generated

    def disk_access(self) -> Optional[Tuple[str, bool, bool]]:
        if self.message.get("UploadFrom") != UploadFrom.DISK.value:
            return None
        return challenge_directory(self.message.get("Filename")), True, False

    def consume_uri_generated(self, uri_generated: URIGenerated) -> None:
        if self.on_key_generated is None:
            return
        try:
            self.on_key_generated(uri_generated.uri)
        except Exception:
            logger.exception("Key callback failed for %s", uri_generated.uri)

    def consume_put_successful(self, put_successful: PutSuccessful) -> None:
        self.finish(Key(put_successful.uri))

    def consume_put_failed(self, put_failed: PutFailed) -> None:
        logger.info("Inserting %s failed (code %d)", self.message.get("URI"), put_failed.code)
        self.finish(None)


# =============================================================================
# Peers
# =============================================================================

class ListPeersDialog(OperationDialog):

    def __init__(self, connection: FcpConnection, owns_connection: bool = False):
        super().__init__(connection, owns_connection)
        self.peers: List[Peer] = []

    def consume_peer(self, peer: Peer) -> None:
        self.peers.append(peer)

    def consume_end_list_peers(self, end_list_peers: EndListPeers) -> None:
        self.finish(list(self.peers))


class PeerDialog(OperationDialog):
    """ListPeer, AddPeer and ModifyPeer all answer with the peer's record."""

    def consume_peer(self, peer: Peer) -> None:
        self.finish(peer)

    def consume_unknown_node_identifier(self, unknown_node_identifier: UnknownNodeIdentifier) -> None:
        self.finish(None)


class RemovePeerDialog(OperationDialog):
    refusal_result = False

    def consume_peer_removed(self, peer_removed: PeerRemoved) -> None:
        self.finish(True)

    def consume_unknown_node_identifier(self, unknown_node_identifier: UnknownNodeIdentifier) -> None:
        self.finish(False)


class ListPeerNotesDialog(OperationDialog):
    """Resolves with the last note listed, or None for an unknown peer."""

    def __init__(self, connection: FcpConnection, owns_connection: bool = False):
        super().__init__(connection, owns_connection)
        self.peer_note: Optional[PeerNote] = None

    def consume_peer_note(self, peer_note: PeerNote) -> None:
        self.peer_note = peer_note

    def consume_end_list_peer_notes(self, end_list_peer_notes: EndListPeerNotes) -> None:
        self.finish(self.peer_note)

    def consume_unknown_node_identifier(self, unknown_node_identifier: UnknownNodeIdentifier) -> None:
        self.finish(None)


class ModifyPeerNoteDialog(OperationDialog):
    refusal_result = False

    def consume_peer_note(self, peer_note: PeerNote) -> None:
        self.finish(True)

    def consume_unknown_node_identifier(self, unknown_node_identifier: UnknownNodeIdentifier) -> None:
        self.finish(False)


# =============================================================================
# Node
# =============================================================================

class GetNodeDialog(OperationDialog):

    def consume_node_data(self, node_data: NodeData) -> None:
        self.finish(node_data)


class ConfigDataDialog(OperationDialog):
    """GetConfig and ModifyConfig both answer with ConfigData."""

    def consume_config_data(self, config_data: ConfigData) -> None:
        self.finish(config_data)


# =============================================================================
# Plugins
# =============================================================================

class PluginInfoDialog(OperationDialog):
    """LoadPlugin, ReloadPlugin and GetPluginInfo answer with PluginInfo."""

    def consume_plugin_info(self, plugin_info: PluginInfo) -> None:
        self.finish(plugin_info)


class RemovePluginDialog(OperationDialog):
    refusal_result = False

    def consume_plugin_removed(self, plugin_removed: PluginRemoved) -> None:
        self.finish(True)
