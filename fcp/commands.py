"""
Builders for client-to-node messages.

Each function returns a ready-to-send :class:`~fcp.message.Message`. Options
left at ``None`` are omitted from the message so the node applies its own
defaults. Missing or contradictory options raise immediately.
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, List, Mapping, Optional, Union

from .config import EXPECTED_VERSION, PEER_NOTE_TYPE_PRIVATE_DARKNET_COMMENT
from .exceptions import MissingOptionError, ValidationError
from .message import Message


# ---------------- Enumerations ----------------

class Priority(Enum):
    """Request priority classes, highest first."""
    MAXIMUM = 0
    INTERACTIVE = 1
    SEMI_INTERACTIVE = 2
    UPDATABLE = 3
    BULK = 4
    PREFETCH = 5
    MINIMUM = 6


class ReturnType(Enum):
    DIRECT = "direct"
    DISK = "disk"
    NONE = "none"


class UploadFrom(Enum):
    DIRECT = "direct"
    DISK = "disk"
    REDIRECT = "redirect"


class UrlType(Enum):
    OFFICIAL = "official"
    FILE = "file"
    URL = "url"
    FREENET = "freenet"


class OfficialSource(Enum):
    FREENET = "freenet"
    HTTPS = "https"


def new_identifier() -> str:
    """Random identifier for a new request."""
    return uuid.uuid4().hex


def peer_address(host: str, port: int) -> str:
    """NodeIdentifier addressing a peer by its address."""
    return f"{host}:{port}"


# ---------------- Node references ----------------

@dataclass
class NodeRef:
    """Reference to a darknet node, as exchanged between node operators."""

    identity: str
    name: Optional[str] = None
    ark_public_uri: Optional[str] = None
    ark_number: Optional[int] = None
    dsa_group_base: Optional[str] = None
    dsa_group_prime: Optional[str] = None
    dsa_group_subprime: Optional[str] = None
    dsa_public_key: Optional[str] = None
    physical_udp: Optional[str] = None
    negotiation_types: List[int] = field(default_factory=list)
    signature: Optional[str] = None
    opennet: Optional[bool] = None
    version: Optional[str] = None
    last_good_version: Optional[str] = None

    def to_fields(self) -> dict:
        return {
            "identity": self.identity,
            "myName": self.name,
            "opennet": self.opennet,
            "version": self.version,
            "lastGoodVersion": self.last_good_version,
            "ark.pubURI": self.ark_public_uri,
            "ark.number": self.ark_number,
            "dsaGroup.g": self.dsa_group_base,
            "dsaGroup.p": self.dsa_group_prime,
            "dsaGroup.q": self.dsa_group_subprime,
            "dsaPubKey.y": self.dsa_public_key,
            "physical.udp": self.physical_udp,
            "auth.negTypes": ";".join(str(t) for t in self.negotiation_types) or None,
            "sig": self.signature,
        }


def _flag(value: bool) -> Optional[bool]:
    """True or omitted."""
    return True if value else None


# ---------------- Connection ----------------

def client_hello(name: str, expected_version: str = EXPECTED_VERSION) -> Message:
    if not name:
        raise MissingOptionError("ClientHello", "Name")
    return Message("ClientHello", {"Name": name, "ExpectedVersion": expected_version})


# ---------------- Keys and transfers ----------------

def generate_ssk(identifier: str) -> Message:
    return Message("GenerateSSK", {"Identifier": identifier})


def client_get(
    identifier: str,
    uri: str,
    filename: Optional[str] = None,
    ignore_data_store: bool = False,
    data_store_only: bool = False,
    max_size: Optional[int] = None,
    priority: Optional[Priority] = None,
    real_time: bool = False,
    global_queue: bool = False,
) -> Message:
    """
    Fetch ``uri``; the data is returned in an AllData message unless
    ``filename`` is given, in which case the node writes it to disk.
    """
    if not uri:
        raise MissingOptionError("ClientGet", "URI")
    return Message("ClientGet", {
        "Identifier": identifier,
        "URI": uri,
        "ReturnType": (ReturnType.DISK if filename else ReturnType.DIRECT).value,
        "Filename": filename,
        "IgnoreDS": _flag(ignore_data_store),
        "DSonly": _flag(data_store_only),
        "MaxSize": max_size,
        "PriorityClass": priority.value if priority is not None else None,
        "RealTimeFlag": _flag(real_time),
        "Global": _flag(global_queue),
    })


def client_put(
    identifier: str,
    uri: str,
    data: Optional[Union[bytes, BinaryIO]] = None,
    length: Optional[int] = None,
    filename: Optional[str] = None,
    redirect_to: Optional[str] = None,
    target_filename: Optional[str] = None,
) -> Message:
    """
    Insert under ``uri`` from exactly one source.

    Args:
        identifier: Request identifier
        uri: Target key
        data: Bytes or a binary file object sent inline
        length: Number of bytes to send from ``data``; required for file objects
        filename: File the node reads itself (needs disk access)
        redirect_to: Key the inserted redirect points at
        target_filename: Name the data is inserted under

    Raises:
        MissingOptionError: If no URI or no source is given, or a file
            object comes without a length
        ValidationError: If more than one source is given
    """
    if not uri:
        raise MissingOptionError("ClientPut", "URI")
    sources = [s for s in (data, filename, redirect_to) if s is not None]
    if not sources:
        raise MissingOptionError("ClientPut", "data, filename or redirect target")
    if len(sources) > 1:
        raise ValidationError("ClientPut takes exactly one of data, filename or redirect target")

    fields = {
        "Identifier": identifier,
        "URI": uri,
        "TargetFilename": target_filename,
    }
    if redirect_to is not None:
        fields["UploadFrom"] = UploadFrom.REDIRECT.value
        fields["TargetURI"] = redirect_to
        return Message("ClientPut", fields)
    if filename is not None:
        fields["UploadFrom"] = UploadFrom.DISK.value
        fields["Filename"] = filename
        return Message("ClientPut", fields)

    if isinstance(data, (bytes, bytearray)):
        if length is None:
            length = len(data)
        elif length != len(data):
            raise ValidationError(f"ClientPut length {length} does not match {len(data)} data bytes")
    elif length is None:
        raise MissingOptionError("ClientPut", "DataLength")
    fields["UploadFrom"] = UploadFrom.DIRECT.value
    fields["DataLength"] = length
    return Message("ClientPut", fields, data)


# ---------------- Disk access test ----------------

def dda_test_request(directory: str, want_read: bool, want_write: bool) -> Message:
    return Message("TestDDARequest", {
        "Directory": directory,
        "WantReadDirectory": want_read,
        "WantWriteDirectory": want_write,
    })


def dda_test_response(directory: str, read_content: Optional[str] = None) -> Message:
    return Message("TestDDAResponse", {
        "Directory": directory,
        "ReadContent": read_content,
    })


# ---------------- Peers ----------------

def list_peers(identifier: str, with_metadata: bool = False, with_volatile: bool = False) -> Message:
    return Message("ListPeers", {
        "Identifier": identifier,
        "WithVolatile": with_volatile,
        "WithMetadata": with_metadata,
    })


def list_peer(identifier: str, node_identifier: str) -> Message:
    return Message("ListPeer", {"Identifier": identifier, "NodeIdentifier": node_identifier})


def add_peer(
    identifier: str,
    file: Optional[str] = None,
    url: Optional[str] = None,
    node_ref: Optional[NodeRef] = None,
) -> Message:
    """Add a peer from a noderef file on the node, a URL, or an inline noderef."""
    sources = [s for s in (file, url, node_ref) if s is not None]
    if not sources:
        raise MissingOptionError("AddPeer", "file, URL or node reference")
    if len(sources) > 1:
        raise ValidationError("AddPeer takes exactly one of file, URL or node reference")

    fields = {"Identifier": identifier}
    if file is not None:
        fields["File"] = file
    elif url is not None:
        fields["URL"] = url
    else:
        fields.update(node_ref.to_fields())
    return Message("AddPeer", fields)


def modify_peer(
    identifier: str,
    node_identifier: str,
    enabled: Optional[bool] = None,
    allow_local_addresses: Optional[bool] = None,
    burst_only: Optional[bool] = None,
    listen_only: Optional[bool] = None,
    ignore_source: Optional[bool] = None,
) -> Message:
    """Change peer settings; only settings that are not ``None`` are sent."""
    return Message("ModifyPeer", {
        "Identifier": identifier,
        "NodeIdentifier": node_identifier,
        "IsDisabled": (not enabled) if enabled is not None else None,
        "AllowLocalAddresses": allow_local_addresses,
        "IsBurstOnly": burst_only,
        "IsListenOnly": listen_only,
        "IgnoreSourcePort": ignore_source,
    })


def remove_peer(identifier: str, node_identifier: str) -> Message:
    return Message("RemovePeer", {"Identifier": identifier, "NodeIdentifier": node_identifier})


def list_peer_notes(identifier: str, node_identifier: str) -> Message:
    return Message("ListPeerNotes", {"Identifier": identifier, "NodeIdentifier": node_identifier})


def modify_peer_note(identifier: str, node_identifier: str, darknet_comment: str) -> Message:
    """Set the private darknet comment of a peer; the text travels base64 encoded."""
    if darknet_comment is None:
        raise MissingOptionError("ModifyPeerNote", "NoteText")
    return Message("ModifyPeerNote", {
        "Identifier": identifier,
        "NodeIdentifier": node_identifier,
        "PeerNoteType": PEER_NOTE_TYPE_PRIVATE_DARKNET_COMMENT,
        "NoteText": base64.b64encode(darknet_comment.encode("utf-8")).decode("ascii"),
    })


# ---------------- Node ----------------

def get_node(
    identifier: str,
    opennet_ref: bool = False,
    with_private: bool = False,
    with_volatile: bool = False,
) -> Message:
    return Message("GetNode", {
        "Identifier": identifier,
        "GiveOpennetRef": opennet_ref,
        "WithPrivate": with_private,
        "WithVolatile": with_volatile,
    })


def get_config(
    identifier: str,
    with_current: bool = False,
    with_defaults: bool = False,
    with_sort_order: bool = False,
    with_expert_flag: bool = False,
    with_force_write_flag: bool = False,
    with_short_description: bool = False,
    with_long_description: bool = False,
    with_data_types: bool = False,
) -> Message:
    return Message("GetConfig", {
        "Identifier": identifier,
        "WithCurrent": _flag(with_current),
        "WithDefaults": _flag(with_defaults),
        "WithSortOrder": _flag(with_sort_order),
        "WithExpertFlag": _flag(with_expert_flag),
        "WithForceWriteFlag": _flag(with_force_write_flag),
        "WithShortDescription": _flag(with_short_description),
        "WithLongDescription": _flag(with_long_description),
        "WithDataTypes": _flag(with_data_types),
    })


def modify_config(identifier: str, settings: Mapping[str, object]) -> Message:
    """Set configuration options, e.g. ``{"node.name": "alice"}``."""
    if not settings:
        raise MissingOptionError("ModifyConfig", "at least one option")
    if "Identifier" in settings:
        raise ValidationError("ModifyConfig option may not be named Identifier")
    fields = {"Identifier": identifier}
    fields.update(settings)
    return Message("ModifyConfig", fields)


# ---------------- Plugins ----------------

def load_plugin(
    identifier: str,
    plugin_url: str,
    url_type: UrlType,
    official_source: Optional[OfficialSource] = None,
    store: bool = False,
) -> Message:
    if not plugin_url:
        raise MissingOptionError("LoadPlugin", "PluginURL")
    if url_type is UrlType.OFFICIAL and official_source is None:
        official_source = OfficialSource.FREENET
    return Message("LoadPlugin", {
        "Identifier": identifier,
        "PluginURL": plugin_url,
        "URLType": url_type.value,
        "OfficialSource": official_source.value if url_type is UrlType.OFFICIAL else None,
        "Store": _flag(store),
    })


def reload_plugin(
    identifier: str,
    plugin_name: str,
    max_wait_time: Optional[int] = None,
    purge: bool = False,
    store: bool = False,
) -> Message:
    if not plugin_name:
        raise MissingOptionError("ReloadPlugin", "PluginName")
    return Message("ReloadPlugin", {
        "Identifier": identifier,
        "PluginName": plugin_name,
        "MaxWaitTime": max_wait_time,
        "Purge": _flag(purge),
        "Store": _flag(store),
    })


def remove_plugin(
    identifier: str,
    plugin_name: str,
    max_wait_time: Optional[int] = None,
    purge: bool = False,
) -> Message:
    if not plugin_name:
        raise MissingOptionError("RemovePlugin", "PluginName")
    return Message("RemovePlugin", {
        "Identifier": identifier,
        "PluginName": plugin_name,
        "MaxWaitTime": max_wait_time,
        "Purge": _flag(purge),
    })


def get_plugin_info(identifier: str, plugin_name: str, detailed: bool = False) -> Message:
    if not plugin_name:
        raise MissingOptionError("GetPluginInfo", "PluginName")
    return Message("GetPluginInfo", {
        "Identifier": identifier,
        "PluginName": plugin_name,
        "Detailed": _flag(detailed),
    })
