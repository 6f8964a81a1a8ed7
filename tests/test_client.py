"""
End-to-end tests for fcp.client against a fake node.
"""

import io
import os

import pytest

from fcp.client import FcpClient
from fcp.commands import NodeRef, OfficialSource, Priority, UrlType
from fcp.dda import DirectDiskAccessResult
from fcp.exceptions import (
    ConnectionClosedError,
    DuplicateClientNameError,
    FcpConnectionError,
    NodeRefusedError,
)

from conftest import extract_identifier, fcp_message

INSERT_URI = "SSK@RVCHbJdkkyTCeNN9AYukEg76eyqmiosSaNKgE3U9zUw,7SHH53gletBVb9JD7nBsyClbLQsBubDPEIcwg908r7Y,AQECAAE/"
REQUEST_URI = "SSK@wtbgd2loNcJCXvtQVOftl2tuWBomDQHfqS6ytpPRhfw,7SHH53gletBVb9JD7nBsyClbLQsBubDPEIcwg908r7Y,AQACAAE/"
PLUGIN_CLASS = "foo.plugin.Plugin"
TIMEOUT = 5


@pytest.fixture
def client(fake_node):
    """Client talking to the fake node."""
    fcp_client = FcpClient(fake_node.host, fake_node.port, client_name="Test", connect_timeout=TIMEOUT)
    yield fcp_client
    fcp_client.close()


def _request(fake_node, terminator="EndMessage"):
    """Greet the client and return the lines and identifier of its request."""
    fake_node.connect_node()
    lines = fake_node.collect_until(terminator)
    return lines, extract_identifier(lines)


def _reply_keypair(fake_node, identifier):
    fake_node.write_lines(
        "SSKKeypair",
        "InsertURI=" + INSERT_URI,
        "RequestURI=" + REQUEST_URI,
        "Identifier=" + identifier,
        "EndMessage",
    )


class TestConnectionHandling:
    """Tests for the connection supplier."""

    def test_hello_sent_first(self, client, fake_node):
        future = client.generate_keypair()
        hello = fake_node.connect_node()
        assert fcp_message(hello, "ClientHello", "Name=Test", "ExpectedVersion=2.0")
        lines = fake_node.collect_until("EndMessage")
        _reply_keypair(fake_node, extract_identifier(lines))
        future.result(timeout=TIMEOUT)
        assert client.node_hello.node == "Fred"

    def test_duplicate_client_name(self, client, fake_node):
        future = client.generate_keypair()
        fake_node.accept()
        fake_node.collect_until("EndMessage")
        fake_node.write_lines("CloseConnectionDuplicateClientName", "EndMessage")
        with pytest.raises(DuplicateClientNameError):
            future.result(timeout=TIMEOUT)

    def test_hello_refused(self, client, fake_node):
        future = client.generate_keypair()
        fake_node.accept()
        fake_node.collect_until("EndMessage")
        fake_node.write_lines("ProtocolError", "Code=1", "CodeDescription=ClientHello must be first", "EndMessage")
        with pytest.raises(NodeRefusedError):
            future.result(timeout=TIMEOUT)

    def test_closed_during_hello(self, client, fake_node):
        future = client.generate_keypair()
        fake_node.accept()
        fake_node.collect_until("EndMessage")
        fake_node.close_client()
        with pytest.raises(FcpConnectionError):
            future.result(timeout=TIMEOUT)

    def test_unreachable_node(self, fake_node):
        port = fake_node.port
        fake_node.close()
        with FcpClient("127.0.0.1", port, client_name="Test", connect_timeout=1) as fcp_client:
            with pytest.raises(FcpConnectionError):
                fcp_client.generate_keypair().result(timeout=TIMEOUT)

    def test_reuses_connection(self, client, fake_node):
        future = client.generate_keypair()
        lines, identifier = _request(fake_node)
        _reply_keypair(fake_node, identifier)
        future.result(timeout=TIMEOUT)

        future = client.generate_keypair()
        lines = fake_node.collect_until("EndMessage")
        assert lines[0] == "GenerateSSK"
        _reply_keypair(fake_node, extract_identifier(lines))
        future.result(timeout=TIMEOUT)

    def test_reconnects_after_close(self, client, fake_node):
        future = client.generate_keypair()
        _request(fake_node)
        fake_node.close_client()
        with pytest.raises(ConnectionClosedError):
            future.result(timeout=TIMEOUT)

        future = client.generate_keypair()
        lines, identifier = _request(fake_node)
        _reply_keypair(fake_node, identifier)
        assert future.result(timeout=TIMEOUT).public_key == REQUEST_URI


class TestKeysAndTransfers:
    """Tests for key generation, fetching and inserting."""

    def test_generate_keypair(self, client, fake_node):
        future = client.generate_keypair()
        lines, identifier = _request(fake_node)
        assert lines[0] == "GenerateSSK"
        _reply_keypair(fake_node, identifier)
        key_pair = future.result(timeout=TIMEOUT)
        assert key_pair.public_key == REQUEST_URI
        assert key_pair.private_key == INSERT_URI

    def test_client_get_downloads_data(self, client, fake_node):
        future = client.client_get("KSK@foo.txt")
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ClientGet", "ReturnType=direct", "URI=KSK@foo.txt")
        fake_node.write_lines(
            "AllData",
            "Identifier=" + identifier,
            "DataLength=6",
            "StartupTime=1435610539000",
            "CompletionTime=1435610540000",
            "Metadata.ContentType=text/plain;charset=utf-8",
            "Data",
            "Hello",
        )
        with future.result(timeout=TIMEOUT) as data:
            assert data.mime_type == "text/plain;charset=utf-8"
            assert data.size == 6
            assert data.read() == b"Hello\n"

    def test_client_get_picks_own_identifier(self, client, fake_node):
        """Test a payload for another request is skipped."""
        future = client.client_get("KSK@foo.txt")
        lines, identifier = _request(fake_node)
        fake_node.write_lines(
            "AllData",
            "Identifier=not-test",
            "DataLength=12",
            "Metadata.ContentType=text/plain;charset=latin-9",
            "Data",
            "Hello World",
        )
        fake_node.write_lines(
            "AllData",
            "Identifier=" + identifier,
            "DataLength=6",
            "Metadata.ContentType=text/plain;charset=utf-8",
            "Data",
            "Hello",
        )
        data = future.result(timeout=TIMEOUT)
        assert data.mime_type == "text/plain;charset=utf-8"
        assert data.read() == b"Hello\n"

    def test_client_get_failed(self, client, fake_node):
        future = client.client_get("KSK@foo.txt")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("GetFailed", "Identifier=not-test", "Code=3", "EndMessage")
        fake_node.write_lines("GetFailed", "Identifier=" + identifier, "Code=3", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_client_get_connection_closed(self, client, fake_node):
        future = client.client_get("KSK@foo.txt")
        _request(fake_node)
        fake_node.close_client()
        with pytest.raises(ConnectionClosedError):
            future.result(timeout=TIMEOUT)

    def test_client_get_options(self, client, fake_node):
        client.client_get("KSK@foo.txt", ignore_data_store=True, priority=Priority.BULK, global_queue=True)
        lines, _ = _request(fake_node)
        assert fcp_message(lines, "ClientGet", "URI=KSK@foo.txt", "IgnoreDS=true", "PriorityClass=4", "Global=true")

    def test_client_put_direct(self, client, fake_node):
        future = client.client_put("KSK@foo.txt", data=io.BytesIO(b"Hello\n"), length=6)
        lines, identifier = _request(fake_node, terminator="Hello")
        assert fcp_message(lines, "ClientPut", "UploadFrom=direct", "DataLength=6", "URI=KSK@foo.txt")
        fake_node.write_lines("PutFailed", "Identifier=not-the-right-one", "EndMessage")
        fake_node.write_lines("PutSuccessful", "URI=KSK@foo.txt", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT).uri == "KSK@foo.txt"

    def test_client_put_failed(self, client, fake_node):
        future = client.client_put("KSK@foo.txt", data=b"Hello\n")
        lines, identifier = _request(fake_node, terminator="Hello")
        fake_node.write_lines("PutSuccessful", "Identifier=not-the-right-one", "URI=KSK@foo.txt", "EndMessage")
        fake_node.write_lines("PutFailed", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_client_put_renamed_and_redirect(self, client, fake_node):
        client.client_put("KSK@foo.txt", data=b"Hello\n", target_filename="otherName.txt")
        lines, _ = _request(fake_node, terminator="Hello")
        assert fcp_message(lines, "ClientPut", "TargetFilename=otherName.txt", "UploadFrom=direct", "DataLength=6")

        client.client_put("KSK@foo.txt", redirect_to="KSK@bar.txt")
        lines = fake_node.collect_until("EndMessage")
        assert fcp_message(lines, "ClientPut", "UploadFrom=redirect", "URI=KSK@foo.txt", "TargetURI=KSK@bar.txt")

    def test_client_put_key_notifications(self, client, fake_node):
        generated = []
        future = client.client_put("KSK@foo.txt", data=b"Hello\n", on_key_generated=generated.append)
        lines, identifier = _request(fake_node, terminator="Hello")
        fake_node.write_lines("URIGenerated", "Identifier=" + identifier, "URI=KSK@foo.txt", "EndMessage")
        fake_node.write_lines("PutSuccessful", "URI=KSK@foo.txt", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT).uri == "KSK@foo.txt"
        assert generated == ["KSK@foo.txt"]

    def test_client_put_from_file_completes_dda(self, client, fake_node, temp_dir):
        """Test a refused disk upload proves read access and is resent."""
        challenge = os.path.join(temp_dir, "test-dda-1.dat")
        with open(challenge, "w") as f:
            f.write("test-content")
        upload = os.path.join(temp_dir, "test.dat")

        future = client.client_put("KSK@foo.txt", filename=upload)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ClientPut", "UploadFrom=disk", "Filename=" + upload)

        fake_node.write_lines("ProtocolError", "Identifier=" + identifier, "Code=25", "EndMessage")
        lines = fake_node.collect_until("EndMessage")
        assert fcp_message(
            lines, "TestDDARequest",
            "Directory=" + temp_dir, "WantReadDirectory=true", "WantWriteDirectory=false",
        )

        fake_node.write_lines("TestDDAReply", "Directory=/some-other-directory", "ReadFilename=" + challenge, "EndMessage")
        fake_node.write_lines("TestDDAReply", "Directory=" + temp_dir, "ReadFilename=" + challenge, "EndMessage")
        lines = fake_node.collect_until("EndMessage")
        assert fcp_message(lines, "TestDDAResponse", "Directory=" + temp_dir, "ReadContent=test-content")

        fake_node.write_lines("TestDDAComplete", "Directory=" + temp_dir, "ReadDirectoryAllowed=true", "EndMessage")
        lines = fake_node.collect_until("EndMessage")
        assert fcp_message(lines, "ClientPut", "UploadFrom=disk", "URI=KSK@foo.txt", "Filename=" + upload)

        fake_node.write_lines("PutSuccessful", "Identifier=" + identifier, "URI=KSK@foo.txt", "EndMessage")
        assert future.result(timeout=TIMEOUT).uri == "KSK@foo.txt"

    def test_client_put_unreadable_challenge(self, client, fake_node, temp_dir):
        future = client.client_put("KSK@foo.txt", filename=os.path.join(temp_dir, "test.dat"))
        lines, identifier = _request(fake_node)
        fake_node.write_lines("ProtocolError", "Identifier=" + identifier, "Code=25", "EndMessage")
        fake_node.collect_until("EndMessage")
        fake_node.write_lines(
            "TestDDAReply", "Directory=" + temp_dir,
            "ReadFilename=" + os.path.join(temp_dir, "missing.foo"), "EndMessage",
        )
        lines = fake_node.collect_until("EndMessage")
        assert fcp_message(lines, "TestDDAResponse", "ReadContent=failed-to-read")
        fake_node.write_lines("TestDDAComplete", "Directory=" + temp_dir, "ReadDirectoryAllowed=false", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_client_put_ignores_foreign_refusal(self, client, fake_node):
        future = client.client_put("KSK@foo.txt", filename="/tmp/data.txt")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("ProtocolError", "Identifier=not-the-right-one", "Code=25", "EndMessage")
        fake_node.write_lines("PutSuccessful", "Identifier=" + identifier, "URI=KSK@foo.txt", "EndMessage")
        assert future.result(timeout=TIMEOUT).uri == "KSK@foo.txt"

    def test_client_put_aborts_on_other_code(self, client, fake_node):
        future = client.client_put("KSK@foo.txt", filename="/tmp/data.txt")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("ProtocolError", "Identifier=" + identifier, "Code=1", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_client_put_identifier_collision(self, client, fake_node):
        """Test an identifier clash on the node ends the insert."""
        future = client.client_put("KSK@foo.txt", data=b"Hello\n")
        lines, identifier = _request(fake_node, terminator="Hello")
        fake_node.write_lines("IdentifierCollision", "Identifier=not-the-right-one", "EndMessage")
        fake_node.write_lines("IdentifierCollision", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_dda_test_refused(self, client, fake_node, temp_dir):
        future = client.test_dda(temp_dir, want_read=True, want_write=False)
        _request(fake_node)
        fake_node.write_lines("ProtocolError", "Code=9", "CodeDescription=Invalid field", "EndMessage")
        with pytest.raises(NodeRefusedError):
            future.result(timeout=TIMEOUT)

    def test_dda_test(self, client, fake_node, temp_dir):
        future = client.test_dda(temp_dir, want_read=True, want_write=False)
        lines, _ = _request(fake_node)
        assert fcp_message(lines, "TestDDARequest", "Directory=" + temp_dir, "WantReadDirectory=true")
        fake_node.write_lines("TestDDAReply", "Directory=" + temp_dir, "EndMessage")
        fake_node.collect_until("EndMessage")
        fake_node.write_lines("TestDDAComplete", "Directory=" + temp_dir, "ReadDirectoryAllowed=true", "EndMessage")
        assert future.result(timeout=TIMEOUT) == DirectDiskAccessResult(read_allowed=True, write_allowed=False)


class TestPeers:
    """Tests for peer operations."""

    def test_list_peers(self, client, fake_node):
        future = client.list_peers(with_metadata=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ListPeers", "WithVolatile=false", "WithMetadata=true")
        fake_node.write_lines("Peer", "Identifier=" + identifier, "identity=id1", "metadata.foo=bar1", "EndMessage")
        fake_node.write_lines("Peer", "Identifier=" + identifier, "identity=id2", "metadata.foo=bar2", "EndMessage")
        fake_node.write_lines("EndListPeers", "Identifier=" + identifier, "EndMessage")
        peers = future.result(timeout=TIMEOUT)
        assert sorted(peer.identity for peer in peers) == ["id1", "id2"]
        assert sorted(peer.metadata("foo") for peer in peers) == ["bar1", "bar2"]

    def test_list_peer(self, client, fake_node):
        future = client.list_peer("1.2.3.4:5678")
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ListPeer", "NodeIdentifier=1.2.3.4:5678")
        fake_node.write_lines("Peer", "Identifier=" + identifier, "identity=id1", "EndMessage")
        assert future.result(timeout=TIMEOUT).identity == "id1"

    def test_list_peer_unknown(self, client, fake_node):
        future = client.list_peer("id2")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("UnknownNodeIdentifier", "Identifier=" + identifier, "NodeIdentifier=id2", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_add_peer_from_node_ref(self, client, fake_node):
        ref = NodeRef(identity="id1", name="name", negotiation_types=[3, 5], signature="sig")
        future = client.add_peer(node_ref=ref)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "AddPeer", "identity=id1", "myName=name", "auth.negTypes=3;5", "sig=sig")
        fake_node.write_lines("Peer", "Identifier=" + identifier, "identity=id1", "opennet=false", "EndMessage")
        assert future.result(timeout=TIMEOUT).identity == "id1"

    def test_add_peer_refused(self, client, fake_node):
        future = client.add_peer(url="http://node.ref/")
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "AddPeer", "URL=http://node.ref/")
        fake_node.write_lines("ProtocolError", "Identifier=" + identifier, "Code=29", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_modify_peer(self, client, fake_node):
        future = client.modify_peer("Friend1", enabled=False, listen_only=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ModifyPeer", "NodeIdentifier=Friend1", "IsDisabled=true", "IsListenOnly=true")
        assert not any(line.startswith("IsBurstOnly") for line in lines)
        fake_node.write_lines("Peer", "Identifier=" + identifier, "NodeIdentifier=Friend1", "identity=id1", "EndMessage")
        assert future.result(timeout=TIMEOUT).identity == "id1"

    def test_modify_unknown_peer(self, client, fake_node):
        future = client.modify_peer("id1", enabled=True)
        lines, identifier = _request(fake_node)
        fake_node.write_lines("UnknownNodeIdentifier", "Identifier=" + identifier, "NodeIdentifier=id1", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_remove_peer(self, client, fake_node):
        future = client.remove_peer("Friend1")
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "RemovePeer", "NodeIdentifier=Friend1")
        fake_node.write_lines("PeerRemoved", "Identifier=" + identifier, "NodeIdentifier=Friend1", "EndMessage")
        assert future.result(timeout=TIMEOUT) is True

    def test_remove_unknown_peer(self, client, fake_node):
        future = client.remove_peer("NotFriend1")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("UnknownNodeIdentifier", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT) is False

    def test_remove_peer_identifier_collision(self, client, fake_node):
        future = client.remove_peer("Friend1")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("IdentifierCollision", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT) is False

    def test_list_peer_notes(self, client, fake_node):
        future = client.list_peer_notes("Friend1")
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ListPeerNotes", "NodeIdentifier=Friend1")
        fake_node.write_lines(
            "PeerNote",
            "Identifier=" + identifier,
            "NodeIdentifier=Friend1",
            "NoteText=RXhhbXBsZSBUZXh0Lg==",
            "PeerNoteType=1",
            "EndMessage",
        )
        fake_node.write_lines("EndListPeerNotes", "Identifier=" + identifier, "EndMessage")
        note = future.result(timeout=TIMEOUT)
        assert note.note_text == "RXhhbXBsZSBUZXh0Lg=="
        assert note.peer_note_type == 1

    def test_list_peer_notes_unknown(self, client, fake_node):
        future = client.list_peer_notes("Friend1")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("UnknownNodeIdentifier", "Identifier=" + identifier, "NodeIdentifier=Friend1", "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_modify_peer_note(self, client, fake_node):
        future = client.modify_peer_note("1.2.3.4:5678", "foo")
        lines, identifier = _request(fake_node)
        assert fcp_message(
            lines, "ModifyPeerNote",
            "Identifier=" + identifier, "NodeIdentifier=1.2.3.4:5678", "PeerNoteType=1", "NoteText=Zm9v",
        )
        fake_node.write_lines(
            "PeerNote", "Identifier=" + identifier, "NodeIdentifier=1.2.3.4:5678",
            "NoteText=Zm9v", "PeerNoteType=1", "EndMessage",
        )
        assert future.result(timeout=TIMEOUT) is True

    def test_modify_peer_note_unknown(self, client, fake_node):
        future = client.modify_peer_note("Friend1", "foo")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("UnknownNodeIdentifier", "Identifier=" + identifier, "NodeIdentifier=Friend1", "EndMessage")
        assert future.result(timeout=TIMEOUT) is False

    def test_modify_peer_note_without_comment(self, client):
        """Test no message is sent without a comment."""
        assert client.modify_peer_note("Friend1").result(timeout=TIMEOUT) is False


class TestNode:
    """Tests for node information and configuration."""

    def test_get_node(self, client, fake_node):
        future = client.get_node(opennet_ref=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "GetNode", "GiveOpennetRef=true", "WithPrivate=false", "WithVolatile=false")
        fake_node.write_lines(
            "NodeData",
            "Identifier=" + identifier,
            "identity=id1",
            "ark.privURI=SSK@XdHMiRl",
            "volatile.freeJavaMemory=205706528",
            "EndMessage",
        )
        node = future.result(timeout=TIMEOUT)
        assert node.identity == "id1"
        assert node.ark_private_uri == "SSK@XdHMiRl"
        assert node.volatile("freeJavaMemory") == "205706528"

    def test_get_config(self, client, fake_node):
        future = client.get_config(with_current=True, with_data_types=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "GetConfig", "WithCurrent=true", "WithDataTypes=true")
        assert not any(line.startswith("WithDefaults") for line in lines)
        fake_node.write_lines(
            "ConfigData", "Identifier=" + identifier, "current.foo=bar", "dataType.foo=number", "EndMessage"
        )
        config = future.result(timeout=TIMEOUT)
        assert config.current("foo") == "bar"
        assert config.data_type("foo") == "number"

    def test_modify_config(self, client, fake_node):
        future = client.modify_config({"foo.bar": "baz"})
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ModifyConfig", "foo.bar=baz")
        fake_node.write_lines("ConfigData", "Identifier=" + identifier, "current.foo.bar=baz", "EndMessage")
        assert future.result(timeout=TIMEOUT).current("foo.bar") == "baz"


class TestPlugins:
    """Tests for plugin operations."""

    def _reply_plugin_info(self, fake_node, identifier):
        fake_node.write_lines(
            "PluginInfo",
            "Identifier=" + identifier,
            "PluginName=superPlugin",
            "IsTalkable=true",
            "LongVersion=1.2.3",
            "Version=42",
            "OriginUri=superPlugin",
            "Started=true",
            "EndMessage",
        )

    def _verify(self, info):
        assert info.plugin_name == "superPlugin"
        assert info.original_uri == "superPlugin"
        assert info.is_talkable
        assert info.version == "42"
        assert info.long_version == "1.2.3"
        assert info.is_started

    def test_load_official_from_https(self, client, fake_node):
        future = client.load_plugin("superPlugin", UrlType.OFFICIAL, OfficialSource.HTTPS)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "LoadPlugin", "PluginURL=superPlugin", "URLType=official", "OfficialSource=https")
        assert not any(line.startswith("Store=") for line in lines)
        self._reply_plugin_info(fake_node, identifier)
        self._verify(future.result(timeout=TIMEOUT))

    def test_load_from_file_stored(self, client, fake_node):
        future = client.load_plugin("/path/to/plugin.jar", UrlType.FILE, store=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "LoadPlugin", "PluginURL=/path/to/plugin.jar", "URLType=file", "Store=true")
        self._reply_plugin_info(fake_node, identifier)
        self._verify(future.result(timeout=TIMEOUT))

    def test_load_failed(self, client, fake_node):
        """Test a ProtocolError without a code still ends the operation."""
        future = client.load_plugin("superPlugin")
        lines, identifier = _request(fake_node)
        fake_node.write_lines("ProtocolError", "Identifier=" + identifier, "EndMessage")
        assert future.result(timeout=TIMEOUT) is None

    def test_reload(self, client, fake_node):
        future = client.reload_plugin(PLUGIN_CLASS, max_wait_time=1234, purge=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "ReloadPlugin", "PluginName=" + PLUGIN_CLASS, "MaxWaitTime=1234", "Purge=true")
        self._reply_plugin_info(fake_node, identifier)
        self._verify(future.result(timeout=TIMEOUT))

    def test_remove(self, client, fake_node):
        future = client.remove_plugin(PLUGIN_CLASS, purge=True)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "RemovePlugin", "PluginName=" + PLUGIN_CLASS, "Purge=true")
        fake_node.write_lines("PluginRemoved", "Identifier=" + identifier, "PluginName=" + PLUGIN_CLASS, "EndMessage")
        assert future.result(timeout=TIMEOUT) is True

    def test_remove_refused(self, client, fake_node):
        future = client.remove_plugin(PLUGIN_CLASS)
        lines, identifier = _request(fake_node)
        fake_node.write_lines("ProtocolError", "Identifier=" + identifier, "Code=32", "EndMessage")
        assert future.result(timeout=TIMEOUT) is False

    def test_get_plugin_info(self, client, fake_node):
        future = client.get_plugin_info(PLUGIN_CLASS)
        lines, identifier = _request(fake_node)
        assert fcp_message(lines, "GetPluginInfo", "Identifier=" + identifier, "PluginName=" + PLUGIN_CLASS)
        self._reply_plugin_info(fake_node, identifier)
        self._verify(future.result(timeout=TIMEOUT))
