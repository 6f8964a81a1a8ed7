"""
High-level FCP client.

FcpClient keeps one greeted connection to the node and runs every operation
as a dialog on a worker thread, handing back a Future for its result.
Options are validated and the request built before anything is queued, so
operator mistakes raise at the call site.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from threading import Lock
from typing import BinaryIO, Callable, List, Mapping, Optional, Union

from . import commands
from .commands import NodeRef, OfficialSource, Priority, UrlType
from .config import (
    CLIENT_WORKERS,
    CONNECT_TIMEOUT,
    DEFAULT_CLIENT_NAME,
    DEFAULT_HOST,
    DEFAULT_PORT,
    SPOOL_MAX_SIZE,
    RuntimeConfig,
)
from .connection import FcpConnection
from .dda import DirectDiskAccessResult, TestDDADialog
from .dialog import FcpDialog
from .exceptions import FcpConnectionError
from .message import Message
from .messages import ConfigData, NodeData, NodeHello, Peer, PeerNote, PluginInfo
from .operations import (
    ClientGetDialog,
    ClientHelloDialog,
    ClientPutDialog,
    ConfigDataDialog,
    Data,
    GenerateKeypairDialog,
    GetNodeDialog,
    Key,
    KeyPair,
    ListPeerNotesDialog,
    ListPeersDialog,
    ModifyPeerNoteDialog,
    PeerDialog,
    PluginInfoDialog,
    RemovePeerDialog,
    RemovePluginDialog,
)

logger = logging.getLogger(__name__)

DialogFactory = Callable[[FcpConnection], FcpDialog]


def unique_client_name() -> str:
    """Client name unlikely to collide with other clients of the same node."""
    return f"{DEFAULT_CLIENT_NAME}-{uuid.uuid4().hex[:12]}"


class FcpClient:
    """
    Asynchronous client for one node.

    Usage:
        with FcpClient("localhost", 9481) as client:
            key_pair = client.generate_keypair().result()
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        client_name: Optional[str] = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        spool_max_size: int = SPOOL_MAX_SIZE,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = CLIENT_WORKERS,
    ):
        """
        Args:
            host: Node host
            port: Node FCP port
            client_name: Name sent in ClientHello; generated when omitted
            connect_timeout: Seconds to wait for the TCP connection and NodeHello
            spool_max_size: Fetched data above this size is spooled to disk
            executor: Executor running operations; owned by the client if omitted
            max_workers: Size of the client's own executor
        """
        self.host = host
        self.port = port
        self.client_name = client_name or unique_client_name()
        self.connect_timeout = connect_timeout
        self.spool_max_size = spool_max_size

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="fcp-client"
        )
        self._connection_lock = Lock()
        self._connection: Optional[FcpConnection] = None
        self._node_hello: Optional[NodeHello] = None

    @classmethod
    def from_config(cls, runtime_config: RuntimeConfig, **kwargs) -> "FcpClient":
        return cls(
            host=runtime_config.host,
            port=runtime_config.port,
            client_name=runtime_config.client_name or None,
            connect_timeout=runtime_config.connect_timeout,
            spool_max_size=runtime_config.spool_max_size,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def node_hello(self) -> Optional[NodeHello]:
        """NodeHello of the current connection."""
        return self._node_hello

    # -------------------------------------------------------------------------
    # Connection supplier
    # -------------------------------------------------------------------------

    def connection(self) -> FcpConnection:
        """
        Return a connected, greeted connection, opening a new one if needed.

        Raises:
            FcpConnectionError: If the node cannot be reached or does not
                answer the ClientHello in time
            DuplicateClientNameError: If another client uses the same name
            NodeRefusedError: If the node rejects the ClientHello
        """
        with self._connection_lock:
            connection = self._connection
            if connection is not None and connection.is_connected():
                return connection

            connection = FcpConnection(self.host, self.port, self.connect_timeout)
            connection.connect()
            try:
                node_hello = self._greet(connection)
            except BaseException:
                connection.close()
                raise

            logger.info(
                "Greeted %s as %s (node %s, FCP %s)",
                self.endpoint, self.client_name, node_hello.version, node_hello.fcp_version,
            )
            self._connection = connection
            self._node_hello = node_hello
            return connection

    def _greet(self, connection: FcpConnection) -> NodeHello:
        with ClientHelloDialog(connection) as dialog:
            future = dialog.send(commands.client_hello(self.client_name))
            try:
                return future.result(timeout=self.connect_timeout)
            except FutureTimeoutError as e:
                raise FcpConnectionError(
                    f"No NodeHello from {self.endpoint} within {self.connect_timeout}s"
                ) from e

    def close(self) -> None:
        """Close the connection and shut down the client's own executor."""
        with self._connection_lock:
            connection = self._connection
            self._connection = None
        if connection is not None:
            connection.close()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def __enter__(self) -> "FcpClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _submit(self, build_dialog: DialogFactory, message: Message) -> Future:
        return self._executor.submit(self._run_dialog, build_dialog, message)

    def _run_dialog(self, build_dialog: DialogFactory, message: Message):
        connection = self.connection()
        with build_dialog(connection) as dialog:
            return dialog.send(message).result()

    @staticmethod
    def _completed(result) -> Future:
        future: Future = Future()
        future.set_result(result)
        return future

    # -------------------------------------------------------------------------
    # Keys and transfers
    # -------------------------------------------------------------------------

    def generate_keypair(self) -> "Future[KeyPair]":
        return self._submit(GenerateKeypairDialog, commands.generate_ssk(commands.new_identifier()))

    def client_get(
        self,
        uri: str,
        filename: Optional[str] = None,
        ignore_data_store: bool = False,
        data_store_only: bool = False,
        max_size: Optional[int] = None,
        priority: Optional[Priority] = None,
        real_time: bool = False,
        global_queue: bool = False,
    ) -> "Future[Optional[Data]]":
        """
        Fetch ``uri``.

        Without ``filename`` the data comes back in :attr:`Data.stream`; with
        it the node writes the file and proves its access to the directory
        first if asked to. Resolves with None if the fetch fails.
        """
        message = commands.client_get(
            commands.new_identifier(),
            uri,
            filename=filename,
            ignore_data_store=ignore_data_store,
            data_store_only=data_store_only,
            max_size=max_size,
            priority=priority,
            real_time=real_time,
            global_queue=global_queue,
        )
        return self._submit(
            lambda connection: ClientGetDialog(connection, filename, self.spool_max_size), message
        )

    def client_put(
        self,
        uri: str,
        data: Optional[Union[bytes, BinaryIO]] = None,
        length: Optional[int] = None,
        filename: Optional[str] = None,
        redirect_to: Optional[str] = None,
        target_filename: Optional[str] = None,
        on_key_generated: Optional[Callable[[str], None]] = None,
    ) -> "Future[Optional[Key]]":
        """Insert under ``uri``; resolves with the final key, or None on failure."""
        message = commands.client_put(
            commands.new_identifier(),
            uri,
            data=data,
            length=length,
            filename=filename,
            redirect_to=redirect_to,
            target_filename=target_filename,
        )
        return self._submit(lambda connection: ClientPutDialog(connection, on_key_generated), message)

    def test_dda(self, directory: str, want_read: bool, want_write: bool) -> "Future[DirectDiskAccessResult]":
        """Ask the node whether it may read and/or write ``directory``."""
        return self._submit(
            lambda connection: TestDDADialog(connection, directory, want_read, want_write),
            commands.dda_test_request(directory, want_read, want_write),
        )

    # -------------------------------------------------------------------------
    # Peers
    # -------------------------------------------------------------------------

    def list_peers(self, with_metadata: bool = False, with_volatile: bool = False) -> "Future[List[Peer]]":
        message = commands.list_peers(commands.new_identifier(), with_metadata, with_volatile)
        return self._submit(ListPeersDialog, message)

    def list_peer(self, node_identifier: str) -> "Future[Optional[Peer]]":
        return self._submit(PeerDialog, commands.list_peer(commands.new_identifier(), node_identifier))

    def add_peer(
        self,
        file: Optional[str] = None,
        url: Optional[str] = None,
        node_ref: Optional[NodeRef] = None,
    ) -> "Future[Optional[Peer]]":
        message = commands.add_peer(commands.new_identifier(), file=file, url=url, node_ref=node_ref)
        return self._submit(PeerDialog, message)

    def modify_peer(
        self,
        node_identifier: str,
        enabled: Optional[bool] = None,
        allow_local_addresses: Optional[bool] = None,
        burst_only: Optional[bool] = None,
        listen_only: Optional[bool] = None,
        ignore_source: Optional[bool] = None,
    ) -> "Future[Optional[Peer]]":
        message = commands.modify_peer(
            commands.new_identifier(),
            node_identifier,
            enabled=enabled,
            allow_local_addresses=allow_local_addresses,
            burst_only=burst_only,
            listen_only=listen_only,
            ignore_source=ignore_source,
        )
        return self._submit(PeerDialog, message)

    def remove_peer(self, node_identifier: str) -> "Future[bool]":
        return self._submit(RemovePeerDialog, commands.remove_peer(commands.new_identifier(), node_identifier))

    def list_peer_notes(self, node_identifier: str) -> "Future[Optional[PeerNote]]":
        message = commands.list_peer_notes(commands.new_identifier(), node_identifier)
        return self._submit(ListPeerNotesDialog, message)

    def modify_peer_note(self, node_identifier: str, darknet_comment: Optional[str] = None) -> "Future[bool]":
        """Set the darknet comment of a peer; resolves False at once without a comment."""
        if darknet_comment is None:
            return self._completed(False)
        message = commands.modify_peer_note(commands.new_identifier(), node_identifier, darknet_comment)
        return self._submit(ModifyPeerNoteDialog, message)

    # -------------------------------------------------------------------------
    # Node
    # -------------------------------------------------------------------------

    def get_node(
        self,
        opennet_ref: bool = False,
        with_private: bool = False,
        with_volatile: bool = False,
    ) -> "Future[Optional[NodeData]]":
        message = commands.get_node(commands.new_identifier(), opennet_ref, with_private, with_volatile)
        return self._submit(GetNodeDialog, message)

    def get_config(
        self,
        with_current: bool = False,
        with_defaults: bool = False,
        with_sort_order: bool = False,
        with_expert_flag: bool = False,
        with_force_write_flag: bool = False,
        with_short_description: bool = False,
        with_long_description: bool = False,
        with_data_types: bool = False,
    ) -> "Future[Optional[ConfigData]]":
        message = commands.get_config(
            commands.new_identifier(),
            with_current=with_current,
            with_defaults=with_defaults,
            with_sort_order=with_sort_order,
            with_expert_flag=with_expert_flag,
            with_force_write_flag=with_force_write_flag,
            with_short_description=with_short_description,
            with_long_description=with_long_description,
            with_data_types=with_data_types,
        )
        return self._submit(ConfigDataDialog, message)

    def modify_config(self, settings: Mapping[str, object]) -> "Future[Optional[ConfigData]]":
        return self._submit(ConfigDataDialog, commands.modify_config(commands.new_identifier(), settings))

    # -------------------------------------------------------------------------
    # Plugins
    # -------------------------------------------------------------------------

    def load_plugin(
        self,
        plugin_url: str,
        url_type: UrlType = UrlType.OFFICIAL,
        official_source: Optional[OfficialSource] = None,
        store: bool = False,
    ) -> "Future[Optional[PluginInfo]]":
        message = commands.load_plugin(commands.new_identifier(), plugin_url, url_type, official_source, store)
        return self._submit(PluginInfoDialog, message)

    def reload_plugin(
        self,
        plugin_name: str,
        max_wait_time: Optional[int] = None,
        purge: bool = False,
        store: bool = False,
    ) -> "Future[Optional[PluginInfo]]":
        message = commands.reload_plugin(commands.new_identifier(), plugin_name, max_wait_time, purge, store)
        return self._submit(PluginInfoDialog, message)

    def remove_plugin(
        self,
        plugin_name: str,
        max_wait_time: Optional[int] = None,
        purge: bool = False,
    ) -> "Future[bool]":
        message = commands.remove_plugin(commands.new_identifier(), plugin_name, max_wait_time, purge)
        return self._submit(RemovePluginDialog, message)

    def get_plugin_info(self, plugin_name: str, detailed: bool = False) -> "Future[Optional[PluginInfo]]":
        message = commands.get_plugin_info(commands.new_identifier(), plugin_name, detailed)
        return self._submit(PluginInfoDialog, message)

    def __repr__(self) -> str:
        return f"FcpClient({self.endpoint}, name={self.client_name})"
