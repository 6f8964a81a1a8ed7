"""
Command-line entry point for the FCP client.

Run with: python -m fcp [--host HOST] [--port PORT] <command> ...
"""

from __future__ import annotations

import argparse
import shutil
import sys

from . import __version__
from .client import FcpClient
from .config import (
    CONFIG_FILE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    RuntimeConfig,
    apply_config_file,
    load_config_file,
    save_default_config,
)
from .exceptions import FcpError
from .logging_setup import format_block, log, log_error, setup_logging
from .stats import get_message_statistics


def _cmd_hello(client: FcpClient, args) -> int:
    client.connection()
    hello = client.node_hello
    print(format_block("NODE", [
        f"Node        : {hello.node}",
        f"Version     : {hello.version}",
        f"FCP version : {hello.fcp_version}",
        f"Build       : {hello.build}",
        f"Testnet     : {hello.testnet}",
    ]))
    return 0


def _cmd_generate_keypair(client: FcpClient, args) -> int:
    key_pair = client.generate_keypair().result()
    print(format_block("KEYPAIR", [
        f"Request URI : {key_pair.public_key}",
        f"Insert URI  : {key_pair.private_key}",
    ]))
    return 0


def _cmd_get(client: FcpClient, args) -> int:
    data = client.client_get(args.uri).result()
    if data is None:
        log_error(f"Could not fetch {args.uri}")
        return 1
    with data:
        if args.output:
            with open(args.output, "wb") as f:
                shutil.copyfileobj(data.stream, f)
            log(f"Saved {data.size} bytes ({data.mime_type}) to {args.output}")
        else:
            shutil.copyfileobj(data.stream, sys.stdout.buffer)
            sys.stdout.buffer.flush()
    return 0


def _cmd_put(client: FcpClient, args) -> int:
    with open(args.file, "rb") as f:
        f.seek(0, 2)
        length = f.tell()
        f.seek(0)
        key = client.client_put(
            args.uri,
            data=f,
            length=length,
            on_key_generated=lambda uri: log(f"Key generated: {uri}"),
        ).result()
    if key is None:
        log_error(f"Could not insert {args.file}")
        return 1
    print(key.uri)
    return 0


def _cmd_list_peers(client: FcpClient, args) -> int:
    peers = client.list_peers(with_metadata=True, with_volatile=args.volatile).result()
    lines = []
    for peer in peers:
        status = peer.volatile("status") or "-"
        lines.append(f"{peer.identity}  {peer.my_name or '-'}  {peer.physical_udp or '-'}  {status}")
    print(format_block(f"PEERS ({len(peers)})", lines))
    return 0


def _cmd_get_node(client: FcpClient, args) -> int:
    node = client.get_node(with_volatile=args.volatile).result()
    if node is None:
        log_error("Node refused GetNode")
        return 1
    print(format_block("NODE", [f"{key}={value}" for key, value in node.fields.items()]))
    return 0


def _cmd_get_config(client: FcpClient, args) -> int:
    config = client.get_config(with_current=True).result()
    if config is None:
        log_error("Node refused GetConfig")
        return 1
    values = config.current_values()
    print(format_block("CONFIG", [f"{key}={values[key]}" for key in sorted(values)]))
    return 0


def _cmd_test_dda(client: FcpClient, args) -> int:
    result = client.test_dda(args.directory, args.read, args.write).result()
    print(format_block("DDA", [
        f"Directory : {args.directory}",
        f"Read      : {'allowed' if result.read_allowed else 'denied'}",
        f"Write     : {'allowed' if result.write_allowed else 'denied'}",
    ]))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="fcp",
        description="Freenet Client Protocol client",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument(
        "--host",
        help=f"Node host (default: {DEFAULT_HOST})",
    )
    ap.add_argument(
        "--port",
        type=int,
        help=f"Node FCP port (default: {DEFAULT_PORT})",
    )
    ap.add_argument(
        "--name",
        help="Client name sent in ClientHello (default: generated)",
    )
    ap.add_argument(
        "--no-log-file",
        action="store_true",
        help="Disable file logging",
    )
    ap.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    ap.add_argument(
        "--config",
        help=f"Path to config file (default: {CONFIG_FILE})",
    )
    ap.add_argument(
        "--init-config",
        action="store_true",
        help="Generate default configuration file and exit",
    )
    ap.add_argument(
        "--stats",
        action="store_true",
        help="Print received message counts on exit",
    )

    sub = ap.add_subparsers(dest="command")
    sub.add_parser("hello", help="Connect and show the node's greeting")
    sub.add_parser("generate-keypair", help="Generate an SSK key pair")

    p = sub.add_parser("get", help="Fetch a key")
    p.add_argument("uri")
    p.add_argument("-o", "--output", help="Write the data to this file instead of stdout")

    p = sub.add_parser("put", help="Insert a file")
    p.add_argument("uri")
    p.add_argument("file")

    p = sub.add_parser("list-peers", help="List the node's peers")
    p.add_argument("--volatile", action="store_true", help="Include volatile peer data")

    p = sub.add_parser("get-node", help="Show the node's reference")
    p.add_argument("--volatile", action="store_true", help="Include volatile node data")

    sub.add_parser("get-config", help="Show the node's current configuration")

    p = sub.add_parser("test-dda", help="Test direct disk access to a directory")
    p.add_argument("directory")
    p.add_argument("--no-read", dest="read", action="store_false", help="Do not test read access")
    p.add_argument("--write", action="store_true", help="Also test write access")
    return ap


COMMANDS = {
    "hello": _cmd_hello,
    "generate-keypair": _cmd_generate_keypair,
    "get": _cmd_get,
    "put": _cmd_put,
    "list-peers": _cmd_list_peers,
    "get-node": _cmd_get_node,
    "get-config": _cmd_get_config,
    "test-dda": _cmd_test_dda,
}


def main(argv=None) -> int:
    """Main entry point for the FCP client."""
    ap = build_parser()
    args = ap.parse_args(argv)

    # Generate default config if requested
    if args.init_config:
        config_path = args.config or CONFIG_FILE
        if save_default_config(config_path):
            print(f"Default configuration saved to: {config_path}")
            return 0
        print(f"Failed to save configuration to: {config_path}")
        return 1

    if args.command is None:
        ap.error("a command is required")

    try:
        # CLI args take precedence over the config file
        config = RuntimeConfig(
            host=args.host or DEFAULT_HOST,
            port=args.port or DEFAULT_PORT,
            client_name=args.name or "",
            log_to_file=not args.no_log_file,
            log_level=args.log_level or "INFO",
        )
        apply_config_file(config, load_config_file(args.config))
        if args.log_level:
            config.log_level = args.log_level
        if args.no_log_file:
            config.log_to_file = False
    except FcpError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(log_to_file=config.log_to_file, log_level=config.log_level)

    with FcpClient.from_config(config) as client:
        try:
            status = COMMANDS[args.command](client, args)
        except FcpError as e:
            log_error(f"{args.command} failed: {e}")
            status = 1
        except OSError as e:
            log_error(f"{args.command} failed: {e}")
            status = 1

    if args.stats:
        print(get_message_statistics().format_summary())
    return status


if __name__ == "__main__":
    sys.exit(main())
