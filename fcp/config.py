"""
Configuration constants for the FCP client.

All protocol constants, paths, and tunable parameters are centralized here.
"""

from __future__ import annotations

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

import yaml

from .exceptions import ConfigError, InvalidPortError


# ---------------- Protocol Constants ----------------

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 9481
EXPECTED_VERSION = "2.0"
DEFAULT_CLIENT_NAME = "fcp-client"

END_MESSAGE = "EndMessage"  # Terminator for header-only messages
DATA_TERMINATOR = "Data"    # Terminator introducing raw payload bytes
DATA_LENGTH_FIELD = "DataLength"
IDENTIFIER_FIELD = "Identifier"

# ProtocolError code asking the client to prove disk access first
DDA_REQUIRED_CODE = 25
# ReadContent sent when the node's challenge file cannot be read
FAILED_TO_READ = "failed-to-read"

# PeerNoteType for the darknet comment note
PEER_NOTE_TYPE_PRIVATE_DARKNET_COMMENT = 1


# ---------------- Transport Limits ----------------

MAX_LINE_LENGTH = 64 * 1024    # Longest header line accepted from the node
COPY_CHUNK_SIZE = 64 * 1024    # Chunk size when streaming payloads
CONNECT_TIMEOUT = 10.0         # Seconds to wait for the TCP handshake
SPOOL_MAX_SIZE = 1024 * 1024   # Fetched payloads larger than this spill to disk
CLIENT_WORKERS = 8             # Worker threads running client operations


# ---------------- File Paths ----------------

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".fcp")
LOG_DIR = os.path.join(CONFIG_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.yaml")  # YAML configuration file


# ---------------- Logging Configuration ----------------

LOG_FILE = os.path.join(LOG_DIR, "fcp.log")
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB per log file
LOG_BACKUP_COUNT = 5  # Keep 5 rotated log files


@dataclass
class RuntimeConfig:
    """Runtime configuration that can be modified at startup."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    client_name: str = ""
    connect_timeout: float = CONNECT_TIMEOUT
    spool_max_size: int = SPOOL_MAX_SIZE
    log_to_file: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate the endpoint."""
        if not 0 < self.port < 65536:
            raise InvalidPortError(self.port)

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"


def load_config_file(path: Optional[str] = None) -> dict:
    """
    Load configuration from YAML file.

    Args:
        path: Path to config file (defaults to CONFIG_FILE)

    Returns:
        Configuration dict (empty if file doesn't exist)

    Raises:
        ConfigError: If the file exists but is not valid YAML
    """
    config_path = path or CONFIG_FILE

    if not os.path.exists(config_path):
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e
    return data if isinstance(data, dict) else {}


DEFAULT_CONFIG = """\
# FCP client configuration

# Node to connect to
node:
  host: localhost
  port: 9481
  # Seconds to wait for the TCP connection
  connect_timeout: 10

# Name sent in ClientHello; must be unique per node
# client_name: my-client

# Fetched data larger than this many bytes is spooled to a temporary file
spool_max_size: 1048576

# Logging settings
logging:
  # Enable file logging
  to_file: true
  # Log level: DEBUG, INFO, WARNING, ERROR
  level: INFO
"""


def save_default_config(path: Optional[str] = None) -> bool:
    """
    Save default configuration file.

    Args:
        path: Path to config file (defaults to CONFIG_FILE)

    Returns:
        True if saved successfully
    """
    config_path = path or CONFIG_FILE

    try:
        Path(config_path).parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG)
        return True
    except OSError:
        return False


def _number(convert, section: dict, key: str):
    """Convert ``section[key]`` with ``convert``, raising ConfigError on bad values."""
    try:
        return convert(section[key])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {section[key]!r}") from e


def apply_config_file(runtime_config: "RuntimeConfig", file_config: dict) -> None:
    """
    Apply file configuration to runtime config.

    File config values only replace fields still at their defaults, so
    command-line arguments take precedence.

    Raises:
        ConfigError: If a numeric setting is not a number
        InvalidPortError: If the port is out of range
    """
    node_config = file_config.get("node") or {}
    if runtime_config.host == DEFAULT_HOST and "host" in node_config:
        runtime_config.host = str(node_config["host"])
    if runtime_config.port == DEFAULT_PORT and "port" in node_config:
        port = _number(int, node_config, "port")
        if not 0 < port < 65536:
            raise InvalidPortError(port)
        runtime_config.port = port
    if runtime_config.connect_timeout == CONNECT_TIMEOUT and "connect_timeout" in node_config:
        runtime_config.connect_timeout = _number(float, node_config, "connect_timeout")

    if not runtime_config.client_name and "client_name" in file_config:
        runtime_config.client_name = str(file_config["client_name"])

    if runtime_config.spool_max_size == SPOOL_MAX_SIZE and "spool_max_size" in file_config:
        runtime_config.spool_max_size = _number(int, file_config, "spool_max_size")

    # Logging settings
    logging_config = file_config.get("logging") or {}
    if "to_file" in logging_config:
        runtime_config.log_to_file = bool(logging_config["to_file"])
    if "level" in logging_config:
        runtime_config.log_level = str(logging_config["level"])
