"""
Custom exceptions for the FCP client.

Provides specific exception types for better error handling and debugging.
"""

from typing import Optional


class FcpError(Exception):
    """Base exception for all FCP client errors."""
    pass


# ---------------- Connection Errors ----------------

class FcpConnectionError(FcpError):
    """Base class for connection lifecycle errors."""
    pass


class NotConnectedError(FcpConnectionError):
    """Operation requires a connected socket."""

    def __init__(self, endpoint: str = ""):
        self.endpoint = endpoint
        if endpoint:
            super().__init__(f"Not connected to {endpoint}")
        else:
            super().__init__("Not connected")


class AlreadyConnectedError(FcpConnectionError):
    """connect() called on a connection that is still live."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Already connected to {endpoint}")


class ConnectionClosedError(FcpConnectionError):
    """The connection closed before an operation completed."""

    def __init__(self, message: str = "Connection closed", cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            super().__init__(f"{message}: {cause}")
        else:
            super().__init__(message)


class DuplicateClientNameError(FcpConnectionError):
    """The node dropped the connection because another client uses our name."""
    pass


# ---------------- Protocol Errors ----------------

class ProtocolError(FcpError):
    """Base class for protocol-related errors."""
    pass


class MessageParseError(ProtocolError):
    """Failed to parse a message off the wire."""
    pass


class MessageEncodeError(ProtocolError):
    """Message cannot be represented in the wire format."""
    pass


class PayloadTruncatedError(MessageEncodeError):
    """An upload payload ended before DataLength bytes were written."""

    def __init__(self, expected: int, missing: int):
        self.expected = expected
        self.missing = missing
        super().__init__(f"Payload ended {missing} bytes short of DataLength={expected}")


class NodeRefusedError(ProtocolError):
    """The node answered a request with a ProtocolError message."""

    def __init__(self, code: int, description: str = "", identifier: Optional[str] = None):
        self.code = code
        self.description = description
        self.identifier = identifier
        detail = f" ({description})" if description else ""
        super().__init__(f"Node refused request {identifier or '-'} with code {code}{detail}")


# ---------------- Dialog Errors ----------------

class DialogError(FcpError):
    """Base class for dialog misuse."""
    pass


class DialogAlreadySentError(DialogError):
    """A dialog sends exactly one message."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Dialog already sent {name}")


# ---------------- Validation Errors ----------------

class ValidationError(FcpError):
    """Input validation failed."""
    pass


class MissingOptionError(ValidationError):
    """A command was built without one of its required options."""

    def __init__(self, command: str, option: str):
        self.command = command
        self.option = option
        super().__init__(f"{command} requires {option}")


class InvalidPortError(ValidationError):
    """Port number out of valid range."""

    def __init__(self, port: int):
        self.port = port
        super().__init__(f"Invalid port number: {port} (must be 1-65535)")


# ---------------- Configuration Errors ----------------

class ConfigError(FcpError):
    """Configuration file could not be read or written."""
    pass
