"""
FCP message record.

A message is a name, an ordered set of string fields and an optional payload.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, BinaryIO, Iterator, Mapping, Optional, Tuple, Union

from .config import DATA_LENGTH_FIELD, IDENTIFIER_FIELD

Payload = Union[bytes, BinaryIO]


class Message:
    """
    Immutable FCP message.

    Fields keep their insertion order, which is the order they are written
    to the wire. Values are always strings; ``None`` values passed to the
    constructor are dropped so builders can pass optional fields directly.
    The payload is either ``bytes``, a readable binary file object (outgoing
    uploads) or a bounded stream over the socket (received messages).
    """

    __slots__ = ("_name", "_fields", "_payload")

    def __init__(
        self,
        name: str,
        fields: Optional[Union[Mapping[str, Any], Iterator[Tuple[str, Any]]]] = None,
        payload: Optional[Payload] = None,
    ):
        items = fields.items() if isinstance(fields, Mapping) else (fields or ())
        ordered = {}
        for key, value in items:
            if value is None:
                continue
            ordered[str(key)] = _field_value(value)
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_fields", MappingProxyType(ordered))
        object.__setattr__(self, "_payload", payload)

    def __setattr__(self, key, value):
        raise AttributeError("Message is immutable")

    @property
    def name(self) -> str:
        return self._name

    @property
    def fields(self) -> Mapping[str, str]:
        return self._fields

    @property
    def payload(self) -> Optional[Payload]:
        return self._payload

    @property
    def identifier(self) -> Optional[str]:
        return self._fields.get(IDENTIFIER_FIELD)

    @property
    def data_length(self) -> Optional[int]:
        value = self._fields.get(DATA_LENGTH_FIELD)
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._fields.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self._fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def with_fields(self, **updates: Any) -> "Message":
        """Return a copy with fields added or replaced (``None`` removes a field)."""
        merged = dict(self._fields)
        for key, value in updates.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        return Message(self._name, merged, self._payload)

    def with_payload(self, payload: Optional[Payload], length: Optional[int] = None) -> "Message":
        """Return a copy carrying ``payload``, setting DataLength when it is known."""
        if length is None and isinstance(payload, (bytes, bytearray)):
            length = len(payload)
        fields = dict(self._fields)
        if length is not None:
            fields[DATA_LENGTH_FIELD] = str(length)
        return Message(self._name, fields, payload)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return (
            self._name == other._name
            and list(self._fields.items()) == list(other._fields.items())
            and self._payload == other._payload
        )

    def __hash__(self) -> int:
        return hash((self._name, tuple(self._fields.items())))

    def __repr__(self) -> str:
        payload = ""
        if self._payload is not None:
            payload = f", payload={self.data_length} bytes"
        return f"Message({self._name!r}, {dict(self._fields)!r}{payload})"


def _field_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
