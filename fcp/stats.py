"""
Statistics collection for the FCP client.

Provides thread-safe counters for received messages and per-connection
traffic. The counters are diagnostic only; nothing reads them to make
decisions.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, Optional


@dataclass
class ConnectionStats:
    """Traffic counters for a single connection."""

    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    connects: int = 0
    connected_at: Optional[float] = None
    created_at: float = field(default_factory=time.time)

    def as_dict(self) -> Dict[str, object]:
        return {
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
            "bytes_sent": self.bytes_sent,
            "connects": self.connects,
            "connected_at": self.connected_at,
        }


class MessageStatistics:
    """
    Process-wide count of received messages by name.

    Shared by every connection in the process.
    """

    def __init__(self):
        self._lock = RLock()
        self._counts: Counter = Counter()
        self._start_time = time.time()

    def increment(self, message_name: str, amount: int = 1) -> None:
        """Count a received message."""
        with self._lock:
            self._counts[message_name] += amount

    def count(self, message_name: str) -> int:
        with self._lock:
            return self._counts[message_name]

    def get_stats(self) -> Dict[str, int]:
        """Get a copy of all counters."""
        with self._lock:
            return dict(self._counts)

    def total(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    def reset(self) -> None:
        """Reset all statistics."""
        with self._lock:
            self._counts.clear()
            self._start_time = time.time()

    def format_summary(self) -> str:
        """Format statistics as a human-readable summary."""
        with self._lock:
            uptime = int(time.time() - self._start_time)
            counts = sorted(self._counts.items(), key=lambda item: (-item[1], item[0]))
        hours, remainder = divmod(uptime, 3600)
        minutes, seconds = divmod(remainder, 60)

        lines = [f"[STATS] Uptime: {hours}h {minutes}m {seconds}s"]
        lines.extend(f"  {name}: {count}" for name, count in counts)
        return "\n".join(lines)


# Global instance
_message_statistics: Optional[MessageStatistics] = None
_init_lock = RLock()


def get_message_statistics() -> MessageStatistics:
    """Get global message statistics (lazily initialized)."""
    global _message_statistics
    if _message_statistics is None:
        with _init_lock:
            if _message_statistics is None:
                _message_statistics = MessageStatistics()
    return _message_statistics


def stat_message_received(message_name: str) -> None:
    """Record a received message."""
    get_message_statistics().increment(message_name)
