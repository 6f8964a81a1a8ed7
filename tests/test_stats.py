"""
Tests for fcp.stats and fcp.logging_setup modules.
"""

import logging
import os
import threading

from fcp.logging_setup import format_block, reset_logging, setup_logging
from fcp.stats import ConnectionStats, MessageStatistics, get_message_statistics


class TestMessageStatistics:
    """Tests for MessageStatistics."""

    def test_counts(self):
        stats = MessageStatistics()
        stats.increment("NodeHello")
        stats.increment("Peer", 3)
        assert stats.count("Peer") == 3
        assert stats.count("Unseen") == 0
        assert stats.total() == 4
        assert stats.get_stats() == {"NodeHello": 1, "Peer": 3}

    def test_concurrent_increments(self):
        stats = MessageStatistics()

        def worker():
            for _ in range(1000):
                stats.increment("Peer")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert stats.count("Peer") == 4000

    def test_summary_orders_by_count(self):
        stats = MessageStatistics()
        stats.increment("NodeHello")
        stats.increment("Peer", 2)
        lines = stats.format_summary().splitlines()
        assert lines[0].startswith("[STATS] Uptime:")
        assert lines[1:] == ["  Peer: 2", "  NodeHello: 1"]

    def test_reset(self):
        stats = MessageStatistics()
        stats.increment("Peer")
        stats.reset()
        assert stats.total() == 0

    def test_global_instance(self):
        assert get_message_statistics() is get_message_statistics()


class TestConnectionStats:
    def test_as_dict(self):
        stats = ConnectionStats(messages_sent=2, bytes_sent=40, connects=1)
        assert stats.as_dict() == {
            "messages_sent": 2,
            "messages_received": 0,
            "bytes_sent": 40,
            "connects": 1,
            "connected_at": None,
        }


class TestLogging:
    """Tests for the logging setup."""

    def test_format_block(self):
        assert format_block("NODE", ["a", "b"]) == "[NODE]\n  a\n  b"

    def test_file_logging(self, temp_dir):
        path = os.path.join(temp_dir, "logs", "fcp.log")
        reset_logging()
        try:
            logger = setup_logging(log_to_file=True, log_to_console=False, log_file=path)
            assert setup_logging() is logger
            logging.getLogger("fcp.connection").debug("hello file")
            for handler in logger.handlers:
                handler.flush()
            with open(path) as f:
                assert "hello file" in f.read()
        finally:
            reset_logging()
