"""
Unit tests for questline utilities.
"""

import logging
import time

import pytest

from questline.utils.cache import ResponseCache, make_cache_key
from questline.utils.logger import (
    QuestContextFormatter,
    context_suffix,
    get_logger,
    setup_logging,
)
from questline.utils.metrics import GenerationMetrics


class TestLogger:
    """Test the logging utilities"""

    def test_get_logger(self):
        """Test that get_logger returns a logger instance"""
        logger = get_logger("test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "test"

    def test_setup_logging_writes_file(self, tmp_path):
        """setup_logging installs a console handler and an optional file handler"""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "questline.log"
        try:
            setup_logging(level="INFO", log_file=str(log_file), enable_colors=False)
            get_logger("questline.test").info("[Test] hello")
            for handler in root.handlers:
                handler.flush()
            assert log_file.exists()
            assert "[Test] hello" in log_file.read_text()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)

    def test_file_lines_carry_quest_context(self, tmp_path):
        """Quest context passed through extra is appended to file output"""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "questline.log"
        try:
            setup_logging(level="INFO", log_file=str(log_file), enable_colors=False)
            get_logger("questline.test").info(
                "[QuestService] stored",
                extra={"component": "QuestService", "character_id": "hero-1"},
            )
            for handler in root.handlers:
                handler.flush()
            assert "[QuestService] stored {character_id=hero-1}" in log_file.read_text()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)

    def test_context_suffix(self):
        record = logging.makeLogRecord(
            {"msg": "hi", "character_id": "hero-1", "tier": 3, "component": "X"}
        )
        assert context_suffix(record) == " {character_id=hero-1, tier=3}"
        assert context_suffix(logging.makeLogRecord({"msg": "hi"})) == ""

    def test_formatter_without_context(self):
        formatter = QuestContextFormatter("%(message)s")
        assert formatter.format(logging.makeLogRecord({"msg": "plain"})) == "plain"


class TestResponseCache:
    """Test the TTL response cache"""

    def test_cache_key_is_order_independent(self):
        assert make_cache_key({"a": 1, "b": [1, 2]}) == make_cache_key(
            {"b": [1, 2], "a": 1}
        )
        assert make_cache_key({"a": 1}) != make_cache_key({"a": 2})
        assert len(make_cache_key({"a": 1})) == 64

    def test_hit_and_miss_counting(self):
        cache = ResponseCache(max_size=10, default_ttl=60)
        assert cache.get("missing") is None
        cache.set("k", "v")
        assert cache.get("k") == "v"

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_expired_entries_are_dropped(self):
        cache = ResponseCache(max_size=10, default_ttl=60)
        cache.set("k", "v", ttl=0.01)
        time.sleep(0.05)
        assert cache.get("k") is None
        assert cache.stats()["size"] == 0

    def test_eviction_when_full(self):
        cache = ResponseCache(max_size=4, default_ttl=60)
        for i in range(4):
            cache.set(f"k{i}", i, ttl=10 + i)
        cache.set("new", "value")

        assert cache.get("new") == "value"
        # the entry expiring soonest was evicted
        assert cache.get("k0") is None
        assert cache.stats()["size"] == 4

    def test_clear(self):
        cache = ResponseCache()
        cache.set("k", "v")
        cache.clear()
        assert cache.stats() == {
            "size": 0,
            "max_size": 1000,
            "hits": 0,
            "misses": 0,
            "hit_rate": 0,
            "total_requests": 0,
        }


class TestGenerationMetrics:
    """Test generation metrics collection"""

    def test_operation_timing(self):
        metrics = GenerationMetrics()
        metrics.start_operation("op-1", "creator")
        time.sleep(0.02)
        duration = metrics.end_operation("op-1", "creator", cost=0.002)

        assert duration >= 20
        assert metrics.calls[0]["agent"] == "creator"
        assert metrics.calls[0]["cost"] == 0.002

    def test_end_without_start_returns_zero(self):
        metrics = GenerationMetrics()
        assert metrics.end_operation("never-started", "creator") == 0.0
        assert metrics.calls == []

    def test_summary_groups_by_agent(self):
        metrics = GenerationMetrics()
        for i, agent in enumerate(["creator", "creator", "lorekeeper"]):
            metrics.start_operation(f"op-{i}", agent)
            metrics.end_operation(f"op-{i}", agent, cost=0.01, cached=(i == 1))

        summary = metrics.get_summary()
        assert summary["total_calls"] == 3
        assert summary["total_cost"] == pytest.approx(0.03)
        assert summary["cache_hits"] == 1
        assert summary["agents"]["creator"]["count"] == 2
        assert summary["agents"]["creator"]["cached"] == 1
        assert summary["agents"]["lorekeeper"]["count"] == 1

    def test_discard_and_reset(self):
        metrics = GenerationMetrics()
        metrics.start_operation("op-1", "memory")
        metrics.discard_operation("op-1")
        assert "op-1" not in metrics.start_times

        metrics.start_operation("op-2", "memory")
        metrics.end_operation("op-2", "memory")
        metrics.reset()
        assert metrics.get_summary()["total_calls"] == 0
