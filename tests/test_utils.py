"""
Tests for URL helpers, hashing, metrics and logging setup.
"""

import logging

import pytest

from ui_explorer.config import LoggingSettings
from ui_explorer.utils.hashing import short_hash
from ui_explorer.utils.logging import (
    ROOT_LOGGER_NAME,
    get_logger,
    get_logger_with_context,
    reset_logging,
    setup_logging,
)
from ui_explorer.utils.metrics import Metrics, TimingStats, time_llm_call
from ui_explorer.utils.urls import get_hostname, is_same_domain, normalize_url, resolve_url


class TestUrls:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://Shop.Test/Cart/?step=2#top", "https://shop.test/cart"),
            ("https://shop.test/", "https://shop.test"),
            ("https://shop.test", "https://shop.test"),
            ("/relative/path/", "/relative/path"),
        ],
    )
    def test_normalize(self, url, expected):
        assert normalize_url(url) == expected

    def test_hostname(self):
        assert get_hostname("https://WWW.Shop.test:8443/x") == "www.shop.test"
        assert get_hostname("/relative") is None

    def test_same_domain(self):
        assert is_same_domain("https://shop.test/a", "shop.test")
        assert is_same_domain("https://docs.shop.test/a", "shop.test")
        assert is_same_domain("/relative", "shop.test")
        assert not is_same_domain("https://notshop.test/a", "shop.test")
        assert not is_same_domain("https://other.test/a", "shop.test")

    def test_resolve(self):
        assert resolve_url("/pricing", "https://shop.test/a/b") == "https://shop.test/pricing"
        assert resolve_url("c", "https://shop.test/a/b") == "https://shop.test/a/c"
        assert resolve_url("https://other.test/", "https://shop.test/") == "https://other.test/"
        assert resolve_url("x", "not a url") is None


class TestHashing:
    def test_short_hash(self):
        assert short_hash("abc") == short_hash("abc")
        assert short_hash("abc") != short_hash("abd")
        assert len(short_hash("abc")) == 16
        assert len(short_hash("abc", length=8)) == 8


class TestMetrics:
    """Tests for the process-wide metrics collector."""

    def test_singleton(self):
        assert Metrics.get() is Metrics.get()

    def test_counters(self):
        metrics = Metrics.get()

        assert metrics.increment("exploration_steps") == 1
        assert metrics.increment("exploration_steps", 4) == 5
        assert metrics.get_counter("missing") == 0

    def test_reset(self):
        Metrics.get().increment("exploration_steps")
        Metrics.reset()

        assert Metrics.get().get_counter("exploration_steps") == 0

    def test_timing_stats(self):
        stats = TimingStats()
        stats.record(10.0)
        stats.record(30.0)

        assert stats.avg_ms == 20.0
        assert stats.to_dict() == {
            "count": 2,
            "total_ms": 40.0,
            "avg_ms": 20.0,
            "min_ms": 10.0,
            "max_ms": 30.0,
        }

    def test_empty_timing(self):
        assert TimingStats().to_dict()["min_ms"] == 0.0

    def test_llm_call_timer(self):
        with time_llm_call():
            pass

        metrics = Metrics.get()
        assert metrics.get_counter("llm_calls") == 1
        assert metrics.get_timing("llm_latency_ms").count == 1
        assert metrics.get_timing("unknown") is None

    def test_summary(self):
        metrics = Metrics.get()
        metrics.increment("heuristic_decisions", 1200)
        metrics.observe("llm_latency_ms", 12.5)

        text = metrics.summary()

        assert "heuristic_decisions: 1,200" in text
        assert "llm_latency_ms: 1 calls" in text
        assert set(metrics.snapshot()) == {"counters", "timings"}


class TestLogging:
    def test_child_loggers(self):
        assert get_logger().name == ROOT_LOGGER_NAME
        assert get_logger("ui_explorer.exploration").name == "ui_explorer.exploration"
        assert get_logger("plugins.custom").name == "ui_explorer.plugins.custom"

    def test_setup_is_idempotent(self):
        first = setup_logging(LoggingSettings(level="DEBUG"))
        handlers = list(first.handlers)

        second = setup_logging(LoggingSettings(level="ERROR"))

        assert second.level == logging.DEBUG
        assert second.handlers == handlers
        assert second.propagate is False

    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "explorer.log"

        logger = setup_logging(LoggingSettings(log_to_console=False, file_path=log_file))
        logger.info("run started")
        for handler in logger.handlers:
            handler.flush()

        assert "run started" in log_file.read_text()

    def test_reset(self):
        setup_logging()
        reset_logging()

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert logger.handlers == []
        assert logger.propagate is True

    def test_context_adapter(self, caplog):
        log = get_logger_with_context("exploration.explorer", run="a1b2c3")

        with caplog.at_level(logging.INFO, logger=ROOT_LOGGER_NAME):
            log.info("Step executed")

        assert "Step executed [run=a1b2c3]" in caplog.text
