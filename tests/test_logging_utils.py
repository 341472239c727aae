"""Tests for logging helpers."""

import logging

from common.logging_utils import Timer, configure_logging, extra_context, is_debug_enabled


def test_extra_context_drops_none():
    assert extra_context(event="x", package=None, count=0) == {"event": "x", "count": 0}


def test_configure_logging_level(monkeypatch):
    """Explicit levels win over the environment."""
    root = logging.getLogger()
    previous = root.level
    try:
        monkeypatch.setenv("BUNDLEFREE_LOG_LEVEL", "ERROR")
        configure_logging()
        assert root.level == logging.ERROR
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert is_debug_enabled(logging.getLogger("bundlefree.test"))
    finally:
        root.setLevel(previous)


def test_configure_logging_single_handler():
    root = logging.getLogger()
    configure_logging("INFO")
    count = len(root.handlers)
    configure_logging("INFO")
    assert len(root.handlers) == count


def test_timer_measures():
    with Timer() as timer:
        pass
    assert timer.duration_ms() >= 0
