"""Static service context and per-pass log context."""
from __future__ import annotations

import logging
from typing import Iterator

import pytest
import structlog

from shared.utils.logging import log_context, setup_logging


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_binds_service_and_function_type() -> None:
    setup_logging("live-score-sync", function_type="live_score_sync")
    ctx = structlog.contextvars.get_contextvars()
    assert ctx["service"] == "live-score-sync"
    assert ctx["function_type"] == "live_score_sync"
    assert "instance_id" in ctx


def test_setup_logging_without_function_type() -> None:
    setup_logging("live-score-sync")
    assert "function_type" not in structlog.contextvars.get_contextvars()


def test_log_context_is_scoped_to_block() -> None:
    structlog.contextvars.bind_contextvars(service="live-score-sync")
    with log_context(pass_id="abc123", request_id=None):
        ctx = structlog.contextvars.get_contextvars()
        assert ctx["pass_id"] == "abc123"
        assert "request_id" not in ctx
        assert ctx["service"] == "live-score-sync"
    ctx = structlog.contextvars.get_contextvars()
    assert "pass_id" not in ctx
    assert ctx["service"] == "live-score-sync"
