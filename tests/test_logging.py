"""Tests for structured logging configuration."""

import pytest
import structlog

from taxaudit.core.config import settings
from taxaudit.core.logging import (
    _add_context_vars,
    client_name_ctx,
    configure_logging,
    request_id_ctx,
    reset_request_context,
    username_ctx,
)


@pytest.fixture
def processors(monkeypatch):
    """Configure logging under patched settings and return the processor chain."""

    def configure(environment: str, log_format: str | None) -> list:
        monkeypatch.setattr(settings, "environment", environment)
        monkeypatch.setattr(settings, "log_format", log_format)
        configure_logging()
        return structlog.get_config()["processors"]

    yield configure
    structlog.reset_defaults()


@pytest.mark.parametrize(
    ("environment", "log_format", "expect_json"),
    [
        ("development", "json", True),
        ("development", "JSON", True),
        ("production", None, True),
        ("development", None, False),
        ("production", "console", False),
    ],
)
def test_renderer_selection(processors, environment, log_format, expect_json) -> None:
    chain = processors(environment, log_format)

    has_json = any(isinstance(p, structlog.processors.JSONRenderer) for p in chain)
    has_console = any(isinstance(p, structlog.dev.ConsoleRenderer) for p in chain)
    assert has_json is expect_json
    assert has_console is not expect_json
    if expect_json:
        assert any(isinstance(p, structlog.processors.EventRenamer) for p in chain)


def test_context_vars_are_added_to_events() -> None:
    reset_request_context("req-1")
    client_name_ctx.set("Acme")
    username_ctx.set("Monal")
    try:
        event = _add_context_vars(None, "info", {"event": "entry_added"})
    finally:
        reset_request_context("")
        request_id_ctx.set(None)

    assert event == {
        "event": "entry_added",
        "request_id": "req-1",
        "client_name": "Acme",
        "username": "Monal",
    }


def test_reset_clears_user_and_client() -> None:
    username_ctx.set("Monal")
    client_name_ctx.set("Acme")

    reset_request_context("req-2")
    try:
        event = _add_context_vars(None, "info", {"event": "idle"})
    finally:
        request_id_ctx.set(None)

    assert event == {"event": "idle", "request_id": "req-2"}
