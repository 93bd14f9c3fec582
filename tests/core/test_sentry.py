"""Sentry integration tests."""

from taxaudit.core.config import settings
from taxaudit.core.sentry import init_sentry, scrub_client_data


def test_init_sentry_without_dsn(monkeypatch) -> None:
    monkeypatch.setattr(settings, "sentry_dsn", None)
    assert init_sentry() is False


def test_scrub_client_data_drops_payloads() -> None:
    event = {
        "request": {
            "url": "http://test/api/clients",
            "method": "POST",
            "data": {"name": "Acme", "gstn": "24ABCDE1234F1Z5"},
            "query_string": "search=acme",
        },
        "level": "error",
    }

    scrubbed = scrub_client_data(event, {})

    assert scrubbed["request"] == {"url": "http://test/api/clients", "method": "POST"}
    assert scrubbed["level"] == "error"
