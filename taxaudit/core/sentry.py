"""Sentry error tracking.

Request bodies and query strings carry client names, GSTN and PAN values,
so they are stripped from every event before it is sent.
"""

from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from taxaudit.core.config import settings

_SCRUBBED_REQUEST_KEYS = ("data", "query_string", "cookies")


def scrub_client_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """before_send hook removing request payloads from the event."""
    request = event.get("request")
    if isinstance(request, dict):
        for key in _SCRUBBED_REQUEST_KEYS:
            request.pop(key, None)
    return event


def init_sentry() -> bool:
    """Initialize Sentry when a DSN is configured.

    Returns:
        True when Sentry was initialized, False when no DSN is set.
    """
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=scrub_client_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes={*range(500, 600)},
            ),
        ],
    )
    return True


def capture_sync_failure(exc: BaseException) -> None:
    """Report a cloud sync failure that was recorded instead of raised.

    A no-op when Sentry is not initialized.
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("component", "cloud_sync")
        sentry_sdk.capture_exception(exc)
