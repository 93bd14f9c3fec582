"""Per-request log correlation."""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from taxaudit.core.logging import get_logger, reset_request_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log line of a request with one id and echo it back.

    The acting user and client are cleared first; dependencies fill them in
    once they are resolved.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        reset_request_context(request_id)

        response = await call_next(request)
        if response.status_code >= 500:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
