"""Request logging middleware."""

import json
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ecfr.requests")

MAX_LOGGED_BODY = 500


def _describe_error(body: bytes) -> str:
    """Summarize an error body, surfacing the upstream eCFR call if present."""
    text = body.decode("utf-8", errors="replace")
    try:
        detail = json.loads(text).get("detail")
    except (ValueError, AttributeError):
        detail = None

    if isinstance(detail, dict) and detail.get("url"):
        return (
            f"upstream {detail.get('status_code')} from {detail['url']}: "
            f"{detail.get('error')}"
        )
    if len(text) > MAX_LOGGED_BODY:
        return text[:MAX_LOGGED_BODY] + "..."
    return text


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status, and duration.

    Error responses are buffered so their detail (including the failing
    upstream URL for 502s) lands in the log; the client still receives the
    original body. The elapsed time is returned in ``X-Process-Time-Ms``.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"

        if response.status_code < 400 or not hasattr(response, "body_iterator"):
            response.headers["X-Process-Time-Ms"] = f"{duration_ms:.0f}"
            logger.info(
                "%s %s -> %d (%.0fms)",
                request.method,
                target,
                response.status_code,
                duration_ms,
            )
            return response

        chunks = [
            chunk.encode("utf-8") if isinstance(chunk, str) else chunk
            async for chunk in response.body_iterator
        ]
        body = b"".join(chunks)

        log = logger.warning if response.status_code < 500 else logger.error
        log(
            "%s %s -> %d (%.0fms): %s",
            request.method,
            target,
            response.status_code,
            duration_ms,
            _describe_error(body),
        )

        headers = dict(response.headers)
        headers.pop("content-length", None)
        headers["X-Process-Time-Ms"] = f"{duration_ms:.0f}"
        return Response(
            content=body,
            status_code=response.status_code,
            headers=headers,
            media_type=response.media_type,
        )
