"""Per-request logging context and last-resort error handling."""

import uuid

import structlog
from fastapi import Request, status
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import get_logger

logger = get_logger(__name__)


def client_ip(request: Request) -> str:
    """Source address, honouring reverse proxy headers.

    First ``X-Forwarded-For`` entry, then ``X-Real-IP``, then the peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return ""


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request_id and source_ip into structlog contextvars."""

    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            source_ip=client_ip(request),
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers["X-Request-ID"] = request_id
        return response


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception", error_type=type(e).__name__, error=str(e), exc_info=True)
            return PlainTextResponse(
                "internal server error",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
