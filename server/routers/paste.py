"""Paste routes: create a record, read it back, read its click count."""

import html
import re
from datetime import timedelta
from urllib.parse import quote, urlsplit

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, Response

from constants import MAX_DISPOSABLE
from core.config import Settings
from core.errors import (
    BodyTooLargeError,
    InvalidParameterError,
    InvalidRequestedKeyLengthError,
    InvalidTTLError,
)
from core.logging import get_logger
from middleware.request_context import client_ip
from models.request import CacheRequestParams
from services.cache_service import CacheService
from services.get_service import GetService

logger = get_logger(__name__)
router = APIRouter(tags=["paste"])

# Go-style durations: "300ms", "1h30m", "-1.5h", "0"
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Reserved and already-escaped characters are left as they are
_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"

_TRUE_VALUES = ("1", "t", "T", "true", "TRUE", "True")
_FALSE_VALUES = ("0", "f", "F", "false", "FALSE", "False")


# =============================================================================
# PARAMETER PARSING
# =============================================================================

def parse_duration(value: str) -> timedelta:
    """Parse a duration like ``1h30m`` or ``45s``. A bare ``0`` is allowed."""
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise InvalidTTLError(f"invalid duration {value!r}")

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise InvalidTTLError(f"invalid duration {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise InvalidTTLError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


def parse_bool(value: str, name: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise InvalidParameterError(f"invalid {name} value {value!r}")


def parse_int(value: str, name: str, error=InvalidParameterError, low: int = 0, high: int = None) -> int:
    try:
        parsed = int(value)
    except ValueError as e:
        raise error(f"invalid {name} value {value!r}") from e
    if parsed < low or (high is not None and parsed > high):
        raise error(f"{name} out of range")
    return parsed


def is_absolute_url(body: bytes) -> bool:
    try:
        parts = urlsplit(body.decode("utf-8").strip())
    except (UnicodeDecodeError, ValueError):
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def sniff_content_type(body: bytes) -> str:
    try:
        body.decode("utf-8")
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


async def read_body(request: Request, limit: int) -> bytes:
    """Read the request body, refusing to buffer more than ``limit`` bytes."""
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise BodyTooLargeError()
        chunks.append(chunk)
    return b"".join(chunks)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_settings(request: Request) -> Settings:
    return request.app.state.container.settings()


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.container.cache_service()


def get_get_service(request: Request) -> GetService:
    return request.app.state.container.get_service()


async def cache_request_params(request: Request, settings: Settings = Depends(get_settings)) -> CacheRequestParams:
    """Build request params from the query string and raw body."""
    query = request.query_params

    ttl = settings.default_ttl
    if "ttl" in query:
        ttl = parse_duration(query["ttl"])

    requested_key_length = 0
    if "len" in query:
        requested_key_length = parse_int(query["len"], "len", error=InvalidRequestedKeyLengthError)

    disposable = 0
    if "disposable" in query:
        disposable = parse_int(query["disposable"], "disposable", high=MAX_DISPOSABLE)

    is_url = False
    if "url" in query:
        is_url = parse_bool(query["url"], "url")

    # One byte past the privileged limit is enough for the validator to reject
    body = await read_body(request, settings.privileged_max_body_size + 1)
    if is_url and not is_absolute_url(body):
        raise InvalidParameterError("body is not an absolute url")

    return CacheRequestParams(
        body=body,
        ttl=ttl,
        source_ip=client_ip(request),
        api_key=query.get("apikey", ""),
        requested_key=query.get("key", ""),
        requested_key_length=requested_key_length,
        disposable=disposable,
        is_url=is_url,
    )


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_paste(
    request: Request,
    params: CacheRequestParams = Depends(cache_request_params),
    service: CacheService = Depends(get_cache_service),
):
    """Store the body and answer with its address."""
    key = await service.serve(params)
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("host") or request.url.netloc
    return PlainTextResponse(f"{scheme}://{host}/{key}/", status_code=status.HTTP_201_CREATED)


@router.get("/{key}/")
async def get_paste(key: str, service: GetService = Depends(get_get_service)):
    """Return the body, or redirect when the record holds a URL."""
    answer = await service.get_body(key)
    if answer.is_url:
        # Header values must be latin-1; non-ASCII targets go out percent-encoded
        location = quote(answer.body.decode("utf-8").strip(), safe=_URL_SAFE)
        return Response(
            content=f'<a href="{html.escape(location)}">See Other</a>.\n',
            status_code=status.HTTP_303_SEE_OTHER,
            headers={"Location": location},
            media_type="text/html; charset=utf-8",
        )
    return Response(content=answer.body, media_type=sniff_content_type(answer.body))


@router.get("/{key}/clicks/")
async def get_paste_clicks(key: str, service: GetService = Depends(get_get_service)):
    """Successful read count for ``key``."""
    clicks = await service.get_clicks(key)
    return PlainTextResponse(str(clicks))
