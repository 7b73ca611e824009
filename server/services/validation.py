"""Privileged and unprivileged cache request policy.

Pure functions of (params, privileged, settings). The first violated rule
is raised; callers must not expect several errors at once.
"""

from datetime import timedelta

from core.config import Settings
from core.errors import (
    BodyTooLargeError,
    InvalidRequestedKeyError,
    InvalidRequestedKeyLengthError,
    InvalidTTLError,
    NonAuthorizedError,
)
from models.request import CacheRequestParams, UsageReason


def validate_request(params: CacheRequestParams, privileged: bool, settings: Settings) -> None:
    if privileged:
        validate_privileged(params, settings)
    else:
        validate_unprivileged(params, settings)


def validate_unprivileged(params: CacheRequestParams, settings: Settings) -> None:
    if params.requested_key:
        raise NonAuthorizedError()
    if params.body_len > settings.unprivileged_max_body_size:
        raise BodyTooLargeError()
    # Zero TTL (eternal) falls below the minimum here
    if params.ttl < settings.min_ttl:
        raise InvalidTTLError()
    if params.ttl > settings.unprivileged_max_ttl:
        raise InvalidTTLError()
    if _key_length(params, settings) < settings.unprivileged_min_key_length:
        raise InvalidRequestedKeyLengthError()
    _validate_common(params, settings)


def validate_privileged(params: CacheRequestParams, settings: Settings) -> None:
    if params.requested_key:
        validate_requested_key(params.requested_key, settings)
    if params.body_len > settings.privileged_max_body_size:
        raise BodyTooLargeError()
    if params.ttl < timedelta(0):
        raise InvalidTTLError()
    if params.ttl != timedelta(0) and params.ttl < settings.min_ttl:
        raise InvalidTTLError()
    if params.ttl > settings.privileged_max_ttl:
        raise InvalidTTLError()
    if _key_length(params, settings) < settings.privileged_min_key_length:
        raise InvalidRequestedKeyLengthError()
    _validate_common(params, settings)


def validate_requested_key(requested_key: str, settings: Settings) -> None:
    """Length bounds and charset membership of a caller chosen key."""
    if len(requested_key) > settings.max_key_length:
        raise InvalidRequestedKeyError("requested key longer than max")
    if len(requested_key) < settings.privileged_min_key_length:
        raise InvalidRequestedKeyError("requested key shorter than min")
    for char in requested_key:
        if char not in settings.allowed_key_chars:
            raise InvalidRequestedKeyError("requested key contains illegal char")


def _validate_common(params: CacheRequestParams, settings: Settings) -> None:
    if _key_length(params, settings) > settings.max_key_length:
        raise InvalidRequestedKeyLengthError()


def _key_length(params: CacheRequestParams, settings: Settings) -> int:
    return params.requested_key_length or settings.default_key_length


def usage_reason(params: CacheRequestParams, settings: Settings):
    """Why a privileged request needed its API key, or None.

    Priority: eternal TTL, short key length, custom key, large body.
    """
    if params.ttl == timedelta(0):
        return UsageReason.PERSISTKEY
    if _key_length(params, settings) < settings.unprivileged_min_key_length:
        return UsageReason.CUSTOMKEYLEN
    if params.requested_key:
        return UsageReason.CUSTOMKEY
    if params.body_len > settings.unprivileged_max_body_size:
        return UsageReason.LARGEBODY
    return None
