"""Centralized constants shared by configuration, storage and validation.

Single source of truth for charsets, size units and store field names.
"""

from typing import FrozenSet

# =============================================================================
# KEY SPACE
# =============================================================================

KEYS_CHARSET: str = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# =============================================================================
# SIZES AND PERIODS
# =============================================================================

ONE_MEBIBYTE: int = 1048576

HOURS_IN_DAY: int = 24
DAYS_IN_MONTH: int = 30
HOURS_IN_MONTH: int = HOURS_IN_DAY * DAYS_IN_MONTH
MONTHS_IN_YEAR: int = 12

# Disposable counter is persisted as an unsigned 8-bit value
MAX_DISPOSABLE: int = 255

# =============================================================================
# PERSISTED RECORD LAYOUT (hash fields are the wire contract)
# =============================================================================

RECORD_FIELD_BODY = "body"
RECORD_FIELD_TTL = "ttl"
RECORD_FIELD_CLICKS = "clicks"
RECORD_FIELD_COUNTDOWN = "countdown"
RECORD_FIELD_ETERNAL = "eternal"
RECORD_FIELD_URL = "url"

RECORD_FIELDS: FrozenSet[str] = frozenset([
    RECORD_FIELD_BODY,
    RECORD_FIELD_TTL,
    RECORD_FIELD_CLICKS,
    RECORD_FIELD_COUNTDOWN,
    RECORD_FIELD_ETERNAL,
    RECORD_FIELD_URL,
])

QUOTA_FIELD_VALUE = "value"

APIKEY_FIELD_ID = "id"
APIKEY_FIELD_VALID = "valid"

# gzip magic bytes marking a compressed body
GZIP_MAGIC: bytes = b"\x1f\x8b"

# API key secret length in hex characters
APIKEY_LENGTH: int = 32
