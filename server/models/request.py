"""Per-request value objects and usage audit events."""

import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict


@dataclass(frozen=True)
class CacheRequestParams:
    """One inbound cache request, constructed per request and consumed once.

    A zero ``requested_key_length`` means "use the configured default".
    """
    body: bytes
    ttl: timedelta
    source_ip: str = ""
    api_key: str = ""
    requested_key: str = ""
    requested_key_length: int = 0
    disposable: int = 0
    is_url: bool = False

    @property
    def body_len(self) -> int:
        return len(self.body)


class UsageReason(str, Enum):
    """Why a request needed privileges.

    Checked in declaration order; the first match is reported.
    """
    PERSISTKEY = "PERSISTKEY"        # eternal TTL
    CUSTOMKEYLEN = "CUSTOMKEYLEN"    # key shorter than unprivileged minimum
    CUSTOMKEY = "CUSTOMKEY"          # caller chosen key
    LARGEBODY = "LARGEBODY"          # body above unprivileged maximum


@dataclass(frozen=True)
class APIKeyUsedEvent:
    """Audit event emitted when a privileged feature was used."""
    api_key_id: str
    reason: UsageReason
    source_ip: str
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dict suitable for a stream entry."""
        return {
            "apikey_id": self.api_key_id,
            "reason": self.reason.value,
            "from_ip": self.source_ip,
            "created_at": self.created_at,
        }
