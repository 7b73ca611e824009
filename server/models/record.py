"""Record aggregate and its value objects.

A record is readable while both dimensions hold:
    disposable counter > 0 (or eternal) AND expiration date in the future (or eternal)

Successful read: check exhausted -> check expired -> counter - 1 -> clicks + 1 -> body.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from constants import MAX_DISPOSABLE
from core.errors import RecordCounterExhaustedError, RecordExpiredError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExpirationDate:
    """Absolute expiration instant, or eternal."""
    at: datetime
    eternal: bool = False

    @classmethod
    def from_ttl(cls, ttl: timedelta, now: Optional[datetime] = None) -> "ExpirationDate":
        """Zero TTL means eternal."""
        now = now or utcnow()
        return cls(at=now + ttl, eternal=ttl == timedelta(0))

    def expired(self) -> bool:
        if self.eternal:
            return False
        return utcnow() > self.at

    def until(self) -> timedelta:
        """Remaining lifetime, zero if eternal. Negative once expired."""
        if self.eternal:
            return timedelta(0)
        return self.at - utcnow()


class DisposableCounter:
    """Remaining permitted reads. Never goes below zero."""

    def __init__(self, value: int, eternal: bool = False):
        if value < 0 or value > MAX_DISPOSABLE:
            raise ValueError(f"disposable counter must be between 0 and {MAX_DISPOSABLE}")
        self._value = value
        self._eternal = eternal
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    @property
    def eternal(self) -> bool:
        return self._eternal

    def sub(self) -> None:
        if self._eternal:
            return
        with self._lock:
            if self._value > 0:
                self._value -= 1

    def exhausted(self) -> bool:
        if self._eternal:
            return False
        return self._value < 1

    def __repr__(self) -> str:
        return f"DisposableCounter(value={self._value}, eternal={self._eternal})"


class ClicksCounter:
    """Successful reads counter."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def increase(self) -> None:
        with self._lock:
            self._value += 1

    def __repr__(self) -> str:
        return f"ClicksCounter(value={self._value})"


@dataclass
class Record:
    """Cached paste."""
    key: str
    body: bytes
    expiration_date: ExpirationDate
    disposable_counter: DisposableCounter
    clicks: ClicksCounter = field(default_factory=ClicksCounter)
    url: bool = False

    @classmethod
    def create(cls, key: str, body: bytes, ttl: timedelta, disposable: int,
               url: bool = False, clicks: int = 0) -> "Record":
        """Build a record from request-level values.

        A zero disposable count means the record can be read any number of
        times; a zero TTL means it never expires.
        """
        return cls(
            key=key,
            body=body,
            expiration_date=ExpirationDate.from_ttl(ttl),
            disposable_counter=DisposableCounter(disposable, eternal=disposable == 0),
            clicks=ClicksCounter(clicks),
            url=url,
        )

    def get_body(self) -> bytes:
        """Checked read that mutates the counters.

        Raises:
            RecordCounterExhaustedError: disposable reads used up (takes precedence)
            RecordExpiredError: past expiration date
        """
        if self.counter_exhausted():
            raise RecordCounterExhaustedError()
        if self.expired():
            raise RecordExpiredError()

        self.disposable_counter.sub()
        self.clicks.increase()
        return self.body

    def raw_body(self) -> bytes:
        """Unchecked accessor for storage adapters."""
        return self.body

    def ttl(self) -> timedelta:
        return self.expiration_date.until()

    def expired(self) -> bool:
        return self.expiration_date.expired()

    def counter_exhausted(self) -> bool:
        return self.disposable_counter.exhausted()

    @property
    def click_count(self) -> int:
        return self.clicks.value

    @property
    def countdown(self) -> int:
        return self.disposable_counter.value

    @property
    def eternal(self) -> bool:
        """Eternal on the disposable axis."""
        return self.disposable_counter.eternal
