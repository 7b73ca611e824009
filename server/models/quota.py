"""Per source IP write allowance."""

import threading
from typing import Optional

from core.errors import InvalidQuotaError


class Quota:
    """Decrementing allowance that resets to its default.

    The value may go negative; it is exhausted once below one.
    """

    def __init__(self, source_ip: str, default: int, value: Optional[int] = None):
        if default < 1:
            raise InvalidQuotaError()
        self.source_ip = source_ip
        self._default = default
        self._value = default if value is None else value
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    @property
    def default(self) -> int:
        return self._default

    def sub(self) -> None:
        with self._lock:
            self._value -= 1

    def exhausted(self) -> bool:
        return self._value < 1

    def refresh(self) -> None:
        with self._lock:
            self._value = self._default

    def __repr__(self) -> str:
        return f"Quota(source_ip={self.source_ip!r}, value={self._value}, default={self._default})"
