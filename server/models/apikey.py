"""API key credential."""

import uuid
from dataclasses import dataclass


@dataclass
class APIKey:
    """Secret token plus a public id that is safe to log and audit."""
    key: str
    public_id: uuid.UUID
    valid: bool = True

    def invalidate(self) -> None:
        self.valid = False

    def reauthorize(self) -> None:
        self.valid = True
