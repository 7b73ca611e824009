"""Random key generation over a fixed charset.

Keys double as bearer tokens for private pastes, so candidates are drawn
from the secrets module rather than the random module.
"""

import secrets
from typing import Awaitable, Callable

from core.errors import MaxKeyLengthReachedError, RequestedKeyExistsError
from core.logging import get_logger

logger = get_logger(__name__)

ExistsFn = Callable[[str], Awaitable[bool]]


def generate_key(length: int, charset: str) -> str:
    """Generate a random key of ``length`` characters from ``charset``."""
    return "".join(secrets.choice(charset) for _ in range(length))


async def generate_unique_key(exists: ExistsFn, min_length: int, max_length: int,
                              charset: str, attempts_per_length: int) -> str:
    """Generate a key not currently present in the store.

    Retries on collision without a fixed bound. After ``attempts_per_length``
    collisions at the current length the length grows by one and the budget
    resets, trading key length for availability under key-space pressure.
    The caller's deadline is the only other way out of the loop.

    Args:
        exists: async existence check against the store
        min_length: starting key length
        max_length: longest acceptable key
        charset: symbols to draw from
        attempts_per_length: collisions tolerated before growing the length

    Returns:
        A key for which ``exists`` returned False

    Raises:
        MaxKeyLengthReachedError: length grew past ``max_length``
    """
    length = min_length
    attempts_left = attempts_per_length

    while True:
        if length > max_length:
            raise MaxKeyLengthReachedError()

        key = generate_key(length, charset)
        if not await exists(key):
            return key

        attempts_left -= 1
        if attempts_left < 1:
            length += 1
            attempts_left = attempts_per_length
            logger.warning("Key space pressure, growing key length",
                           length=length, max_length=max_length)


async def reserve_requested_key(exists: ExistsFn, requested_key: str) -> str:
    """Single existence check for a caller chosen key. No retry."""
    if await exists(requested_key):
        raise RequestedKeyExistsError()
    return requested_key
