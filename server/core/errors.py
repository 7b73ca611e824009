"""Paste service exception hierarchy.

Four families, each mapped to one class of HTTP outcome by the routers:
client input errors, authorization errors, absence, and infrastructure
failures.
"""


class PasteError(Exception):
    """Base exception for all paste service errors."""

    message = "paste error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)


# =============================================================================
# CLIENT INPUT
# =============================================================================

class ClientInputError(PasteError):
    """Request parameters rejected by policy."""


class BodyTooLargeError(ClientInputError):
    message = "body too large"


class InvalidTTLError(ClientInputError):
    message = "invalid ttl"


class InvalidRequestedKeyLengthError(ClientInputError):
    message = "invalid requested key length"


class InvalidRequestedKeyError(ClientInputError):
    message = "invalid requested key"


class RequestedKeyExistsError(ClientInputError):
    message = "requested key already exists"


class NonAuthorizedError(ClientInputError):
    """Unprivileged caller used a privileged-only parameter."""

    message = "non authorized"


class InvalidParameterError(ClientInputError):
    """Malformed request parameter."""

    message = "invalid parameter"


# =============================================================================
# AUTHORIZATION
# =============================================================================

class AuthorizationError(PasteError):
    """Access denied."""


class APIKeyInvalidError(AuthorizationError):
    """API key unknown or revoked; the two cases are not distinguished."""

    message = "apikey invalid"


class QuotaExhaustedError(AuthorizationError):
    message = "quota exhausted"


# =============================================================================
# ABSENCE
# =============================================================================

class NotFoundError(PasteError):
    """Requested entity does not exist."""


class RecordNotFoundError(NotFoundError):
    message = "record not found"


class RecordCounterExhaustedError(NotFoundError):
    message = "record counter exhausted"


class RecordExpiredError(NotFoundError):
    message = "record is expired"


class APIKeyNotFoundError(NotFoundError):
    message = "apikey not found"


class QuotaNotFoundError(NotFoundError):
    message = "quota not found"


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

class InfrastructureError(PasteError):
    """Store, compression or key-space failure."""


class StorageError(InfrastructureError):
    message = "storage failure"


class StorageTimeoutError(InfrastructureError):
    message = "timeout"


class CompressionError(InfrastructureError):
    message = "compression failure"


class MaxKeyLengthReachedError(InfrastructureError):
    message = "max key length reached"


class InvalidQuotaError(PasteError, ValueError):
    """Default quota below one is a configuration error."""

    message = "default quota must be at least 1"
