"""Domain exceptions.

Hey future me - most of these never reach a caller! The resolution core absorbs
provider and cache failures at the boundary that produced them (a provider that
blows up just contributes no entry, a cache write that fails is logged and the
resolved result still goes out). The only thing that is SUPPOSED to propagate is
ValidationError, which means somebody called us wrong (empty text, None title).
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Store message as an attribute so handlers don't have to parse str(exception).
    # Don't raise this directly - always use a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Raised for programming-contract violations: empty or missing required input.

    HTTP Status: 422

    Example:
        raise ValidationError("Lookup text must not be empty")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    HTTP Status: 500

    Example:
        raise ConfigurationError("AT Protocol record store needs an identifier and app password")
    """

    pass


# =============================================================================
# PROVIDER ERRORS
# Raised by provider adapters, swallowed by the ProviderGateway. A provider that
# raises any of these simply contributes no entry to the resolution.
# =============================================================================


class ProviderUnavailableError(DomainException):
    """A streaming provider could not answer (network error, 5xx, bad payload).

    Example:
        raise ProviderUnavailableError("spotify", "Spotify API error: 503")
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class RateLimitExceededError(ProviderUnavailableError):
    """Provider rate limit was exceeded even after retrying.

    Example:
        raise RateLimitExceededError("spotify", "Spotify rate limit exceeded - retry after 30s", 30)
    """

    def __init__(
        self, provider: str, message: str, retry_after: int | None = None
    ) -> None:
        super().__init__(provider, message)
        self.retry_after = retry_after


class AuthenticationError(ProviderUnavailableError):
    """Provider rejected our credentials (bad client id/secret, expired token)."""

    pass


# =============================================================================
# CACHE / PERSISTENCE ERRORS
# =============================================================================


class RecordStoreError(DomainException):
    """Durable record store failed to read or write a record."""

    pass


class RecordStoreInconsistencyError(RecordStoreError):
    """A pointer exists in the index but the record behind it is unusable.

    Hey future me - this triggers SELF-HEALING in the cache coordinator. We don't
    delete anything, we just resolve again and write a fresh record.
    """

    def __init__(self, pointer: str, reason: str) -> None:
        super().__init__(f"Record {pointer} is unreadable: {reason}")
        self.pointer = pointer
        self.reason = reason


class PersistenceError(DomainException):
    """Writing a resolved result to the index or record store failed."""

    pass


__all__ = [
    # Base
    "DomainException",
    # Contract violations
    "ValidationError",
    "ConfigurationError",
    # Provider errors
    "ProviderUnavailableError",
    "RateLimitExceededError",
    "AuthenticationError",
    # Cache errors
    "RecordStoreError",
    "RecordStoreInconsistencyError",
    "PersistenceError",
]
