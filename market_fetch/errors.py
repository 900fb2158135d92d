"""
Error taxonomy for the fetch layer.

Registration and lookup failures derive from ProviderError; request failures
derive from FetchError and carry the URL, attempt count and the last
observed status code so callers can decide on provider-level fallback.
"""
from __future__ import annotations

import enum
from typing import Any, Dict, Optional


class ProviderErrorType(enum.Enum):
    """Coarse classification of a failed provider request."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


_STATUS_TO_TYPE = {
    400: ProviderErrorType.BAD_REQUEST,
    401: ProviderErrorType.UNAUTHORIZED,
    403: ProviderErrorType.UNAUTHORIZED,
    404: ProviderErrorType.NOT_FOUND,
    408: ProviderErrorType.TIMEOUT,
    429: ProviderErrorType.RATE_LIMITED,
    501: ProviderErrorType.NOT_IMPLEMENTED,
    502: ProviderErrorType.SERVICE_UNAVAILABLE,
    503: ProviderErrorType.SERVICE_UNAVAILABLE,
    504: ProviderErrorType.SERVICE_UNAVAILABLE,
}


def error_type_for_status(status_code: Optional[int]) -> ProviderErrorType:
    """Map an HTTP status to a ProviderErrorType (None means no response was received)."""
    if status_code is None:
        return ProviderErrorType.NETWORK_ERROR
    return _STATUS_TO_TYPE.get(status_code, ProviderErrorType.UNKNOWN)


class MarketFetchError(Exception):
    """Base class for every error raised by market_fetch."""


class ProviderError(MarketFetchError):
    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderInitializationError(ProviderError):
    """provider.initialize() raised; the provider was not registered."""


class ProviderValidationError(ProviderError):
    """provider.validate_config() returned False; the provider was not registered."""


class ProviderNotFoundError(ProviderError, LookupError):
    """Lookup of a provider name that is not registered."""


class AllProvidersFailedError(ProviderError):
    """Every provider in the fallback chain failed for one operation."""

    def __init__(self, operation: str, errors: Dict[str, str]) -> None:
        detail = "; ".join(f"{name}: {msg}" for name, msg in errors.items()) or "no providers registered"
        super().__init__(f"All providers failed for {operation}: {detail}", provider="*")
        self.operation = operation
        self.errors = dict(errors)


class FetchError(MarketFetchError):
    """A request that did not produce a usable response."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        attempts: int,
        status_code: Optional[int] = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts
        self.status_code = status_code
        self.response = response

    @property
    def error_type(self) -> ProviderErrorType:
        return error_type_for_status(self.status_code)


class FatalRequestError(FetchError):
    """Non-retryable failure (4xx other than 408/429, or an unclassifiable exception)."""


class RetriesExhaustedError(FetchError):
    """Every attempt allowed by the retry policy ended in a retryable failure."""


class DeadlineExceededError(FetchError):
    """The caller's overall deadline elapsed before a successful attempt."""
