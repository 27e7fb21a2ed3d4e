"""Domain exceptions."""

from enum import Enum
from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - always use a specific subclass so callers
    # can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    The ONLY error that reaches callers of the resolution engine. Raised for
    contract violations: a key with neither artist nor track, a focus index
    outside the item list, radii that don't nest.

    Example:
        raise ValidationError("focus_index 12 outside item list of length 10")
    """

    pass


class ConfigurationError(DomainException):
    """Engine misconfiguration.

    Example:
        raise ConfigurationError("ResolutionEngine needs a lookup client")
    """

    pass


class ExternalServiceError(DomainException):
    """External service (iTunes Search, image CDN) returned an error."""

    pass


class LookupErrorKind(Enum):
    """Why an external search failed.

    All three are absorbed by the RequestCoordinator and end in a FALLBACK entry.
    """

    NETWORK = "network"  # transport failure or non-2xx status
    MALFORMED_RESPONSE = "malformed_response"  # body is not the JSON we expect
    TIMEOUT = "timeout"


class ArtworkLookupError(ExternalServiceError):
    """A single search call against the artwork service failed.

    Hey future me - status_code/retry_after are only set for HTTP status failures.
    A 429 carries retry_after so the coordinator can tell the RateLimiter to back off.
    The client itself NEVER retries.
    """

    def __init__(
        self,
        message: str,
        kind: LookupErrorKind = LookupErrorKind.NETWORK,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def is_rate_limited(self) -> bool:
        """Check if the service told us to slow down."""
        return self.status_code == 429


class PreloadErrorKind(Enum):
    """Why an artwork image could not be preloaded."""

    LOAD_FAILED = "load_failed"
    TIMEOUT = "timeout"


class ImagePreloadError(DomainException):
    """Preloading a found artwork image failed (download or decode)."""

    def __init__(
        self,
        message: str,
        kind: PreloadErrorKind = PreloadErrorKind.LOAD_FAILED,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url


__all__ = [
    # Base
    "DomainException",
    # Contract violations
    "ValidationError",
    "ConfigurationError",
    # External service exceptions
    "ExternalServiceError",
    "ArtworkLookupError",
    "LookupErrorKind",
    # Preload
    "ImagePreloadError",
    "PreloadErrorKind",
]
