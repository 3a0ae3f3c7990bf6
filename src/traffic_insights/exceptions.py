"""
Exception classes for the traffic insights pipeline.

All exceptions inherit from InsightsError and provide structured
error information with codes, messages, and optional details.
Only these hard errors cross the pipeline boundary; per-field provider
failures are recorded as coverage notes instead.
"""

from typing import Optional


class InsightsError(Exception):
    """Base exception for all traffic insights errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(InsightsError):
    """Raised when the requested domain or query parameters are invalid."""

    pass


class RateLimitExceeded(InsightsError):
    """Raised when a caller has used up its request window."""

    def __init__(
        self,
        message: str,
        retry_after_seconds: int,
        reset_at: float,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(code="rate_limited", message=message, details=details)
        self.retry_after_seconds = retry_after_seconds
        self.reset_at = reset_at


class ConfigurationError(InsightsError):
    """Raised when the provider credential is missing or unusable."""

    pass


class UpstreamError(InsightsError):
    """Raised when the provider could not be reached at all."""

    pass
