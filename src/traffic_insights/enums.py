"""
Enumeration types for the traffic insights pipeline.

These enums provide type-safe constants for query modes, error codes,
and logging levels throughout the system.
"""

from enum import Enum
from typing import Optional


class InsightMode(Enum):
    """Reporting window requested by the caller."""

    MONTHLY = "monthly"
    LAST28 = "last28"

    @classmethod
    def parse(cls, value: Optional[str]) -> "InsightMode":
        """
        Parse a mode string, defaulting to monthly when absent.

        Raises:
            ValueError: If the value is not a known mode
        """
        if value is None or value == "":
            return cls.MONTHLY
        if isinstance(value, cls):
            return value
        return cls(value)

    @property
    def granularity(self) -> "Granularity":
        """Provider granularity matching this mode."""
        if self is InsightMode.LAST28:
            return Granularity.DAILY
        return Granularity.MONTHLY


class Granularity(Enum):
    """Provider time-series granularity."""

    DAILY = "daily"
    MONTHLY = "monthly"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DomainValidationErrorCode(Enum):
    """Error codes for domain validation failures."""

    EMPTY_INPUT = "empty_input"
    INVALID_URL = "invalid_url"
    EMPTY_HOSTNAME = "empty_hostname"
    BLOCKED_HOSTNAME = "blocked_hostname"
    IP_ADDRESS = "ip_address"
    IDNA_ERROR = "idna_error"
    NOT_PUBLIC = "not_public"


class ProviderErrorCode(Enum):
    """Error codes for provider client operations."""

    NETWORK_ERROR = "network_error"
    TLS_ERROR = "tls_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    RATE_LIMITED = "rate_limited"
    HTTP_ERROR = "http_error"


class ProviderStatus(Enum):
    """Outcome of a single provider request."""

    OK = "ok"
    ERROR = "error"
