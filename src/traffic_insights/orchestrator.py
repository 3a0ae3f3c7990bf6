"""
Insights Orchestrator for the traffic insights pipeline.

This module provides the single inbound query operation that presentation
layers call. It chains:
- Domain validation and normalization
- Per-caller rate limiting
- Concurrent provider aggregation
and maps the hard errors that may result onto HTTP-style responses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from .aggregator import InsightsAggregator
from .audit_logger import AuditLogger
from .config import SystemConfig
from .domain_validator import DomainNormalizer
from .enums import InsightMode, LogLevel
from .exceptions import (
    ConfigurationError,
    InsightsError,
    RateLimitExceeded,
    UpstreamError,
    ValidationError,
)
from .models import InsightsResponse
from .provider_client import ProviderClient
from .rate_limiter import RateLimiter


UNKNOWN_CLIENT = "unknown"
GENERIC_FETCH_ERROR = "Unable to fetch Similarweb data."


def get_client_ip(headers: Optional[Mapping[str, str]]) -> str:
    """
    Caller identity for rate limiting.

    Uses the first X-Forwarded-For entry, then X-Real-IP. Callers without
    either header all share the "unknown" bucket.
    """
    if not headers:
        return UNKNOWN_CLIENT

    lowered = {str(k).lower(): v for k, v in headers.items()}

    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or UNKNOWN_CLIENT

    real_ip = lowered.get("x-real-ip")
    if real_ip:
        return real_ip

    return UNKNOWN_CLIENT


@dataclass
class ErrorResponse:
    """HTTP-style representation of a hard error."""

    status_code: int
    body: dict
    headers: dict[str, str] = field(default_factory=dict)


def error_to_response(error: InsightsError) -> ErrorResponse:
    """
    Map a pipeline error to a status code and a single error message.

    Configuration and upstream failures share one generic message so the
    state of the credential is never revealed.
    """
    if isinstance(error, ValidationError):
        return ErrorResponse(status_code=400, body={"error": error.message})

    if isinstance(error, RateLimitExceeded):
        return ErrorResponse(
            status_code=429,
            body={"error": error.message},
            headers={"Retry-After": str(error.retry_after_seconds)},
        )

    return ErrorResponse(status_code=500, body={"error": GENERIC_FETCH_ERROR})


class InsightsOrchestrator:
    """
    Entry point for insights queries.

    The rate limiter is injected so its state can be shared across
    orchestrators or replaced by a distributed store.
    """

    async def __aenter__(self) -> "InsightsOrchestrator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._owns_client and self._client is not None:
            await self._client.close()

    def __init__(
        self,
        config: SystemConfig,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[ProviderClient] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: System configuration
            rate_limiter: Optional rate limiter (a private in-memory one otherwise)
            client: Optional provider client shared by all queries
            logger: Optional audit logger for logging
            clock: UTC clock for timestamps and date ranges
        """
        self._config = config
        self._logger = logger
        self._clock = clock
        self._normalizer = DomainNormalizer()
        self._rate_limiter = rate_limiter or RateLimiter(config.rate_limit)
        self._owns_client = client is None
        self._client = client or ProviderClient(config.provider)
        self._aggregator = InsightsAggregator(
            config=config.provider,
            client=self._client,
            logger=logger,
            clock=clock,
        )

    async def query(
        self,
        url: str,
        mode: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> InsightsResponse:
        """
        Resolve url to a domain and return its insights.

        Args:
            url: URL or domain entered by the user
            mode: "monthly" (default) or "last28"
            headers: Inbound request headers, used for the caller identity

        Returns:
            InsightsResponse echoing the resolved domain and mode

        Raises:
            ValidationError: Malformed query, or a rejected domain
            RateLimitExceeded: Caller exhausted its window
            ConfigurationError: Provider credential missing
            UpstreamError: Provider unreachable
        """
        if not isinstance(url, str) or not url:
            raise ValidationError(code="invalid_query", message="Invalid query parameters.")

        try:
            insight_mode = InsightMode.parse(mode)
        except ValueError:
            raise ValidationError(
                code="invalid_query",
                message="Invalid query parameters.",
                details={"mode": mode},
            )

        validation = self._normalizer.validate(url)
        if not validation.valid:
            self._log(LogLevel.INFO, "Domain rejected", {
                "raw_input": url,
                "code": validation.error.code.value,
            })
            raise ValidationError(
                code=validation.error.code.value,
                message=validation.error.message,
                details=validation.error.details,
            )
        domain = validation.canonical_domain

        self._rate_limiter.sweep()
        client_key = get_client_ip(headers)
        status = self._rate_limiter.admit(client_key)
        if not status.allowed:
            retry_after = status.retry_after_seconds(self._rate_limiter.now())
            self._log(LogLevel.WARN, "Rate limit exceeded", {
                "client": client_key,
                "retry_after_seconds": retry_after,
            })
            raise RateLimitExceeded(
                message="Too many requests. Please try again shortly.",
                retry_after_seconds=retry_after,
                reset_at=status.reset_at,
            )

        try:
            result = await self._aggregator.fetch_insights(domain, insight_mode)
        except (ConfigurationError, UpstreamError):
            raise
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "InsightsOrchestrator",
                    "Unexpected failure while fetching insights",
                    error=e,
                    additional_data={"domain": domain},
                )
            raise UpstreamError(
                code="upstream_failure",
                message="Unable to fetch data.",
            ) from e

        return InsightsResponse(
            domain=domain,
            mode=insight_mode,
            fetched_at=self._clock().isoformat(),
            result=result,
        )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        """Log a message if logger is available."""
        if self._logger:
            self._logger.log(level, "InsightsOrchestrator", message, data)

    @property
    def domain_normalizer(self) -> DomainNormalizer:
        """Get the domain normalizer instance."""
        return self._normalizer

    @property
    def rate_limiter(self) -> RateLimiter:
        """Get the rate limiter instance."""
        return self._rate_limiter

    @property
    def aggregator(self) -> InsightsAggregator:
        """Get the aggregator instance."""
        return self._aggregator
