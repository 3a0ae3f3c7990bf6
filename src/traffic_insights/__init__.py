"""
Traffic Insights - partial-tolerant website traffic metrics.

This package validates a requested domain, rate-limits callers, fetches
traffic and engagement metrics from Similarweb concurrently, and merges the
loosely-shaped responses into one normalized result with coverage notes.
"""

__version__ = "0.1.0"
__author__ = "Traffic Insights Team"

from traffic_insights.exceptions import (
    InsightsError,
    ValidationError,
    RateLimitExceeded,
    ConfigurationError,
    UpstreamError,
)
from traffic_insights.enums import (
    InsightMode,
    Granularity,
    LogLevel,
    DomainValidationErrorCode,
    ProviderErrorCode,
    ProviderStatus,
)
from traffic_insights.config import (
    ProviderConfig,
    RateLimitRule,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
)
from traffic_insights.models import (
    TimeseriesPoint,
    ChannelShare,
    InsightsSummary,
    InsightsTimeseries,
    CoverageMeta,
    InsightsResult,
    InsightsResponse,
)
from traffic_insights.domain_validator import (
    DomainNormalizer,
    DomainValidationResult,
    DomainValidationError,
    normalize_domain,
)
from traffic_insights.rate_limiter import (
    RateLimiter,
    RateLimitEntry,
    RateLimitStatus,
    RateLimitStore,
    InMemoryRateLimitStore,
)
from traffic_insights.response_parser import (
    SERIES_KEYS,
    extract_array,
    parse_series,
    parse_channels,
    normalize_share,
    latest_value,
)
from traffic_insights.provider_client import (
    ProviderClient,
    ProviderResponse,
    ProviderError,
)
from traffic_insights.aggregator import (
    InsightsAggregator,
    get_monthly_range,
)
from traffic_insights.orchestrator import (
    InsightsOrchestrator,
    ErrorResponse,
    error_to_response,
    get_client_ip,
)
from traffic_insights.audit_logger import (
    AuditLogger,
    LogEntry,
)

__all__ = [
    # Exceptions
    "InsightsError",
    "ValidationError",
    "RateLimitExceeded",
    "ConfigurationError",
    "UpstreamError",
    # Enums
    "InsightMode",
    "Granularity",
    "LogLevel",
    "DomainValidationErrorCode",
    "ProviderErrorCode",
    "ProviderStatus",
    # Configuration
    "ProviderConfig",
    "RateLimitRule",
    "LoggingConfig",
    "SystemConfig",
    "load_config_from_env",
    # Models
    "TimeseriesPoint",
    "ChannelShare",
    "InsightsSummary",
    "InsightsTimeseries",
    "CoverageMeta",
    "InsightsResult",
    "InsightsResponse",
    # Domain Normalizer
    "DomainNormalizer",
    "DomainValidationResult",
    "DomainValidationError",
    "normalize_domain",
    # Rate Limiter
    "RateLimiter",
    "RateLimitEntry",
    "RateLimitStatus",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    # Response Parser
    "SERIES_KEYS",
    "extract_array",
    "parse_series",
    "parse_channels",
    "normalize_share",
    "latest_value",
    # Provider Client
    "ProviderClient",
    "ProviderResponse",
    "ProviderError",
    # Aggregator
    "InsightsAggregator",
    "get_monthly_range",
    # Orchestrator
    "InsightsOrchestrator",
    "ErrorResponse",
    "error_to_response",
    "get_client_ip",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
]
