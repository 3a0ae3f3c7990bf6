"""
Insights Aggregator for the traffic insights pipeline.

This module fans out one request per provider endpoint, waits for every
request to settle, and folds the outcomes into a single InsightsResult:
- Each request is time-bounded on its own; a slow endpoint never cancels siblings
- A failed or unparseable endpoint becomes a coverage note, not an error
- Outcomes are folded in a fixed field order so notes are reproducible
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .config import ProviderConfig
from .enums import InsightMode, LogLevel
from .exceptions import ConfigurationError, UpstreamError
from .models import (
    ChannelShare,
    CoverageMeta,
    InsightsResult,
    InsightsSummary,
    InsightsTimeseries,
    TimeseriesPoint,
)
from .provider_client import ProviderClient, ProviderResponse
from .response_parser import SERIES_KEYS, latest_value, parse_channels, parse_series


@dataclass(frozen=True)
class Endpoint:
    """A provider endpoint and the result field it feeds."""

    field: str
    path: str


# Fold order is the declaration order
ENDPOINTS: tuple[Endpoint, ...] = (
    Endpoint("visits", "total-traffic-and-engagement/visits"),
    Endpoint("bounce_rate", "total-traffic-and-engagement/bounce-rate"),
    Endpoint("pages_per_visit", "total-traffic-and-engagement/pages-per-visit"),
    Endpoint("avg_duration", "total-traffic-and-engagement/average-visit-duration"),
    Endpoint("channels", "traffic-sources/overview-share"),
)

# Field names as they appear in coverage notes
NOTE_LABELS = {
    "visits": "visits",
    "bounce_rate": "bounceRate",
    "pages_per_visit": "pagesPerVisit",
    "avg_duration": "avgDuration",
    "channels": "channels",
}


def unavailable_note(field_name: str) -> str:
    """Coverage note recorded when a field could not be filled."""
    return f"{NOTE_LABELS.get(field_name, field_name)} data unavailable."


def get_monthly_range(now: Optional[datetime] = None) -> tuple[str, str]:
    """
    Three full calendar months before the month of now, as YYYY-MM.

    The current month is excluded because it is usually incomplete;
    for any day in April this returns ("<year>-01", "<year>-03").
    """
    if now is None:
        now = datetime.now(timezone.utc)

    month_index = now.year * 12 + (now.month - 1)
    end_index = month_index - 1
    start_index = month_index - 3

    def fmt(index: int) -> str:
        return f"{index // 12:04d}-{index % 12 + 1:02d}"

    return fmt(start_index), fmt(end_index)


class InsightsAggregator:
    """
    Fetches and merges provider data for a domain.

    Holds no mutable state across calls, so one instance may serve
    concurrent requests.
    """

    def __init__(
        self,
        config: ProviderConfig,
        client: Optional[ProviderClient] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            config: Provider access configuration
            client: Optional shared provider client; a fresh one is opened
                    per call when omitted
            logger: Optional audit logger
            clock: UTC clock used for the monthly date range
        """
        self._config = config
        self._client = client
        self._logger = logger
        self._clock = clock

    def build_query(self, mode: InsightMode) -> dict[str, str]:
        """
        Query parameters shared by all endpoints.

        Raises:
            ConfigurationError: If no API key is configured
        """
        api_key = self._require_api_key()

        params = {
            "api_key": api_key,
            "granularity": mode.granularity.value,
        }

        if mode is InsightMode.MONTHLY:
            start, end = get_monthly_range(self._clock())
            params["start_date"] = start
            params["end_date"] = end

        return params

    def build_headers(self) -> dict[str, str]:
        """Credential header, sent only when configured to."""
        api_key = self._config.api_key
        if not api_key or not self._config.api_key_in_header:
            return {}
        return {"api-key": api_key}

    def _require_api_key(self) -> str:
        api_key = (self._config.api_key or "").strip()
        if not api_key:
            raise ConfigurationError(
                code="missing_credential",
                message="Provider credential is not configured.",
            )
        return api_key

    async def fetch_insights(self, domain: str, mode: InsightMode) -> InsightsResult:
        """
        Fetch all metrics for domain and merge them.

        Args:
            domain: Normalized domain
            mode: Reporting window

        Returns:
            InsightsResult; unavailable fields are empty and noted in meta

        Raises:
            ConfigurationError: If the credential is missing (before any request)
            UpstreamError: If no request settled at all
        """
        params = self.build_query(mode)
        headers = self.build_headers()

        self._log(LogLevel.INFO, f"Fetching insights for {domain}", {
            "domain": domain,
            "mode": mode.value,
            "granularity": params["granularity"],
        })

        if self._client is not None:
            outcomes = await self._fan_out(self._client, domain, params, headers)
        else:
            async with ProviderClient(self._config) as client:
                outcomes = await self._fan_out(client, domain, params, headers)

        if all(isinstance(outcome, BaseException) for outcome in outcomes):
            first = outcomes[0]
            if self._logger:
                self._logger.log_error(
                    "InsightsAggregator",
                    "All provider requests failed",
                    error=first,
                    additional_data={"domain": domain},
                )
            raise UpstreamError(code="upstream_failure", message="Unable to fetch data.")

        result = self._fold(outcomes)

        self._log(LogLevel.INFO, f"Insights ready for {domain}", {
            "domain": domain,
            "partial": result.meta.partial,
            "notes": result.meta.notes,
        })

        return result

    async def _fan_out(
        self,
        client: ProviderClient,
        domain: str,
        params: dict[str, str],
        headers: dict[str, str],
    ) -> list:
        tasks = [
            client.fetch(domain, endpoint.path, params, headers)
            for endpoint in ENDPOINTS
        ]
        return await asyncio.gather(*tasks, return_exceptions=True)

    def _fold(self, outcomes: list) -> InsightsResult:
        notes: list[str] = []
        series: dict[str, list[TimeseriesPoint]] = {name: [] for name in SERIES_KEYS}
        channels: list[ChannelShare] = []

        for endpoint, outcome in zip(ENDPOINTS, outcomes):
            raw = self._settled_payload(endpoint, outcome)
            if raw is None:
                notes.append(unavailable_note(endpoint.field))
                continue

            if endpoint.field == "channels":
                parsed_channels = parse_channels(raw)
                if parsed_channels is None:
                    self._log(LogLevel.WARN, "Channel payload not recognized", {
                        "field": endpoint.field,
                    })
                    notes.append(unavailable_note(endpoint.field))
                else:
                    channels = sorted(parsed_channels, key=lambda c: c.share, reverse=True)
                continue

            points = parse_series(raw, SERIES_KEYS[endpoint.field])
            if points is None:
                self._log(LogLevel.WARN, "Series payload not recognized", {
                    "field": endpoint.field,
                })
                notes.append(unavailable_note(endpoint.field))
                continue
            series[endpoint.field] = points

        timeseries = InsightsTimeseries(
            visits=series["visits"],
            bounce_rate=series["bounce_rate"],
            pages_per_visit=series["pages_per_visit"],
            avg_duration=series["avg_duration"],
        )

        summary = InsightsSummary(
            latest_visits=latest_value(timeseries.visits),
            latest_bounce_rate=latest_value(timeseries.bounce_rate),
            latest_pages_per_visit=latest_value(timeseries.pages_per_visit),
            latest_avg_duration_seconds=latest_value(timeseries.avg_duration),
        )

        result = InsightsResult(
            summary=summary,
            timeseries=timeseries,
            channels=channels,
            meta=CoverageMeta(partial=bool(notes), notes=notes),
        )
        result.meta.partial = result.meta.partial or result.is_empty()
        return result

    def _settled_payload(self, endpoint: Endpoint, outcome) -> Optional[object]:
        """Decoded payload of a successful outcome, or None after logging the failure."""
        if isinstance(outcome, BaseException):
            self._log(LogLevel.WARN, f"{endpoint.field} request raised", {
                "field": endpoint.field,
                "error_type": type(outcome).__name__,
            })
            return None

        response: ProviderResponse = outcome
        if not response.ok:
            self._log(LogLevel.WARN, f"{endpoint.field} request failed", {
                "field": endpoint.field,
                "code": response.error.code.value if response.error else None,
                "http_status_code": response.http_status_code,
            })
            return None

        return response.raw_response

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        """Log a message if logger is available."""
        if self._logger:
            self._logger.log(level, "InsightsAggregator", message, data)
