"""
Tests for the inbound query operation.

Covers input validation, caller identity, rate limiting and the mapping of
hard errors onto HTTP-style responses.
"""

import asyncio
import io
import json
from datetime import datetime, timezone

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from traffic_insights.audit_logger import AuditLogger
from traffic_insights.config import ProviderConfig, RateLimitRule, SystemConfig
from traffic_insights.enums import InsightMode
from traffic_insights.exceptions import (
    ConfigurationError,
    RateLimitExceeded,
    UpstreamError,
    ValidationError,
)
from traffic_insights.orchestrator import (
    GENERIC_FETCH_ERROR,
    InsightsOrchestrator,
    error_to_response,
    get_client_ip,
)
from traffic_insights.provider_client import ProviderClient
from traffic_insights.rate_limiter import RateLimiter


NOW = datetime(2024, 4, 17, 12, 0, tzinfo=timezone.utc)


def provider_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("overview-share"):
        return httpx.Response(200, json={"search": 60, "direct": 40})
    return httpx.Response(200, json={"data": [{"date": "2024-03", "value": 5}]})


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def make_orchestrator(
    api_key="test-key",
    limit: int = 20,
    rate_limiter=None,
    logger=None,
    handler=provider_handler,
) -> InsightsOrchestrator:
    config = SystemConfig(
        provider=ProviderConfig(api_key=api_key),
        rate_limit=RateLimitRule(max_requests=limit, window_seconds=600.0),
    )
    client = ProviderClient(config.provider, transport=httpx.MockTransport(handler))
    return InsightsOrchestrator(
        config=config,
        rate_limiter=rate_limiter,
        client=client,
        logger=logger,
        clock=lambda: NOW,
    )


def run_query(orchestrator: InsightsOrchestrator, *args, **kwargs):
    async def run():
        return await orchestrator.query(*args, **kwargs)

    return asyncio.run(run())


class TestClientIdentity:
    """Caller identity derived from forwarding headers."""

    @pytest.mark.parametrize(
        "headers, expected",
        [
            (None, "unknown"),
            ({}, "unknown"),
            ({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}, "203.0.113.9"),
            ({"x-forwarded-for": "  198.51.100.4 "}, "198.51.100.4"),
            ({"X-Forwarded-For": " , 10.0.0.1"}, "unknown"),
            ({"X-Real-IP": "192.0.2.7"}, "192.0.2.7"),
            ({"X-Forwarded-For": "203.0.113.9", "X-Real-IP": "192.0.2.7"}, "203.0.113.9"),
            ({"User-Agent": "curl"}, "unknown"),
        ],
    )
    def test_get_client_ip(self, headers, expected: str) -> None:
        assert get_client_ip(headers) == expected


class TestQuery:
    """End-to-end query behaviour."""

    def test_successful_query_echoes_request(self) -> None:
        response = run_query(make_orchestrator(), "https://www.Example.com/pricing", "last28")

        assert response.domain == "example.com"
        assert response.mode is InsightMode.LAST28
        assert response.fetched_at == NOW.isoformat()
        assert response.result.meta.partial is False

        body = response.to_dict()
        assert body["meta"]["provider"] == "Similarweb"
        assert body["meta"]["fetchedAt"] == NOW.isoformat()
        assert body["channels"] == [
            {"channel": "search", "share": 0.6},
            {"channel": "direct", "share": 0.4},
        ]
        assert body["summary"]["latestVisits"] == 5
        json.dumps(body)

    def test_mode_defaults_to_monthly(self) -> None:
        response = run_query(make_orchestrator(), "example.com")

        assert response.mode is InsightMode.MONTHLY
        assert response.to_dict()["mode"] == "monthly"

    @pytest.mark.parametrize("mode", ["weekly", "MONTHLY", "28"])
    def test_invalid_mode(self, mode: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            run_query(make_orchestrator(), "example.com", mode)

        assert exc_info.value.code == "invalid_query"

    def test_empty_url(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            run_query(make_orchestrator(), "")

        assert exc_info.value.message == "Invalid query parameters."

    def test_rejected_domain_keeps_reason(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            run_query(make_orchestrator(), "http://localhost:3000")

        assert exc_info.value.message == "Localhost domains are not supported."
        assert exc_info.value.code == "blocked_hostname"

    def test_rejected_domain_does_not_consume_rate_limit(self) -> None:
        limiter = RateLimiter(clock=FakeClock())
        orchestrator = make_orchestrator(limit=1, rate_limiter=limiter)

        with pytest.raises(ValidationError):
            run_query(orchestrator, "127.0.0.1")

        assert len(list(limiter.store.items())) == 0

    def test_missing_credential_propagates(self) -> None:
        with pytest.raises(ConfigurationError):
            run_query(make_orchestrator(api_key=None), "example.com")

    def test_unexpected_error_becomes_upstream_error(self) -> None:
        def broken_handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": []})

        orchestrator = make_orchestrator(handler=broken_handler)

        async def explode(domain, mode):
            raise KeyError("boom")

        orchestrator.aggregator.fetch_insights = explode

        with pytest.raises(UpstreamError):
            run_query(orchestrator, "example.com")


class TestRateLimiting:
    """
    Property-based tests for per-caller throttling.

    Property: each caller gets `limit` queries per window, then a retry hint
    """

    @given(limit=st.integers(min_value=1, max_value=4))
    @settings(max_examples=10, deadline=None)
    def test_limit_then_reject(self, limit: int) -> None:
        clock = FakeClock(start=100.0)
        orchestrator = make_orchestrator(
            limit=limit,
            rate_limiter=RateLimiter(RateLimitRule(limit, 600.0), clock=clock),
        )
        headers = {"X-Forwarded-For": "203.0.113.9"}

        async def run():
            for _ in range(limit):
                await orchestrator.query("example.com", headers=headers)
            clock.now = 130.0
            with pytest.raises(RateLimitExceeded) as exc_info:
                await orchestrator.query("example.com", headers=headers)
            # A different caller is unaffected
            await orchestrator.query("example.com", headers={"X-Real-IP": "192.0.2.1"})
            return exc_info.value

        error = asyncio.run(run())

        assert error.retry_after_seconds == 570
        assert error.reset_at == 700.0

    def test_expired_entries_swept_before_check(self) -> None:
        clock = FakeClock(start=0.0)
        limiter = RateLimiter(RateLimitRule(5, 10.0), clock=clock)
        orchestrator = make_orchestrator(rate_limiter=limiter)

        run_query(orchestrator, "example.com", headers={"X-Real-IP": "192.0.2.1"})
        clock.now = 20.0
        run_query(orchestrator, "example.com", headers={"X-Real-IP": "192.0.2.2"})

        assert [key for key, _ in limiter.store.items()] == ["192.0.2.2"]


class TestErrorResponses:
    """Mapping of hard errors to status codes."""

    def test_validation_error(self) -> None:
        response = error_to_response(ValidationError(code="ip_address", message="IP addresses are not supported."))

        assert response.status_code == 400
        assert response.body == {"error": "IP addresses are not supported."}

    def test_rate_limit_error(self) -> None:
        response = error_to_response(RateLimitExceeded(
            message="Too many requests. Please try again shortly.",
            retry_after_seconds=42,
            reset_at=123.0,
        ))

        assert response.status_code == 429
        assert response.headers == {"Retry-After": "42"}

    @pytest.mark.parametrize("error", [
        ConfigurationError(code="missing_credential", message="Provider credential is not configured."),
        UpstreamError(code="upstream_failure", message="Unable to fetch data."),
    ])
    def test_fatal_errors_share_generic_message(self, error) -> None:
        response = error_to_response(error)

        assert response.status_code == 500
        assert response.body == {"error": GENERIC_FETCH_ERROR}


class TestLogging:
    """Pipeline logging never exposes the credential."""

    def test_api_key_not_written(self) -> None:
        stream = io.StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)
        orchestrator = make_orchestrator(api_key="super-secret-key", logger=logger)

        run_query(orchestrator, "example.com")

        output = stream.getvalue()
        assert "Fetching insights for example.com" in output
        assert "super-secret-key" not in output
