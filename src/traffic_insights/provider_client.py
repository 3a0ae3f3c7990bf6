"""
Provider client for the Similarweb website API.

This module provides an async HTTP client with TLS enforcement and a per-call
time bound. Every request settles into a ProviderResponse: failures are
reported as structured errors rather than raised, so one failing endpoint
never affects its siblings.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import httpx

from .config import ProviderConfig
from .enums import ProviderErrorCode, ProviderStatus


@dataclass
class ProviderError:
    """Error information from a provider request."""

    code: ProviderErrorCode
    message: str
    http_status_code: Optional[int] = None


@dataclass
class ProviderResponse:
    """Settled outcome of one provider request."""

    status: ProviderStatus
    http_status_code: int
    raw_response: Optional[Any]
    error: Optional[ProviderError]
    response_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is ProviderStatus.OK


class ProviderClient:
    """
    Async client for the analytics provider.

    Usage:
        async with ProviderClient(config) as client:
            response = await client.fetch(domain, path, params)
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the provider client.

        Args:
            config: Provider access configuration
            transport: Optional httpx transport (used to fake the provider in tests)
        """
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ProviderClient":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,  # TLS certificate verification enforced
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    def build_url(self, domain: str, endpoint_path: str) -> str:
        """Compose {base}/{domain}/{endpoint_path}."""
        return f"{self._config.base_url.rstrip('/')}/{domain}/{endpoint_path.lstrip('/')}"

    def _validate_base_url(self) -> Optional[ProviderError]:
        parsed = urlparse(self._config.base_url)
        if parsed.scheme.lower() != "https":
            return ProviderError(
                code=ProviderErrorCode.TLS_ERROR,
                message="Provider base URL must use HTTPS",
            )
        return None

    async def fetch(
        self,
        domain: str,
        endpoint_path: str,
        params: Mapping[str, str],
        headers: Optional[Mapping[str, str]] = None,
    ) -> ProviderResponse:
        """
        GET one provider endpoint for domain.

        The whole call is bounded by the configured timeout; exceeding it
        cancels this request only.

        Args:
            domain: Normalized domain
            endpoint_path: Path below the domain, e.g. "total-traffic-and-engagement/visits"
            params: Query parameters (credential, granularity, date range)
            headers: Optional extra request headers

        Returns:
            ProviderResponse with the decoded JSON or a structured error
        """
        start_time = time.perf_counter()

        tls_error = self._validate_base_url()
        if tls_error is not None:
            return self._error_response(tls_error, start_time)

        client = self._ensure_client()
        url = self.build_url(domain, endpoint_path)

        try:
            response = await asyncio.wait_for(
                client.get(url, params=dict(params), headers=dict(headers or {})),
                timeout=self._config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return self._error_response(
                ProviderError(
                    code=ProviderErrorCode.TIMEOUT,
                    message=f"Provider request timed out after {self._config.timeout_seconds}s",
                ),
                start_time,
            )
        except httpx.HTTPError as e:
            return self._error_response(
                ProviderError(
                    code=ProviderErrorCode.NETWORK_ERROR,
                    message=f"Connection error: {type(e).__name__}",
                ),
                start_time,
            )

        if response.status_code == 429:
            return self._error_response(
                ProviderError(
                    code=ProviderErrorCode.RATE_LIMITED,
                    message="Rate limited by provider",
                    http_status_code=429,
                ),
                start_time,
                http_status_code=429,
            )

        if not response.is_success:
            return self._error_response(
                ProviderError(
                    code=ProviderErrorCode.HTTP_ERROR,
                    message=f"Similarweb responded with {response.status_code}",
                    http_status_code=response.status_code,
                ),
                start_time,
                http_status_code=response.status_code,
            )

        try:
            json_data = response.json()
        except ValueError as e:
            return self._error_response(
                ProviderError(
                    code=ProviderErrorCode.PARSE_ERROR,
                    message=f"Failed to parse provider response: {e}",
                    http_status_code=response.status_code,
                ),
                start_time,
                http_status_code=response.status_code,
            )

        return ProviderResponse(
            status=ProviderStatus.OK,
            http_status_code=response.status_code,
            raw_response=json_data,
            error=None,
            response_time_ms=self._elapsed_ms(start_time),
        )

    def _error_response(
        self,
        error: ProviderError,
        start_time: float,
        http_status_code: int = 0,
    ) -> ProviderResponse:
        return ProviderResponse(
            status=ProviderStatus.ERROR,
            http_status_code=http_status_code,
            raw_response=None,
            error=error,
            response_time_ms=self._elapsed_ms(start_time),
        )

    def _elapsed_ms(self, start_time: float) -> float:
        """Calculate elapsed time in milliseconds."""
        return (time.perf_counter() - start_time) * 1000

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
