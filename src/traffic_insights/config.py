"""
Configuration dataclasses for the traffic insights pipeline.

This module defines the configuration structures used throughout the system
(provider access, rate limiting and logging) and the loader that builds them
from the process environment and an optional .env file.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv


DEFAULT_BASE_URL = "https://api.similarweb.com/v1/website"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RATE_LIMIT = 20
DEFAULT_RATE_WINDOW_SECONDS = 10 * 60.0


@dataclass
class ProviderConfig:
    """Access settings for the analytics provider."""

    api_key: Optional[str] = None
    api_key_in_header: bool = False
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __repr__(self) -> str:
        # Keep the credential out of tracebacks and debug output
        key_state = "set" if self.api_key else "missing"
        return (
            f"ProviderConfig(api_key=<{key_state}>, "
            f"api_key_in_header={self.api_key_in_header!r}, "
            f"base_url={self.base_url!r}, timeout_seconds={self.timeout_seconds!r})"
        )


@dataclass
class RateLimitRule:
    """A single fixed-window rate limit rule."""

    max_requests: int = DEFAULT_RATE_LIMIT
    window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    rate_limit: RateLimitRule = field(default_factory=RateLimitRule)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env.get(name, str(default)))
    except (TypeError, ValueError):
        return default


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env.get(name, str(default)))
    except (TypeError, ValueError):
        return default


def _bool_env(env: Mapping[str, str], name: str) -> bool:
    return (env.get(name) or "").strip().lower() == "true"


def load_config_from_env(
    env: Optional[Mapping[str, str]] = None,
    dotenv: bool = True,
) -> SystemConfig:
    """
    Build a SystemConfig from environment variables.

    A missing API key is not an error here; it is reported as a
    ConfigurationError when insights are first fetched.

    Args:
        env: Mapping to read from (defaults to os.environ)
        dotenv: Load a .env file into os.environ first (ignored when env is given)

    Returns:
        SystemConfig populated from the environment
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    api_key = (env.get("SIMILARWEB_API_KEY") or "").strip() or None

    provider = ProviderConfig(
        api_key=api_key,
        api_key_in_header=_bool_env(env, "SIMILARWEB_API_KEY_IN_HEADER"),
        base_url=(env.get("SIMILARWEB_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        timeout_seconds=_float_env(env, "SIMILARWEB_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
    )

    rate_limit = RateLimitRule(
        max_requests=_int_env(env, "INSIGHTS_RATE_LIMIT", DEFAULT_RATE_LIMIT),
        window_seconds=_float_env(env, "INSIGHTS_RATE_WINDOW_SECONDS", DEFAULT_RATE_WINDOW_SECONDS),
    )

    output_format = (env.get("INSIGHTS_LOG_FORMAT") or "text").lower()
    if output_format not in ("json", "text", "both"):
        output_format = "text"

    logging_config = LoggingConfig(
        level=(env.get("INSIGHTS_LOG_LEVEL") or "info").lower(),
        output_format=output_format,
    )

    return SystemConfig(
        provider=provider,
        rate_limit=rate_limit,
        logging=logging_config,
    )
