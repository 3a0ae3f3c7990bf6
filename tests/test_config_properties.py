"""
Property-based tests for configuration loading.

Uses Hypothesis to check that environment values map onto the configuration
dataclasses and that malformed values fall back to defaults.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from traffic_insights.config import (
    DEFAULT_BASE_URL,
    DEFAULT_RATE_LIMIT,
    DEFAULT_RATE_WINDOW_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    LoggingConfig,
    ProviderConfig,
    RateLimitRule,
    SystemConfig,
    load_config_from_env,
)


class TestDefaults:
    """Configuration with an empty environment."""

    def test_empty_environment(self) -> None:
        config = load_config_from_env({})

        assert config.provider.api_key is None
        assert config.provider.api_key_in_header is False
        assert config.provider.base_url == DEFAULT_BASE_URL
        assert config.provider.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
        assert config.rate_limit == RateLimitRule(DEFAULT_RATE_LIMIT, DEFAULT_RATE_WINDOW_SECONDS)
        assert config.logging == LoggingConfig()

    def test_default_rate_limit_is_twenty_per_ten_minutes(self) -> None:
        rule = SystemConfig().rate_limit

        assert rule.max_requests == 20
        assert rule.window_seconds == 600.0


class TestEnvironmentMappingProperty:
    """
    Property-based tests for environment parsing.

    Property 1: Well-formed values are used as given
    """

    @given(
        api_key=st.text(alphabet="abcdef0123456789", min_size=8, max_size=40),
        limit=st.integers(min_value=1, max_value=10_000),
        window=st.integers(min_value=1, max_value=86_400),
        timeout=st.floats(min_value=0.1, max_value=120.0),
    )
    @settings(max_examples=100)
    def test_values_round_trip(self, api_key: str, limit: int, window: int, timeout: float) -> None:
        env = {
            "SIMILARWEB_API_KEY": f"  {api_key}  ",
            "SIMILARWEB_TIMEOUT_SECONDS": repr(timeout),
            "INSIGHTS_RATE_LIMIT": str(limit),
            "INSIGHTS_RATE_WINDOW_SECONDS": str(window),
        }

        config = load_config_from_env(env)

        assert config.provider.api_key == api_key
        assert config.provider.timeout_seconds == timeout
        assert config.rate_limit.max_requests == limit
        assert config.rate_limit.window_seconds == float(window)

    @given(flag=st.sampled_from(["true", "TRUE", " True "]))
    def test_header_flag_enabled(self, flag: str) -> None:
        config = load_config_from_env({"SIMILARWEB_API_KEY_IN_HEADER": flag})

        assert config.provider.api_key_in_header is True

    @given(flag=st.sampled_from(["", "false", "1", "yes", "no"]))
    def test_header_flag_disabled(self, flag: str) -> None:
        config = load_config_from_env({"SIMILARWEB_API_KEY_IN_HEADER": flag})

        assert config.provider.api_key_in_header is False

    @given(garbage=st.text(alphabet="xyz!?", min_size=1, max_size=10))
    @settings(max_examples=50)
    def test_malformed_numbers_fall_back(self, garbage: str) -> None:
        """
        Property 2: Unparseable numbers keep their defaults.
        """
        config = load_config_from_env({
            "SIMILARWEB_TIMEOUT_SECONDS": garbage,
            "INSIGHTS_RATE_LIMIT": garbage,
            "INSIGHTS_RATE_WINDOW_SECONDS": garbage,
        })

        assert config.provider.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
        assert config.rate_limit.max_requests == DEFAULT_RATE_LIMIT
        assert config.rate_limit.window_seconds == DEFAULT_RATE_WINDOW_SECONDS

    def test_blank_api_key_is_missing(self) -> None:
        assert load_config_from_env({"SIMILARWEB_API_KEY": "   "}).provider.api_key is None

    def test_base_url_trailing_slash_removed(self) -> None:
        config = load_config_from_env({"SIMILARWEB_BASE_URL": "https://proxy.example.com/v1/website/"})

        assert config.provider.base_url == "https://proxy.example.com/v1/website"

    def test_logging_settings(self) -> None:
        config = load_config_from_env({"INSIGHTS_LOG_FORMAT": "JSON", "INSIGHTS_LOG_LEVEL": "DEBUG"})

        assert config.logging == LoggingConfig(level="debug", output_format="json")

    def test_unknown_log_format_falls_back_to_text(self) -> None:
        config = load_config_from_env({"INSIGHTS_LOG_FORMAT": "xml"})

        assert config.logging.output_format == "text"


class TestCredentialRedaction:
    """The provider credential never appears in repr output."""

    def test_repr_hides_key(self) -> None:
        config = ProviderConfig(api_key="very-secret")

        assert "very-secret" not in repr(config)
        assert "very-secret" not in repr(SystemConfig(provider=config))
        assert "<set>" in repr(config)

    def test_repr_reports_missing_key(self) -> None:
        assert "<missing>" in repr(ProviderConfig())
