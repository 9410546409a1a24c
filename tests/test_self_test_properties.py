"""
Tests for the startup self-test.
"""

import asyncio

import httpx

from mcsrv_status.config import (
    CacheConfig,
    CircuitBreakerConfig,
    RateLimitConfig,
    RetryConfig,
    ServerConfig,
    SystemConfig,
    TurnstileConfig,
)
from mcsrv_status.self_test import SelfTest


class TestConfigValidation:
    """Tests for SelfTest.validate_config."""

    def test_default_config_is_valid(self) -> None:
        result = SelfTest(SystemConfig()).validate_config()

        assert result.valid
        assert result.errors == []

    def test_negative_limits_are_errors(self) -> None:
        config = SystemConfig(rate_limits=RateLimitConfig(cooldown_seconds=-1, requests_per_minute=-5))

        result = SelfTest(config).validate_config()

        assert not result.valid
        assert len(result.errors) == 2

    def test_turnstile_without_secret_is_error(self) -> None:
        config = SystemConfig(turnstile=TurnstileConfig(enabled=True))

        result = SelfTest(config).validate_config()

        assert not result.valid
        assert any("TURNSTILE_SECRET_KEY" in e for e in result.errors)
        assert any("site key" in w for w in result.warnings)

    def test_plain_http_api_is_error(self) -> None:
        config = SystemConfig(server=ServerConfig(status_api_url="http://api.mcstatus.io/v2/status"))

        result = SelfTest(config).validate_config()

        assert not result.valid
        assert any("status_api_url" in e for e in result.errors)

    def test_retry_and_breaker_limits(self) -> None:
        config = SystemConfig(
            retry=RetryConfig(max_attempts=0),
            circuit_breaker=CircuitBreakerConfig(enabled=True, threshold=0),
        )

        result = SelfTest(config).validate_config()

        assert len(result.errors) == 2

    def test_warnings_do_not_invalidate(self) -> None:
        config = SystemConfig(
            rate_limits=RateLimitConfig(requests_per_minute=0),
            cache=CacheConfig(enabled=True, duration_seconds=0),
            retry=RetryConfig(max_attempts=1),
        )

        result = SelfTest(config).validate_config()

        assert result.valid
        assert len(result.warnings) == 3


class TestConnectivity:
    """Tests for endpoint probes."""

    def test_all_endpoints_reachable(self) -> None:
        probed = []

        def handler(request: httpx.Request) -> httpx.Response:
            probed.append((request.method, request.url.host))
            return httpx.Response(405)

        config = SystemConfig(turnstile=TurnstileConfig(enabled=True, site_key="k", secret_key="s"))
        result = asyncio.run(SelfTest(config, transport=httpx.MockTransport(handler)).run())

        assert result.success
        assert sorted(probed) == [
            ("HEAD", "api.mcsrvstat.us"),
            ("HEAD", "api.mcstatus.io"),
            ("HEAD", "challenges.cloudflare.com"),
        ]

    def test_server_error_fails_endpoint(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.mcsrvstat.us":
                return httpx.Response(502)
            return httpx.Response(200)

        result = asyncio.run(SelfTest(SystemConfig(), transport=httpx.MockTransport(handler)).run())

        assert not result.success
        assert [p.name for p in result.failed_probes] == ["fallback_api"]
        assert result.failed_probes[0].status_code == 502

    def test_timeout_fails_endpoint(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        result = asyncio.run(SelfTest(SystemConfig(), transport=httpx.MockTransport(handler)).run())

        assert not result.success
        assert all("timed out" in p.error for p in result.probes)

    def test_invalid_config_skips_connectivity(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no probes expected")

        config = SystemConfig(rate_limits=RateLimitConfig(cooldown_seconds=-1))
        result = asyncio.run(SelfTest(config, transport=httpx.MockTransport(handler)).run())

        assert not result.success
        assert result.probes == []

    def test_simulation_mode_skips_connectivity(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no probes expected")

        config = SystemConfig(simulation_mode=True)
        result = asyncio.run(SelfTest(config, transport=httpx.MockTransport(handler)).run())

        assert result.success
        assert result.probes == []

    def test_print_results(self, capsys) -> None:
        self_test = SelfTest(SystemConfig(simulation_mode=True))
        result = asyncio.run(self_test.run())

        self_test.print_results(result)

        out = capsys.readouterr().out
        assert "Configuration is valid" in out
        assert "Self-test passed" in out
