"""
Configuration dataclasses for the server status system.

This module defines all configuration structures used throughout the system,
including rate limiting, caching, Turnstile verification, retry logic,
the circuit breaker, the upstream status API, and logging. Values can be
read from the process environment (and a local .env file).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_RETRYABLE_ERRORS = [
    "timeout",
    "timed out",
    "network",
    "econnrefused",
    "connection refused",
    "enotfound",
    "etimedout",
]


@dataclass
class RateLimitConfig:
    """Per-IP and per-hostname limits for status checks."""

    cooldown_seconds: int = 40
    requests_per_minute: int = 6
    # Carried in configuration only; no limiter window enforces it
    requests_per_hour: int = 60


@dataclass
class CacheConfig:
    """Status response cache settings."""

    enabled: bool = False
    duration_seconds: int = 60


@dataclass
class TurnstileConfig:
    """Cloudflare Turnstile verification settings."""

    enabled: bool = False
    site_key: str = ""
    secret_key: str = ""
    verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    timeout_seconds: float = 10.0


@dataclass
class RetryConfig:
    """Retry behavior configuration for the upstream lookup."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_errors: list[str] = field(
        default_factory=lambda: list(DEFAULT_RETRYABLE_ERRORS)
    )
    retry_on_server_errors: bool = True


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker around the upstream lookup (off unless enabled)."""

    enabled: bool = False
    threshold: int = 5
    timeout_seconds: float = 60.0


@dataclass
class ServerConfig:
    """Upstream status API and query settings."""

    query_timeout_ms: int = 10000
    max_favorites_per_user: int = 50
    status_api_url: str = "https://api.mcstatus.io/v2/status"
    fallback_api_url: str = "https://api.mcsrvstat.us/3"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'
    debug_mode: bool = False
    log_api_requests: bool = False


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    turnstile: TurnstileConfig = field(default_factory=TurnstileConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    simulation_mode: bool = False
    startup_self_test: bool = False


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() == "true"


def load_config_from_env(env_file: Optional[Path] = None) -> SystemConfig:
    """
    Build a SystemConfig from environment variables.

    A .env file is loaded first (without overriding variables already set).
    Variable names follow the deployed web app's environment.

    Args:
        env_file: Optional explicit path to a .env file

    Returns:
        SystemConfig populated from the environment
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return SystemConfig(
        rate_limits=RateLimitConfig(
            cooldown_seconds=_int_env("NEXT_PUBLIC_COOLDOWN_SECONDS", 40),
            requests_per_minute=_int_env("RATE_LIMIT_REQUESTS_PER_MINUTE", 6),
            requests_per_hour=_int_env("RATE_LIMIT_REQUESTS_PER_HOUR", 60),
        ),
        cache=CacheConfig(
            enabled=_bool_env("ENABLE_SERVER_CACHE"),
            duration_seconds=_int_env("SERVER_CACHE_DURATION", 60),
        ),
        turnstile=TurnstileConfig(
            enabled=_bool_env("NEXT_PUBLIC_ENABLE_TURNSTILE"),
            site_key=os.getenv("NEXT_PUBLIC_TURNSTILE_SITE_KEY", ""),
            secret_key=os.getenv("TURNSTILE_SECRET_KEY", ""),
        ),
        circuit_breaker=CircuitBreakerConfig(
            enabled=_bool_env("ENABLE_CIRCUIT_BREAKER"),
            threshold=_int_env("CIRCUIT_BREAKER_THRESHOLD", 5),
            timeout_seconds=float(_int_env("CIRCUIT_BREAKER_TIMEOUT_SECONDS", 60)),
        ),
        server=ServerConfig(
            query_timeout_ms=_int_env("SERVER_QUERY_TIMEOUT", 10000),
            max_favorites_per_user=_int_env("MAX_FAVORITES_PER_USER", 50),
        ),
        logging=LoggingConfig(
            level="debug" if _bool_env("DEBUG_MODE") else "info",
            debug_mode=_bool_env("DEBUG_MODE"),
            log_api_requests=_bool_env("LOG_API_REQUESTS"),
        ),
    )
