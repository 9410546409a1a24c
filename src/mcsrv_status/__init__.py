"""
mcsrv-status - Minecraft server status checker and MOTD toolkit.

This package provides the Minecraft MOTD color code engine and a resilient
status request pipeline (rate limiting, caching, request deduplication,
retries, circuit breaking and Turnstile gating) in front of an external
status lookup.
"""

__version__ = "0.1.0"
__author__ = "mcsrv-status Team"

from mcsrv_status.exceptions import (
    McStatusError,
    ValidationError,
    CaptchaError,
    RateLimitError,
    UpstreamDNSError,
    UpstreamTimeoutError,
    UpstreamRateLimitError,
    CircuitOpenError,
    InvalidColorFormat,
    InternalError,
)
from mcsrv_status.enums import (
    Edition,
    MotdDialect,
    LogLevel,
    CircuitState,
    RateLimitReason,
    LookupOutcome,
    HostValidationErrorCode,
    ErrorCode,
)
from mcsrv_status.config import (
    RateLimitConfig,
    CacheConfig,
    TurnstileConfig,
    RetryConfig,
    CircuitBreakerConfig,
    ServerConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
)
from mcsrv_status.models import (
    PlayerSample,
    PlayerInfo,
    MotdData,
    SrvRecord,
    DnsInfo,
    QueryData,
    ServerStatus,
    LookupResult,
    CacheEntry,
    PendingRequest,
    RateLimitEntry,
    StatusRequest,
    PipelineResult,
)
from mcsrv_status.store import Store, MemoryStore
from mcsrv_status.audit_logger import AuditLogger, LogEntry
from mcsrv_status.motd_formatter import (
    ColorSpan,
    MotdValidationResult,
    parse_spans,
    parse_to_html,
    convert_to_format,
    generate_gradient,
    encode_for_url,
    decode_from_url,
    get_visible_length,
    strip_formatting,
    center_text,
    validate_motd,
    validate_motd_length,
    validate_motd_url_params,
    validate_color_code,
)
from mcsrv_status.host_validator import (
    HostValidator,
    HostValidationResult,
    HostValidationError,
    parse_server_address,
)
from mcsrv_status.rate_limiter import RateLimiter, RateLimitStatus, ClientCooldown
from mcsrv_status.status_cache import StatusCache
from mcsrv_status.request_dedupe import RequestDeduplicator, get_server_request_key
from mcsrv_status.retry_manager import RetryManager
from mcsrv_status.circuit_breaker import CircuitBreaker, CircuitBreakerState
from mcsrv_status.turnstile import TurnstileVerifier
from mcsrv_status.status_client import McStatusClient, StatusLookup
from mcsrv_status.pipeline import StatusPipeline, get_client_ip
from mcsrv_status.self_test import (
    SelfTest,
    SelfTestReport,
    EndpointProbe,
    ConfigCheck,
    run_self_test,
)
from mcsrv_status.cli import (
    main as cli_main,
    create_parser,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "McStatusError",
    "ValidationError",
    "CaptchaError",
    "RateLimitError",
    "UpstreamDNSError",
    "UpstreamTimeoutError",
    "UpstreamRateLimitError",
    "CircuitOpenError",
    "InvalidColorFormat",
    "InternalError",
    # Enums
    "Edition",
    "MotdDialect",
    "LogLevel",
    "CircuitState",
    "RateLimitReason",
    "LookupOutcome",
    "HostValidationErrorCode",
    "ErrorCode",
    # Config
    "RateLimitConfig",
    "CacheConfig",
    "TurnstileConfig",
    "RetryConfig",
    "CircuitBreakerConfig",
    "ServerConfig",
    "LoggingConfig",
    "SystemConfig",
    "load_config_from_env",
    # Models
    "PlayerSample",
    "PlayerInfo",
    "MotdData",
    "SrvRecord",
    "DnsInfo",
    "QueryData",
    "ServerStatus",
    "LookupResult",
    "CacheEntry",
    "PendingRequest",
    "RateLimitEntry",
    "StatusRequest",
    "PipelineResult",
    # Store
    "Store",
    "MemoryStore",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # MOTD Formatter
    "ColorSpan",
    "MotdValidationResult",
    "parse_spans",
    "parse_to_html",
    "convert_to_format",
    "generate_gradient",
    "encode_for_url",
    "decode_from_url",
    "get_visible_length",
    "strip_formatting",
    "center_text",
    "validate_motd",
    "validate_motd_length",
    "validate_motd_url_params",
    "validate_color_code",
    # Host Validator
    "HostValidator",
    "HostValidationResult",
    "HostValidationError",
    "parse_server_address",
    # Rate Limiter
    "RateLimiter",
    "RateLimitStatus",
    "ClientCooldown",
    # Cache / Dedupe
    "StatusCache",
    "RequestDeduplicator",
    "get_server_request_key",
    # Retry / Circuit Breaker
    "RetryManager",
    "CircuitBreaker",
    "CircuitBreakerState",
    # External collaborators
    "TurnstileVerifier",
    "McStatusClient",
    "StatusLookup",
    # Pipeline
    "StatusPipeline",
    "get_client_ip",
    # Self-Test
    "SelfTest",
    "SelfTestReport",
    "EndpointProbe",
    "ConfigCheck",
    "run_self_test",
    # CLI
    "cli_main",
    "create_parser",
    "load_config_from_file",
    "save_config_to_file",
]
