"""
Enumeration types for the server status system.

These enums provide type-safe constants for editions, dialects, error codes,
and state machine states throughout the system.
"""

from enum import Enum


class Edition(Enum):
    """Minecraft edition a server runs."""

    JAVA = "java"
    BEDROCK = "bedrock"

    @property
    def default_port(self) -> int:
        return 19132 if self is Edition.BEDROCK else 25565


class MotdDialect(Enum):
    """Server config dialects a MOTD can be exported to."""

    VANILLA = "vanilla"
    SPIGOT = "spigot"
    BUNGEECORD = "bungeecord"
    SERVERLISTPLUS = "serverlistplus"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class RateLimitReason(Enum):
    """Which limiter rejected a request."""

    IP = "ip"
    HOSTNAME = "hostname"


class LookupOutcome(Enum):
    """Classification of an external status lookup."""

    OK = "ok"
    OFFLINE = "offline"
    DNS_FAILURE = "dns_failure"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"


class HostValidationErrorCode(Enum):
    """Error codes for hostname/port validation failures."""

    EMPTY_INPUT = "empty_input"
    FORBIDDEN_CHARS = "forbidden_chars"
    TOO_LONG = "too_long"
    INVALID_FORMAT = "invalid_format"
    IDNA_ERROR = "idna_error"
    INVALID_PORT = "invalid_port"
    PORT_OUT_OF_RANGE = "port_out_of_range"


class ErrorCode(Enum):
    """Error codes surfaced by the status pipeline."""

    VALIDATION_FAILED = "validation_failed"
    CAPTCHA_MISSING = "captcha_missing"
    CAPTCHA_REJECTED = "captcha_rejected"
    RATE_LIMITED = "rate_limited"
    DNS_FAILURE = "dns_failure"
    TIMEOUT = "timeout"
    UPSTREAM_RATE_LIMITED = "upstream_rate_limited"
    CIRCUIT_OPEN = "circuit_open"
    INVALID_COLOR = "invalid_color"
    INTERNAL = "internal"
