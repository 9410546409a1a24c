"""
Exception classes for the server status system.

All exceptions inherit from McStatusError and provide structured
error information with codes, messages, and optional details. Each class
carries the HTTP-like status code the pipeline answers with.
"""

from typing import Optional


class McStatusError(Exception):
    """Base exception for all server status errors."""

    http_status = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(McStatusError):
    """Raised when hostname, port or token format validation fails."""

    http_status = 400


class CaptchaError(McStatusError):
    """Raised when the Turnstile token is missing or rejected."""

    http_status = 403


class RateLimitError(McStatusError):
    """Raised when the per-IP limit or the per-hostname cooldown rejects a request."""

    http_status = 429

    def __init__(
        self,
        code: str,
        message: str,
        remaining_time: int,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(code, message, details)
        self.remaining_time = remaining_time
        self.reason = reason


class UpstreamDNSError(McStatusError):
    """Raised when the status lookup cannot resolve the hostname."""

    http_status = 404


class UpstreamTimeoutError(McStatusError):
    """Raised when the status lookup does not answer in time."""

    http_status = 504


class UpstreamRateLimitError(McStatusError):
    """Raised when the upstream status API rate limits us."""

    http_status = 429


class CircuitOpenError(McStatusError):
    """Raised by the circuit breaker while it is open."""

    http_status = 503


class InvalidColorFormat(McStatusError, ValueError):
    """Raised when a color is not a well-formed #RRGGBB string."""

    http_status = 400


class InternalError(McStatusError):
    """Raised for unclassified failures."""

    pass
