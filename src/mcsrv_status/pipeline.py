"""
Status Pipeline for the server status system.

This module provides the orchestration layer in front of the external status
lookup. A status check runs through:
- Hostname and port validation
- Turnstile verification (when enabled)
- Per-IP rate limiting, then the per-hostname cooldown
- The status cache
- Request deduplication around a retried (optionally circuit-broken) lookup
- Response shaping

Every failure is answered with an HTTP-like status code and an error body
carrying a user-safe ``message``.
"""

import asyncio
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .circuit_breaker import CircuitBreaker
from .config import SystemConfig
from .enums import Edition, ErrorCode, LogLevel, LookupOutcome
from .exceptions import (
    CaptchaError,
    CircuitOpenError,
    InternalError,
    McStatusError,
    RateLimitError,
    UpstreamDNSError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
    ValidationError,
)
from .host_validator import HostValidator, resolve_port
from .models import LookupResult, PipelineResult, ServerStatus, StatusRequest
from .rate_limiter import RateLimiter
from .request_dedupe import RequestDeduplicator, get_server_request_key
from .retry_manager import RetryManager
from .status_cache import StatusCache
from .status_client import McStatusClient, StatusLookup
from .turnstile import TurnstileVerifier


SWEEP_INTERVAL_SECONDS = 60.0


def get_client_ip(headers: Mapping) -> str:
    """
    Extract the client IP from proxy headers.

    Uses the first hop of ``x-forwarded-for``, then ``x-real-ip``, and
    falls back to ``"unknown"``.
    """
    lowered = {str(k).lower(): v for k, v in headers.items()}

    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = lowered.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return "unknown"


def _iso_timestamp(epoch_seconds: float) -> str:
    dt = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def shape_status_response(status: ServerStatus, edition: Edition) -> dict:
    """Build the public response body for a successful lookup."""
    dns = status.dns
    players = status.players
    motd = status.motd
    query = status.query

    return {
        "success": True,
        "cached": status.cached,
        "server": {
            "online": status.online,
            "hostname": status.hostname,
            "ip": status.ip,
            "port": status.port,
            "version": status.version,
            "protocol": status.protocol,
            "software": status.software,
        },
        "players": {
            "online": players.online,
            "max": players.max,
            "list": list(players.list) if players.list is not None else None,
            "sample": [
                {"name": p.name, "id": p.id} for p in players.sample
            ] if players.sample is not None else None,
        } if players else None,
        "motd": {
            "raw": list(motd.raw),
            "html": motd.html,
            "clean": list(motd.clean),
        } if motd else None,
        "performance": {
            "ping": status.ping,
        },
        "query": {
            "gametype": query.gametype,
            "map": query.map,
            "plugins": list(query.plugins) if query.plugins is not None else None,
            "version": query.version,
        } if query else None,
        "icon": status.icon or None,
        "debug": {
            "cacheTime": int(status.cache_time * 1000),
            "timestamp": _iso_timestamp(status.cache_time),
            "dns": {
                "hostname": dns.hostname,
                "ip": dns.ip,
                "hasARecords": bool(dns.a_records),
                "hasSrvRecord": dns.srv_record is not None,
                "srvRecord": {
                    "host": dns.srv_record.host,
                    "port": dns.srv_record.port,
                } if dns.srv_record else None,
            } if dns else None,
            "protocol": {
                "version": status.protocol,
                "versionName": status.version,
            },
            "connectivity": {
                "ping": status.ping,
                "hasQuery": query is not None,
                "hasPlayers": players is not None,
            },
            "security": {
                "mojangBlocked": status.mojang_blocked,
                "eulaBlocked": status.eula_blocked,
            },
            "serverType": edition.value,
        },
    }


class StatusPipeline:
    """
    Orchestrates a status check from request to shaped response.

    Use as an async context manager to run the background sweeper and to
    close HTTP clients the pipeline created itself.
    """

    def __init__(
        self,
        config: SystemConfig,
        lookup: Optional[StatusLookup] = None,
        verifier: Optional[TurnstileVerifier] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[StatusCache] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
        retry_manager: Optional[RetryManager] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the status pipeline.

        Components not given are built from ``config``.

        Args:
            config: System configuration
            lookup: External status lookup (McStatusClient by default)
            verifier: Turnstile verifier
            rate_limiter: Rate limiter
            cache: Status cache
            deduplicator: Request deduplicator
            retry_manager: Retry manager for the lookup
            circuit_breaker: Circuit breaker; built only when enabled in config
            logger: Optional audit logger
            clock: Time source shared by the default components
        """
        self._config = config
        self._logger = logger
        self._validator = HostValidator()

        self._owned_clients = []
        if lookup is None:
            lookup = McStatusClient(
                config.server,
                simulation_mode=config.simulation_mode,
                logger=logger,
            )
            self._owned_clients.append(lookup)
        if verifier is None:
            verifier = TurnstileVerifier(config.turnstile, logger=logger)
            self._owned_clients.append(verifier)

        self._lookup = lookup
        self._verifier = verifier
        self._rate_limiter = rate_limiter or RateLimiter(
            config.rate_limits, clock=clock, logger=logger
        )
        self._cache = cache or StatusCache(config.cache, clock=clock, logger=logger)
        self._deduplicator = deduplicator or RequestDeduplicator(
            clock=clock, logger=logger
        )
        self._retry_manager = retry_manager or RetryManager(config.retry, logger=logger)

        if circuit_breaker is None and config.circuit_breaker.enabled:
            circuit_breaker = CircuitBreaker(
                threshold=config.circuit_breaker.threshold,
                timeout_seconds=config.circuit_breaker.timeout_seconds,
                clock=clock,
                logger=logger,
            )
        self._circuit_breaker = circuit_breaker

        self._sweeper_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "StatusPipeline":
        """Async context manager entry."""
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
        for client in self._owned_clients:
            await client.close()

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def cache(self) -> StatusCache:
        return self._cache

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._deduplicator

    @property
    def circuit_breaker(self) -> Optional[CircuitBreaker]:
        return self._circuit_breaker

    def _log_info(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "StatusPipeline", message, data)

    def _log_error(self, message: str, error: Exception, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log_error("StatusPipeline", message, error=error, additional_data=data)

    # Background sweeper

    def start(self) -> None:
        """Start the periodic cleanup task on the running loop."""
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the periodic cleanup task and wait for it to finish."""
        task, self._sweeper_task = self._sweeper_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(SWEEP_INTERVAL_SECONDS)
            self.sweep()

    def sweep(self) -> dict:
        """Run one cleanup pass over limiter, cache and dedup state."""
        removed = {
            "rate_limits": self._rate_limiter.cleanup(),
            "cache": self._cache.cleanup(),
            "pending_requests": self._deduplicator.cleanup(),
        }
        if self._logger:
            self._logger.log(LogLevel.DEBUG, "StatusPipeline", "Sweep finished", removed)
        return removed

    # Status checks

    async def check_server(self, request: StatusRequest) -> PipelineResult:
        """
        Run a status check.

        Args:
            request: Hostname, optional port, edition flag, client IP and token

        Returns:
            PipelineResult with the HTTP-like status code and response body
        """
        if self._config.logging.log_api_requests:
            self._log_info("Status check requested", {
                "hostname": request.hostname,
                "port": request.port,
                "edition": request.edition.value,
                "client_ip": request.client_ip,
            })

        try:
            return await self._check_server(request)
        except McStatusError as e:
            return self._error_result(e, request)
        except Exception as e:
            self._log_error("Server status check failed", e, {"hostname": request.hostname})
            return self._error_result(
                InternalError(
                    ErrorCode.INTERNAL.value,
                    "An unexpected error occurred while checking the server status.",
                    {"error_type": type(e).__name__},
                ),
                request,
            )

    async def _check_server(self, request: StatusRequest) -> PipelineResult:
        hostname, port = self._validate(request)
        edition = request.edition

        await self._verify_captcha(request)

        limit = self._rate_limiter.check(request.client_ip, hostname)
        if not limit.allowed:
            raise RateLimitError(
                code=ErrorCode.RATE_LIMITED.value,
                message=limit.message,
                remaining_time=limit.remaining_time,
                reason=limit.reason.value if limit.reason else None,
            )

        cached = self._cache.get(hostname, port, edition)
        if cached is not None:
            return PipelineResult(200, shape_status_response(cached.as_cached(), edition))

        key = get_server_request_key(hostname, port, edition)
        result = await self._deduplicator.run(
            key, lambda: self._lookup_with_retry(hostname, port, edition)
        )

        if result.outcome is LookupOutcome.OFFLINE:
            return PipelineResult(200, {
                "error": "Server offline",
                "message": "The server appears to be offline or unreachable.",
                "hostname": hostname,
                "online": False,
            })

        self._cache.put(hostname, port, edition, result.status)
        return PipelineResult(200, shape_status_response(result.status, edition))

    def _validate(self, request: StatusRequest) -> tuple[str, int]:
        host_result = self._validator.validate_hostname(request.hostname)
        if not host_result.valid:
            raise ValidationError(
                code=host_result.error.code.value,
                message=(
                    "The provided hostname or IP address is invalid. "
                    "Please check and try again."
                ),
                details={"reason": host_result.error.message},
            )

        if request.port is None:
            return host_result.hostname, resolve_port(None, request.edition)

        port_result = self._validator.validate_port(request.port)
        if not port_result.valid:
            raise ValidationError(
                code=port_result.error.code.value,
                message=port_result.error.message,
                details={"port": request.port},
            )
        return host_result.hostname, port_result.port

    async def _verify_captcha(self, request: StatusRequest) -> None:
        if not self._verifier.enabled:
            return

        if not request.turnstile_token:
            raise CaptchaError(
                code=ErrorCode.CAPTCHA_MISSING.value,
                message="Turnstile token is required",
            )

        if not await self._verifier.verify(request.turnstile_token, request.client_ip):
            raise CaptchaError(
                code=ErrorCode.CAPTCHA_REJECTED.value,
                message="Invalid or expired captcha token. Please try again.",
            )

    async def _lookup_with_retry(
        self, hostname: str, port: int, edition: Edition
    ) -> LookupResult:
        async def attempt() -> LookupResult:
            if self._circuit_breaker is not None:
                return await self._circuit_breaker.execute(
                    lambda: self._lookup_once(hostname, port, edition)
                )
            return await self._lookup_once(hostname, port, edition)

        timeout_seconds = self._config.server.query_timeout_ms / 1000
        if timeout_seconds > 0:
            return await self._retry_manager.retry_with_timeout(attempt, timeout_seconds)
        return await self._retry_manager.retry(attempt)

    async def _lookup_once(self, hostname: str, port: int, edition: Edition) -> LookupResult:
        result = await self._lookup.lookup(hostname, port, edition)

        if result.outcome is LookupOutcome.DNS_FAILURE:
            raise UpstreamDNSError(ErrorCode.DNS_FAILURE.value, result.message, {"hostname": hostname})
        if result.outcome is LookupOutcome.TIMEOUT:
            raise UpstreamTimeoutError(ErrorCode.TIMEOUT.value, result.message, {"hostname": hostname})
        if result.outcome is LookupOutcome.RATE_LIMITED:
            raise UpstreamRateLimitError(ErrorCode.UPSTREAM_RATE_LIMITED.value, result.message)
        return result

    def _error_result(self, error: McStatusError, request: StatusRequest) -> PipelineResult:
        if isinstance(error, ValidationError):
            label = "Invalid port" if "port" in error.details else "Invalid hostname"
            body = {"error": label, "message": error.message}
        elif isinstance(error, CaptchaError):
            body = {"error": "Verification failed", "message": error.message}
        elif isinstance(error, RateLimitError):
            body = {
                "error": "Rate limit exceeded",
                "message": error.message,
                "remainingTime": error.remaining_time,
                "reason": error.reason,
            }
        elif isinstance(error, UpstreamDNSError):
            body = {
                "error": "DNS resolution failed",
                "message": "Could not resolve the hostname. Please check the address and try again.",
                "hostname": request.hostname,
            }
        elif isinstance(error, UpstreamTimeoutError):
            body = {
                "error": "Request timeout",
                "message": (
                    "The server took too long to respond. "
                    "It may be offline or experiencing issues."
                ),
                "hostname": request.hostname,
            }
        elif isinstance(error, UpstreamRateLimitError):
            body = {"error": "Rate limit exceeded", "message": error.message}
        elif isinstance(error, CircuitOpenError):
            body = {"error": "Service unavailable", "message": error.message}
        elif isinstance(error, InternalError):
            body = {"error": "Internal server error", "message": error.message}
        else:
            self._log_error("Server status check failed", error, {"hostname": request.hostname})
            body = {
                "error": "Internal server error",
                "message": "An unexpected error occurred while checking the server status.",
            }

        if self._config.logging.log_api_requests:
            self._log_info("Status check rejected", {
                "hostname": request.hostname,
                "status_code": error.http_status,
                "code": error.code,
            })
        return PipelineResult(error.http_status, body)
