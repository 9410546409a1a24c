"""
Rate Limiter module for the server status system.

This module provides two independent limiters:
- A fixed-window request counter per client IP (60 second windows)
- A cooldown timer per hostname

plus ClientCooldown, an advisory mirror of the hostname cooldown kept in
client-local storage so a UI can disable its submit action without a round
trip. The server-side check stays authoritative.
"""

import math
import time
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Callable, Optional

from mcsrv_status.audit_logger import AuditLogger
from mcsrv_status.config import RateLimitConfig
from mcsrv_status.enums import LogLevel, RateLimitReason
from mcsrv_status.models import RateLimitEntry
from mcsrv_status.store import MemoryStore, Store


IP_WINDOW_SECONDS = 60.0
HOSTNAME_IDLE_SECONDS = 3600.0


@dataclass
class RateLimitStatus:
    """Result of a rate limit check."""

    allowed: bool
    remaining_time: int = 0
    requests_remaining: Optional[int] = None
    reason: Optional[RateLimitReason] = None
    message: Optional[str] = None


class RateLimiter:
    """
    Per-IP fixed-window limiter combined with a per-hostname cooldown.

    A ``requests_per_minute`` of 0 disables the IP limiter entirely.
    Times are seconds from the injected clock.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        ip_store: Optional[Store[RateLimitEntry]] = None,
        hostname_store: Optional[Store[float]] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            config: Limits (requests per minute, hostname cooldown)
            ip_store: Store for per-IP windows (in-memory by default)
            hostname_store: Store for per-hostname last check times
            clock: Time source returning seconds
            logger: Optional audit logger
        """
        self._config = config
        self._ip_store = ip_store if ip_store is not None else MemoryStore()
        self._hostname_store = (
            hostname_store if hostname_store is not None else MemoryStore()
        )
        self._clock = clock
        self._logger = logger

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, "RateLimiter", message, data)

    def check_ip(self, ip: str) -> RateLimitStatus:
        """
        Count a request against the client's current window.

        Args:
            ip: Client IP address

        Returns:
            RateLimitStatus; rejected once the window's limit is used up
        """
        limit = self._config.requests_per_minute
        if limit <= 0:
            return RateLimitStatus(allowed=True)

        now = self._clock()
        entry = self._ip_store.get(ip)

        if entry is None or now >= entry.reset_time:
            self._ip_store.set(
                ip, RateLimitEntry(count=1, reset_time=now + IP_WINDOW_SECONDS)
            )
            return RateLimitStatus(allowed=True, requests_remaining=limit - 1)

        if entry.count < limit:
            entry.count += 1
            self._ip_store.set(ip, entry)
            return RateLimitStatus(
                allowed=True, requests_remaining=limit - entry.count
            )

        remaining = math.ceil(entry.reset_time - now)
        self._log(LogLevel.WARN, "IP rate limit exceeded", {
            "ip": ip,
            "limit": limit,
            "remaining_time": remaining,
        })
        return RateLimitStatus(
            allowed=False,
            remaining_time=remaining,
            requests_remaining=0,
            reason=RateLimitReason.IP,
            message=(
                f"Too many requests. Please wait {remaining} seconds "
                f"before trying again."
            ),
        )

    def check_hostname(self, hostname: str) -> RateLimitStatus:
        """
        Check and arm the cooldown timer for a hostname.

        The first check is allowed. Later checks are rejected until
        ``cooldown_seconds`` have passed since the last allowed one.
        """
        now = self._clock()
        cooldown = self._config.cooldown_seconds
        last_check = self._hostname_store.get(hostname)

        if last_check is not None and now - last_check < cooldown:
            remaining = math.ceil(cooldown - (now - last_check))
            self._log(LogLevel.INFO, "Hostname on cooldown", {
                "hostname": hostname,
                "remaining_time": remaining,
            })
            return RateLimitStatus(
                allowed=False,
                remaining_time=remaining,
                reason=RateLimitReason.HOSTNAME,
                message=(
                    f"This server was checked recently. Please wait "
                    f"{remaining} seconds before checking {hostname} again."
                ),
            )

        self._hostname_store.set(hostname, now)
        return RateLimitStatus(allowed=True)

    def check(self, ip: str, hostname: str) -> RateLimitStatus:
        """
        Run the IP limiter, then the hostname cooldown.

        An IP rejection returns before the hostname timer is touched.
        """
        ip_status = self.check_ip(ip)
        if not ip_status.allowed:
            return ip_status

        hostname_status = self.check_hostname(hostname)
        if not hostname_status.allowed:
            return hostname_status

        return RateLimitStatus(
            allowed=True, requests_remaining=ip_status.requests_remaining
        )

    def get_remaining_cooldown(self, hostname: str) -> int:
        """Seconds until ``hostname`` may be checked again (0 if it may now)."""
        last_check = self._hostname_store.get(hostname)
        if last_check is None:
            return 0
        remaining = self._config.cooldown_seconds - (self._clock() - last_check)
        return max(0, math.ceil(remaining))

    def cleanup(self) -> int:
        """
        Drop closed IP windows and hostnames idle for over an hour.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = self._ip_store.sweep(lambda _ip, entry: now >= entry.reset_time)
        removed += self._hostname_store.sweep(
            lambda _host, last: now - last > HOSTNAME_IDLE_SECONDS
        )
        if removed:
            self._log(LogLevel.DEBUG, "Rate limit cleanup", {"removed": removed})
        return removed

    def get_config(self) -> dict:
        return {
            "cooldown_seconds": self._config.cooldown_seconds,
            "requests_per_minute": self._config.requests_per_minute,
        }

    def reset(self) -> None:
        """Forget all windows and cooldowns."""
        self._ip_store.clear()
        self._hostname_store.clear()


class ClientCooldown:
    """
    Advisory hostname cooldown kept in client-local storage.

    ``storage`` is any string mapping (a browser localStorage analogue).
    Keys are ``cooldown_<hostname>`` and values are millisecond timestamps
    as strings, matching what the web client writes.
    """

    KEY_PREFIX = "cooldown_"

    def __init__(
        self,
        storage: MutableMapping[str, str],
        cooldown_seconds: int = 40,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock

    def _key(self, hostname: str) -> str:
        return f"{self.KEY_PREFIX}{hostname}"

    def get_remaining_time(self, hostname: str) -> int:
        """Seconds left on the local cooldown; expired entries are removed."""
        key = self._key(hostname)
        raw = self._storage.get(key)
        if raw is None:
            return 0

        try:
            last_check = int(raw) / 1000.0
        except ValueError:
            del self._storage[key]
            return 0

        remaining = self._cooldown_seconds - (self._clock() - last_check)
        if remaining <= 0:
            del self._storage[key]
            return 0
        return math.ceil(remaining)

    def record_check(self, hostname: str) -> None:
        self._storage[self._key(hostname)] = str(int(self._clock() * 1000))

    def clear_all(self) -> None:
        """Remove every cooldown key, leaving unrelated keys alone."""
        for key in [k for k in self._storage if k.startswith(self.KEY_PREFIX)]:
            del self._storage[key]

    def get_cooldown_seconds(self) -> int:
        return self._cooldown_seconds
