"""
Data models for the server status system.

This module defines the server status snapshot returned by the external
lookup, the tagged lookup result, and the bookkeeping records owned by the
cache, the deduplicator and the rate limiter.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .enums import Edition, LookupOutcome


@dataclass(frozen=True)
class PlayerSample:
    """A single player from the server's ping sample."""

    name: str
    id: str = ""


@dataclass(frozen=True)
class PlayerInfo:
    """Player counts and optional player listing."""

    online: int
    max: int
    list: Optional[tuple[str, ...]] = None
    sample: Optional[tuple[PlayerSample, ...]] = None


@dataclass(frozen=True)
class MotdData:
    """MOTD in raw (formatted), HTML and clean (plain) forms."""

    raw: tuple[str, ...] = ()
    html: str = ""
    clean: tuple[str, ...] = ()


@dataclass(frozen=True)
class SrvRecord:
    """SRV record the hostname resolved through."""

    host: str
    port: int


@dataclass(frozen=True)
class DnsInfo:
    """DNS diagnostics for a hostname."""

    hostname: str
    ip: Optional[str] = None
    a_records: Optional[tuple[str, ...]] = None
    srv_record: Optional[SrvRecord] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class QueryData:
    """Extra data from the query protocol (when the server exposes it)."""

    gametype: Optional[str] = None
    map: Optional[str] = None
    plugins: Optional[tuple[str, ...]] = None
    version: Optional[str] = None


@dataclass(frozen=True)
class ServerStatus:
    """Status snapshot of a Minecraft server, as returned by a lookup."""

    online: bool
    hostname: str
    port: int
    cache_time: float
    ip: Optional[str] = None
    version: Optional[str] = None
    protocol: Optional[int] = None
    software: Optional[str] = None
    players: Optional[PlayerInfo] = None
    motd: Optional[MotdData] = None
    ping: Optional[float] = None
    icon: Optional[str] = None
    query: Optional[QueryData] = None
    dns: Optional[DnsInfo] = None
    mojang_blocked: Optional[bool] = None
    eula_blocked: Optional[bool] = None
    cached: bool = False

    def as_cached(self) -> "ServerStatus":
        """Return a copy tagged as served from cache."""
        return replace(self, cached=True)


@dataclass(frozen=True)
class LookupResult:
    """
    Tagged result of an external status lookup.

    Exactly one outcome applies. ``status`` is set for OK and OFFLINE,
    ``message`` holds user-safe text for the failure outcomes.
    """

    outcome: LookupOutcome
    status: Optional[ServerStatus] = None
    message: str = ""

    @classmethod
    def ok(cls, status: ServerStatus) -> "LookupResult":
        return cls(outcome=LookupOutcome.OK, status=status)

    @classmethod
    def offline(cls, status: ServerStatus, message: str = "") -> "LookupResult":
        return cls(outcome=LookupOutcome.OFFLINE, status=status, message=message)

    @classmethod
    def dns_failure(cls, message: str) -> "LookupResult":
        return cls(outcome=LookupOutcome.DNS_FAILURE, message=message)

    @classmethod
    def timeout(cls, message: str) -> "LookupResult":
        return cls(outcome=LookupOutcome.TIMEOUT, message=message)

    @classmethod
    def rate_limited(cls, message: str) -> "LookupResult":
        return cls(outcome=LookupOutcome.RATE_LIMITED, message=message)


@dataclass
class CacheEntry:
    """A cached status with the time it was stored."""

    status: ServerStatus
    timestamp: float


@dataclass
class PendingRequest:
    """An in-flight upstream call shared by concurrent callers."""

    task: "asyncio.Future[Any]"
    timestamp: float


@dataclass
class RateLimitEntry:
    """Per-IP fixed-window counter."""

    count: int
    reset_time: float


@dataclass
class StatusRequest:
    """An inbound status check request."""

    hostname: str
    port: Optional[int] = None
    is_bedrock: bool = False
    client_ip: str = "unknown"
    turnstile_token: Optional[str] = None

    @property
    def edition(self) -> Edition:
        return Edition.BEDROCK if self.is_bedrock else Edition.JAVA


@dataclass
class PipelineResult:
    """HTTP-like response produced by the status pipeline."""

    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status_code == 200 and bool(self.body.get("success"))
