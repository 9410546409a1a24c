"""
Status lookup client backed by public Minecraft status APIs.

Java servers are queried on mcstatus.io first and on mcsrvstat.us when that
fails; Bedrock servers on mcstatus.io only. Every outcome is returned as a
tagged LookupResult rather than raised, and failure messages are safe to show
to end users.
"""

import time
from typing import Any, Optional, Protocol

import httpx

from .audit_logger import AuditLogger
from .config import ServerConfig
from .enums import Edition, LogLevel
from .models import (
    DnsInfo,
    LookupResult,
    MotdData,
    PlayerInfo,
    PlayerSample,
    QueryData,
    ServerStatus,
    SrvRecord,
)


class StatusLookup(Protocol):
    """External status lookup used by the pipeline."""

    async def lookup(self, hostname: str, port: int, edition: Edition) -> LookupResult:
        ...


class UpstreamFailure(Exception):
    """Internal signal that one status API could not answer."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def _lines(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split("\n"))
    return tuple(str(v) for v in value)


def _html(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return "<br>".join(str(v) for v in value)


class McStatusClient:
    """
    Async status client on httpx.

    In simulation mode no network requests are made and every server is
    reported online with placeholder data.
    """

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
        simulation_mode: bool = False,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the status client.

        Args:
            config: Upstream API URLs
            timeout: Per-request timeout in seconds
            simulation_mode: If True, no real network requests are made
            logger: Optional audit logger
            transport: Optional httpx transport (used by tests)
        """
        self._config = config or ServerConfig()
        self._timeout = timeout
        self._simulation_mode = simulation_mode
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "McStatusClient":
        """Async context manager entry."""
        self._client = self._create_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=True,
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            transport=self._transport,
        )

    async def lookup(self, hostname: str, port: int, edition: Edition) -> LookupResult:
        """
        Look up the status of a server.

        Args:
            hostname: Validated hostname
            port: Port number
            edition: Java or Bedrock

        Returns:
            LookupResult tagged ok, offline, dns_failure, timeout or rate_limited
        """
        if self._simulation_mode:
            return LookupResult.ok(self._create_simulation_status(hostname, port, edition))

        if self._client is None:
            self._client = self._create_client()

        start_time = time.perf_counter()
        url = f"{self._config.status_api_url.rstrip('/')}/{edition.value}/{hostname}:{port}"

        try:
            data = await self._fetch_json(url)
            return self._classify(
                self._parse_mcstatus(data, hostname, port, edition, start_time)
            )
        except UpstreamFailure as primary:
            self._log_failure("Primary status API failed", url, primary)
            if edition is Edition.BEDROCK:
                return self._result_for_failure(primary, hostname, port, edition)

        fallback_url = f"{self._config.fallback_api_url.rstrip('/')}/{hostname}:{port}"
        try:
            data = await self._fetch_json(fallback_url)
        except UpstreamFailure as fallback:
            self._log_failure("Fallback status API failed", fallback_url, fallback)
            return self._result_for_failure(fallback, hostname, port, edition)

        return self._classify(self._parse_mcsrvstat(data, hostname, port, start_time))

    async def _fetch_json(self, url: str) -> dict:
        try:
            response = await self._client.get(url, headers={"Accept": "application/json"})
        except httpx.TimeoutException:
            raise UpstreamFailure("timeout", f"Request timed out after {self._timeout}s")
        except httpx.HTTPError as e:
            raise UpstreamFailure("network", f"Connection error: {e}")

        if response.status_code == 429:
            raise UpstreamFailure("rate_limited", "Rate limit exceeded by the status service")
        if response.status_code != 200:
            raise UpstreamFailure("http", f"HTTP error! status: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFailure("parse", f"Invalid JSON from status service: {e}")
        if not isinstance(data, dict):
            raise UpstreamFailure("parse", "Unexpected response from status service")
        return data

    def _classify(self, status: ServerStatus) -> LookupResult:
        if status.online:
            return LookupResult.ok(status)
        if status.ip is None:
            return LookupResult.dns_failure(f"getaddrinfo ENOTFOUND {status.hostname}")
        return LookupResult.offline(status, "The server appears to be offline or unreachable.")

    def _result_for_failure(
        self, failure: UpstreamFailure, hostname: str, port: int, edition: Edition
    ) -> LookupResult:
        if failure.kind == "timeout":
            return LookupResult.timeout(f"Connection to {hostname}:{port} timed out")
        if failure.kind == "rate_limited":
            return LookupResult.rate_limited(
                "Rate limit exceeded by the status service. Please try again later."
            )
        return LookupResult.offline(
            ServerStatus(online=False, hostname=hostname, port=port, cache_time=time.time()),
            "Failed to fetch server status. Server may be offline or unreachable.",
        )

    def _parse_mcstatus(
        self,
        data: dict,
        hostname: str,
        port: int,
        edition: Edition,
        start_time: float,
    ) -> ServerStatus:
        ping = self._elapsed_ms(start_time)
        version = data.get("version") or {}
        raw_players = data.get("players")
        raw_motd = data.get("motd")
        srv = data.get("srv_record")

        players = None
        if isinstance(raw_players, dict):
            sample = None
            if raw_players.get("list"):
                sample = tuple(
                    PlayerSample(
                        name=p.get("name_clean") or p.get("name_raw") or "",
                        id=p.get("uuid") or "",
                    )
                    for p in raw_players["list"]
                    if isinstance(p, dict)
                )
            players = PlayerInfo(
                online=raw_players.get("online") or 0,
                max=raw_players.get("max") or 0,
                list=tuple(p.name for p in sample) if sample else None,
                sample=sample,
            )

        motd = None
        if isinstance(raw_motd, dict):
            motd = MotdData(
                raw=_lines(raw_motd.get("raw")),
                html=_html(raw_motd.get("html")),
                clean=_lines(raw_motd.get("clean")),
            )

        ip = data.get("ip_address")
        dns = DnsInfo(
            hostname=hostname,
            ip=ip,
            a_records=(ip,) if ip else None,
            srv_record=SrvRecord(host=srv.get("host", ""), port=srv.get("port", port))
            if isinstance(srv, dict) else None,
        )

        query = None
        if edition is Edition.BEDROCK:
            version_name = version.get("name")
            software = data.get("edition")
            if data.get("gamemode"):
                query = QueryData(gametype=data.get("gamemode"), map=data.get("map"))
        else:
            version_name = version.get("name_clean") or version.get("name_raw")
            software = data.get("software")

        return ServerStatus(
            online=bool(data.get("online")),
            hostname=hostname,
            port=port,
            cache_time=time.time(),
            ip=ip,
            version=version_name,
            protocol=version.get("protocol"),
            software=software,
            players=players,
            motd=motd,
            ping=ping,
            icon=data.get("icon"),
            query=query,
            dns=dns,
            mojang_blocked=False,
            eula_blocked=data.get("eula_blocked"),
        )

    def _parse_mcsrvstat(
        self, data: dict, hostname: str, port: int, start_time: float
    ) -> ServerStatus:
        raw_players = data.get("players")
        raw_motd = data.get("motd")
        protocol = data.get("protocol")
        if isinstance(protocol, dict):
            protocol = protocol.get("version")

        players = None
        if isinstance(raw_players, dict):
            names = None
            if raw_players.get("list"):
                names = tuple(
                    p if isinstance(p, str) else p.get("name", "")
                    for p in raw_players["list"]
                )
            players = PlayerInfo(
                online=raw_players.get("online") or 0,
                max=raw_players.get("max") or 0,
                list=names,
            )

        motd = None
        if isinstance(raw_motd, dict):
            motd = MotdData(
                raw=_lines(raw_motd.get("raw")),
                html=_html(raw_motd.get("html")),
                clean=_lines(raw_motd.get("clean")),
            )

        return ServerStatus(
            online=bool(data.get("online")),
            hostname=hostname,
            port=data.get("port") or port,
            cache_time=time.time(),
            ip=data.get("ip"),
            version=data.get("version"),
            protocol=protocol,
            software=data.get("software"),
            players=players,
            motd=motd,
            ping=self._elapsed_ms(start_time),
            icon=data.get("icon"),
            dns=DnsInfo(hostname=hostname, ip=data.get("ip")),
        )

    def _create_simulation_status(
        self, hostname: str, port: int, edition: Edition
    ) -> ServerStatus:
        """Create a simulated status for testing without network access."""
        return ServerStatus(
            online=True,
            hostname=hostname,
            port=port,
            cache_time=time.time(),
            ip="127.0.0.1",
            version="1.21.1",
            protocol=767,
            software="Simulated" if edition is Edition.JAVA else "MCPE",
            players=PlayerInfo(online=0, max=20),
            motd=MotdData(
                raw=("§aSimulated server",),
                html='<span style="color: #55FF55">Simulated server</span>',
                clean=("Simulated server",),
            ),
            ping=0.0,
            dns=DnsInfo(hostname=hostname, ip="127.0.0.1", a_records=("127.0.0.1",)),
        )

    def _log_failure(self, message: str, url: str, failure: UpstreamFailure) -> None:
        if self._logger:
            self._logger.log(LogLevel.WARN, "McStatusClient", message, {
                "request_url": url,
                "kind": failure.kind,
                "error": str(failure),
            })

    def _elapsed_ms(self, start_time: float) -> float:
        """Calculate elapsed time in milliseconds."""
        return (time.perf_counter() - start_time) * 1000

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
