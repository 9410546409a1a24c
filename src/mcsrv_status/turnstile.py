"""
Cloudflare Turnstile token verification.

Posts the token to the siteverify endpoint. Any network or decoding failure
counts as a failed verification. When the feature is disabled verification is
skipped; when it is enabled without a secret key the request is allowed and a
warning is logged.
"""

from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .config import TurnstileConfig
from .enums import LogLevel


class TurnstileVerifier:
    """Async Turnstile verifier on httpx."""

    def __init__(
        self,
        config: TurnstileConfig,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            config: Turnstile settings (enabled flag, secret, endpoint)
            logger: Optional audit logger
            transport: Optional httpx transport (used by tests)
        """
        self._config = config
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    async def __aenter__(self) -> "TurnstileVerifier":
        self._client = self._create_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=True,
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=self._transport,
        )

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        """
        Verify a Turnstile token.

        Args:
            token: Token produced by the client widget
            remote_ip: Optional client IP forwarded to Cloudflare

        Returns:
            True if the request may proceed
        """
        if not self._config.enabled:
            return True

        if not self._config.secret_key:
            self._log(LogLevel.WARN, "TURNSTILE_SECRET_KEY not configured, allowing request")
            return True

        if not token:
            return False

        if self._client is None:
            self._client = self._create_client()

        payload = {"secret": self._config.secret_key, "response": token}
        if remote_ip and remote_ip != "unknown":
            payload["remoteip"] = remote_ip

        try:
            response = await self._client.post(self._config.verify_url, json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            if self._logger:
                self._logger.log_error(
                    "TurnstileVerifier",
                    "Turnstile verification error",
                    error=e,
                    request_url=self._config.verify_url,
                )
            return False

        success = isinstance(data, dict) and data.get("success") is True
        if not success:
            self._log(LogLevel.INFO, "Turnstile token rejected", {
                "error_codes": data.get("error-codes", []) if isinstance(data, dict) else [],
            })
        return success

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, "TurnstileVerifier", message, data)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
