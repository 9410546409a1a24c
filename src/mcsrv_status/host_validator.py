"""
Server address validation and normalization module.

Validates hostnames (DNS names, dotted-quad IPv4, ``localhost``) and port
numbers before any limiter or cache state is touched. International
hostnames are converted to their IDNA (punycode) form first.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

import idna

from mcsrv_status.enums import Edition, HostValidationErrorCode
from mcsrv_status.exceptions import ValidationError


# Control characters, whitespace and symbols never valid in a server address
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

HOSTNAME_PATTERN = re.compile(
    r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)*"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$"
)
IPV4_PATTERN = re.compile(r"^(?:[0-9]{1,3}\.){3}[0-9]{1,3}$")
_PORT_DIGITS = re.compile(r"[0-9]+")

MAX_HOSTNAME_LENGTH = 253
MIN_PORT = 1
MAX_PORT = 65535


@dataclass
class HostValidationError:
    """Structured error information for address validation failures."""

    code: HostValidationErrorCode
    message: str
    details: dict


@dataclass
class HostValidationResult:
    """Result of a hostname validation."""

    valid: bool
    hostname: Optional[str]
    error: Optional[HostValidationError]


@dataclass
class PortValidationResult:
    """Result of a port validation."""

    valid: bool
    port: Optional[int]
    error: Optional[HostValidationError]


def _host_error(
    code: HostValidationErrorCode, message: str, **details
) -> HostValidationResult:
    return HostValidationResult(
        valid=False,
        hostname=None,
        error=HostValidationError(code=code, message=message, details=details),
    )


def _port_error(
    code: HostValidationErrorCode, message: str, **details
) -> PortValidationResult:
    return PortValidationResult(
        valid=False,
        port=None,
        error=HostValidationError(code=code, message=message, details=details),
    )


class HostValidator:
    """
    Validates and normalizes server addresses.

    Handles:
    - Rejection of control characters, whitespace and special symbols
    - IDNA encoding of international hostnames
    - RFC 1035 style label checks, dotted-quad IPv4 and ``localhost``
    - Port range checks
    """

    def validate_hostname(self, raw_hostname: str) -> HostValidationResult:
        """
        Validate and normalize a hostname.

        Args:
            raw_hostname: The hostname as entered by the user

        Returns:
            HostValidationResult with the normalized hostname or an error
        """
        if not isinstance(raw_hostname, str) or not raw_hostname.strip():
            return _host_error(
                HostValidationErrorCode.EMPTY_INPUT,
                "Hostname cannot be empty",
                raw_input=raw_hostname,
            )

        hostname = raw_hostname.strip()

        if FORBIDDEN_CHARS_PATTERN.search(hostname):
            return _host_error(
                HostValidationErrorCode.FORBIDDEN_CHARS,
                "Hostname contains invalid characters",
                raw_input=raw_hostname,
                forbidden_chars=FORBIDDEN_CHARS_PATTERN.findall(hostname),
            )

        try:
            hostname = self.normalize_hostname(hostname)
        except ValidationError as e:
            return _host_error(
                HostValidationErrorCode.IDNA_ERROR,
                e.message,
                **e.details,
            )

        if len(hostname) > MAX_HOSTNAME_LENGTH:
            return _host_error(
                HostValidationErrorCode.TOO_LONG,
                f"Hostname is too long (max {MAX_HOSTNAME_LENGTH} characters)",
                raw_input=raw_hostname,
                length=len(hostname),
            )

        if not (
            hostname == "localhost"
            or IPV4_PATTERN.match(hostname)
            or HOSTNAME_PATTERN.match(hostname)
        ):
            return _host_error(
                HostValidationErrorCode.INVALID_FORMAT,
                "Invalid hostname format. Use a domain (e.g., mc.hypixel.net) "
                "or IP address (e.g., 192.168.1.1)",
                raw_input=raw_hostname,
            )

        return HostValidationResult(valid=True, hostname=hostname, error=None)

    def normalize_hostname(self, hostname: str) -> str:
        """
        Lowercase a hostname and IDNA-encode it if it has non-ASCII characters.

        Raises:
            ValidationError: If IDNA encoding fails
        """
        hostname = hostname.lower().rstrip(".")
        if all(ord(c) < 128 for c in hostname):
            return hostname
        try:
            return idna.encode(hostname, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=HostValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"hostname": hostname, "idna_error": str(e)},
            )

    def validate_port(self, port: Union[int, str, None]) -> PortValidationResult:
        """
        Validate a port number given as int or numeric string.

        Args:
            port: Port number to check

        Returns:
            PortValidationResult with the integer port or an error
        """
        if isinstance(port, bool):
            port_num = None
        elif isinstance(port, int):
            port_num = port
        elif isinstance(port, str) and _PORT_DIGITS.fullmatch(port.strip()):
            port_num = int(port.strip())
        else:
            port_num = None

        if port_num is None:
            return _port_error(
                HostValidationErrorCode.INVALID_PORT,
                "Port must be a number",
                raw_input=port,
            )

        if port_num < MIN_PORT or port_num > MAX_PORT:
            return _port_error(
                HostValidationErrorCode.PORT_OUT_OF_RANGE,
                f"Port must be between {MIN_PORT} and {MAX_PORT}",
                port=port_num,
            )

        return PortValidationResult(valid=True, port=port_num, error=None)


def resolve_port(port: Optional[int], edition: Edition) -> int:
    """Return ``port`` or the edition's default port when it is not given."""
    return port if port else edition.default_port


def parse_server_address(address: str, edition: Edition = Edition.JAVA) -> tuple[str, int]:
    """
    Split ``host[:port]`` into hostname and port.

    The edition's default port is used when the address carries none.

    Raises:
        ValidationError: If the port part is not a valid port
    """
    address = address.strip()
    hostname, sep, port_part = address.partition(":")
    if not sep:
        return hostname, edition.default_port

    result = HostValidator().validate_port(port_part)
    if not result.valid:
        raise ValidationError(
            code=result.error.code.value,
            message=result.error.message,
            details=result.error.details,
        )
    return hostname, result.port
