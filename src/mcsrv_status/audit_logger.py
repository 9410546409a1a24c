"""
Structured logging for the status pipeline.

Each entry is written as a JSON line, a text line, or both. Values under
keys that look like credentials (Turnstile tokens, API secrets, cookies)
are masked before an entry is stored or written.
"""

import json
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from mcsrv_status.enums import LogLevel


_SEVERITY = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR]

OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LogEntry:
    """One emitted log record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_text(self) -> str:
        # [2024-01-01T00:00:00+00:00] WARN [McStatusClient] Primary status API failed {...}
        line = f"[{self.timestamp}] {self.level.value.upper()} [{self.component}] {self.message}"
        if self.data:
            line += " " + json.dumps(self.data, ensure_ascii=False, default=str)
        return line


class AuditLogger:
    """
    Logger shared by the pipeline components.

    Components receive it as an optional constructor argument and skip
    logging entirely when none is given.
    """

    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'secret_key',
        'turnstile_token', 'auth', 'authorization', 'cookie',
        'credential', 'credentials', 'private_key', 'access_token',
        'session_token',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.INFO,
        include_traceback: bool = False,
    ):
        """
        Args:
            output_format: 'json', 'text' or 'both'
            output_stream: Where lines are written (sys.stderr by default)
            min_level: Entries below this severity are discarded
            include_traceback: Attach formatted tracebacks to error entries
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Invalid output_format: {output_format!r} "
                f"(expected one of {', '.join(OUTPUT_FORMATS)})"
            )

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._include_traceback = include_traceback
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(cls, config, output_stream: Optional[TextIO] = None) -> "AuditLogger":
        """
        Build a logger from a LoggingConfig.

        Unknown level names fall back to info. ``debug_mode`` turns on
        tracebacks for error entries.
        """
        try:
            level = LogLevel(config.level.lower())
        except ValueError:
            level = LogLevel.INFO
        return cls(
            output_format=config.output_format,
            output_stream=output_stream,
            min_level=level,
            include_traceback=config.debug_mode,
        )

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Entries recorded so far (copy)."""
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _SEVERITY.index(level) >= _SEVERITY.index(self._min_level)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record and write one entry.

        Returns:
            The stored entry, or None when ``level`` is below the threshold
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._entries.append(entry)
        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record an error together with the request it happened on.

        The exception contributes ``error_message`` and ``error_type`` (and
        ``traceback`` when tracebacks are enabled); the upstream URL and HTTP
        status are added when known.
        """
        data = dict(additional_data or {})

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            if self._include_traceback:
                data["traceback"] = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )
        if request_url is not None:
            data["request_url"] = request_url
        if response_status_code is not None:
            data["response_status_code"] = response_status_code

        return self.log(LogLevel.ERROR, component, message, data)

    def is_sensitive_key(self, key: Any) -> bool:
        lowered = str(key).lower()
        return any(pattern in lowered for pattern in self.SENSITIVE_KEYS)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Return a copy of ``data`` with sensitive values masked at any depth."""
        if not isinstance(data, dict):
            return data
        return self._mask(data)

    def _mask(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: self.MASK_VALUE if self.is_sensitive_key(key) else self._mask(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self._mask(item) for item in value]
        return value

    def _write(self, entry: LogEntry) -> None:
        if self._output_format != "text":
            self._stream.write(entry.to_json() + "\n")
        if self._output_format != "json":
            self._stream.write(entry.to_text() + "\n")
        self._stream.flush()

    def clear_entries(self) -> None:
        self._entries.clear()
