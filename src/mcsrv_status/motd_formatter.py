"""
MOTD formatter: Minecraft color/format code engine.

Parses legacy (``§``/``&``) and hex (``§x§R§R§G§G§B§B``, ``§#RRGGBB``,
``&#RRGGBB``) codes and provides:
- HTML preview rendering
- Conversion to the vanilla, Spigot, BungeeCord and ServerListPlus dialects
- Gradient generation
- URL share encoding/decoding
- Visible length, centering and MOTD validation

All functions are pure. Unknown codes are skipped silently, never rejected,
so MOTDs containing codes from newer clients still render.
"""

import base64
import html
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Optional, Union
from urllib.parse import quote, unquote

from .enums import ErrorCode, LogLevel, MotdDialect
from .exceptions import InvalidColorFormat

if TYPE_CHECKING:
    from .audit_logger import AuditLogger


SECTION_SIGN = "§"

# Escaped section sign as written into server.properties / Spigot YAML
UNICODE_ESCAPE = "\\u00A7"

MINECRAFT_COLORS: dict[str, str] = {
    "0": "#000000",  # Black
    "1": "#0000AA",  # Dark Blue
    "2": "#00AA00",  # Dark Green
    "3": "#00AAAA",  # Dark Aqua
    "4": "#AA0000",  # Dark Red
    "5": "#AA00AA",  # Dark Purple
    "6": "#FFAA00",  # Gold
    "7": "#AAAAAA",  # Gray
    "8": "#555555",  # Dark Gray
    "9": "#5555FF",  # Blue
    "a": "#55FF55",  # Green
    "b": "#55FFFF",  # Aqua
    "c": "#FF5555",  # Red
    "d": "#FF55FF",  # Light Purple
    "e": "#FFFF55",  # Yellow
    "f": "#FFFFFF",  # White
}

FORMAT_CODES: dict[str, str] = {
    "l": "font-weight: bold",
    "o": "font-style: italic",
    "n": "text-decoration: underline",
    "m": "text-decoration: line-through",
    "k": "animation: obfuscate 0.1s infinite",
}

STYLE_NAMES: dict[str, str] = {
    "l": "bold",
    "o": "italic",
    "n": "underline",
    "m": "strikethrough",
    "k": "obfuscated",
}

RESET_CODE = "r"
DEFAULT_COLOR = "#FFFFFF"

VALID_CODES = frozenset(MINECRAFT_COLORS) | frozenset(FORMAT_CODES) | {RESET_CODE}

MAX_MOTD_LENGTH = 256
MOTD_LENGTH_WARNING = 200
MAX_MOTD_LINES = 2
MAX_FORMAT_CODES = 100
DEFAULT_LINE_WIDTH = 60

_AMPERSAND_CODE = re.compile(r"&([0-9a-fk-orx]|#(?=[0-9a-fA-F]{6}))", re.IGNORECASE)
_HEX_COLOR = re.compile(r"#[0-9a-fA-F]{6}")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_MALFORMED_PERCENT = re.compile(r"%(?![0-9a-fA-F]{2})")
# encodeURIComponent leaves these unescaped
_URL_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class ColorSpan:
    """A run of characters sharing one color and one set of styles."""

    text: str
    color: str
    styles: tuple[str, ...] = ()


@dataclass
class MotdValidationResult:
    """Outcome of a MOTD validation check."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# Token kinds produced by _tokenize
_TEXT = "text"
_HEX = "hex"
_COLOR = "color"
_FORMAT = "format"
_RESET = "reset"
_UNKNOWN = "unknown"


def _normalize(text: str) -> str:
    """Rewrite ``&<code>`` to ``§<code>`` so both signs parse the same way."""
    return _AMPERSAND_CODE.sub(lambda m: SECTION_SIGN + m.group(1), text)


def _read_section_hex(text: str, i: int) -> Optional[str]:
    """Read ``§x§R§R§G§G§B§B`` starting at ``i``; None if malformed."""
    if i + 13 >= len(text):
        return None
    digits = []
    for k in range(6):
        sign = text[i + 2 + 2 * k]
        digit = text[i + 3 + 2 * k]
        if sign != SECTION_SIGN or digit not in _HEX_DIGITS:
            return None
        digits.append(digit)
    return "".join(digits)


def _read_hash_hex(text: str, i: int) -> Optional[str]:
    """Read ``§#RRGGBB`` starting at ``i``; None if malformed."""
    if i + 7 >= len(text):
        return None
    candidate = text[i + 1:i + 8]
    if _HEX_COLOR.fullmatch(candidate):
        return candidate[1:]
    return None


def _tokenize(text: str) -> Iterator[tuple[str, str]]:
    """
    Walk normalized text and yield ``(kind, value)`` tokens.

    Every consumer (HTML, dialect conversion, visible length, stripping)
    is driven by this one walk so they agree on what counts as a code.
    """
    text = _normalize(text)
    i = 0
    n = len(text)
    while i < n:
        if text[i] == SECTION_SIGN and i + 1 < n:
            code = text[i + 1].lower()

            if code == "x":
                hex_digits = _read_section_hex(text, i)
                if hex_digits is not None:
                    yield _HEX, hex_digits
                    i += 14
                    continue

            if code == "#":
                hex_digits = _read_hash_hex(text, i)
                if hex_digits is not None:
                    yield _HEX, hex_digits
                    i += 8
                    continue

            if code in MINECRAFT_COLORS:
                yield _COLOR, code
            elif code in FORMAT_CODES:
                yield _FORMAT, code
            elif code == RESET_CODE:
                yield _RESET, code
            else:
                yield _UNKNOWN, code
            i += 2
            continue

        yield _TEXT, text[i]
        i += 1


def parse_spans(text: str) -> list[ColorSpan]:
    """
    Parse formatted text into color spans.

    Adjacent characters with the same color and styles are merged.
    """
    spans: list[ColorSpan] = []
    color = DEFAULT_COLOR
    styles: list[str] = []
    buffer: list[str] = []

    def flush() -> None:
        if buffer:
            spans.append(ColorSpan("".join(buffer), color, tuple(styles)))
            buffer.clear()

    for kind, value in _tokenize(text or ""):
        if kind == _TEXT:
            buffer.append(value)
            continue
        if kind == _UNKNOWN:
            continue
        flush()
        if kind == _HEX:
            color = "#" + value
        elif kind == _COLOR:
            color = MINECRAFT_COLORS[value]
        elif kind == _FORMAT:
            name = STYLE_NAMES[value]
            if name not in styles:
                styles.append(name)
        elif kind == _RESET:
            color = DEFAULT_COLOR
            styles = []
    flush()
    return spans


def parse_to_html(text: str) -> str:
    """
    Render Minecraft-formatted text as HTML with inline styles.

    Each visible character becomes its own ``<span>`` carrying the current
    color followed by the active style rules.

    Args:
        text: Raw Minecraft-formatted text (``§`` or ``&`` codes)

    Returns:
        HTML string, empty for empty input
    """
    if not text:
        return ""

    parts: list[str] = []
    color = DEFAULT_COLOR
    styles: list[str] = []

    for kind, value in _tokenize(text):
        if kind == _HEX:
            color = "#" + value
        elif kind == _COLOR:
            color = MINECRAFT_COLORS[value]
        elif kind == _FORMAT:
            rule = FORMAT_CODES[value]
            if rule not in styles:
                styles.append(rule)
        elif kind == _RESET:
            color = DEFAULT_COLOR
            styles = []
        elif kind == _TEXT:
            style = "; ".join([f"color: {color}", *styles])
            parts.append(f'<span style="{style}">{html.escape(value, quote=True)}</span>')

    return "".join(parts)


def hex_to_legacy(hex_color: str) -> str:
    """
    Map a ``#RRGGBB`` color to the nearest legacy palette code.

    Distance is Euclidean in RGB space; ties go to the earlier palette entry.
    """
    target = _hex_to_rgb(hex_color)
    best_code = "0"
    best_distance = math.inf
    for code, palette_hex in MINECRAFT_COLORS.items():
        distance = math.dist(target, _hex_to_rgb(palette_hex))
        if distance < best_distance:
            best_code = code
            best_distance = distance
    return best_code


def _coerce_dialect(dialect: Union[str, MotdDialect]) -> MotdDialect:
    if isinstance(dialect, MotdDialect):
        return dialect
    try:
        return MotdDialect(dialect.lower())
    except ValueError:
        raise ValueError(
            f"Unknown MOTD dialect: {dialect!r}. "
            f"Expected one of: {', '.join(d.value for d in MotdDialect)}"
        ) from None


def _emit_hex(hex_digits: str, dialect: MotdDialect) -> str:
    hex_digits = hex_digits.upper()
    if dialect is MotdDialect.VANILLA:
        # Vanilla has no RGB support
        return UNICODE_ESCAPE + hex_to_legacy("#" + hex_digits)
    if dialect is MotdDialect.SPIGOT:
        return UNICODE_ESCAPE + "x" + "".join(UNICODE_ESCAPE + c for c in hex_digits)
    if dialect is MotdDialect.BUNGEECORD:
        return "&x" + "".join("&" + c for c in hex_digits)
    return "&#" + hex_digits


def convert_to_format(text: str, dialect: Union[str, MotdDialect]) -> str:
    """
    Re-emit formatted text in a server config dialect.

    - vanilla: ``\\u00A7<code>``, hex colors downgraded to the nearest legacy color
    - spigot: ``\\u00A7<code>``, hex as ``\\u00A7x\\u00A7R...``
    - bungeecord: ``&<code>``, hex as ``&x&R...``
    - serverlistplus: ``&<code>``, hex as ``&#RRGGBB``

    Unknown codes are dropped.

    Args:
        text: Minecraft-formatted text
        dialect: Target dialect (name or MotdDialect)

    Returns:
        Text in the target dialect's escape syntax
    """
    target = _coerce_dialect(dialect)
    if not text:
        return ""

    prefix = UNICODE_ESCAPE if target in (MotdDialect.VANILLA, MotdDialect.SPIGOT) else "&"
    out: list[str] = []
    for kind, value in _tokenize(text):
        if kind == _TEXT:
            out.append(value)
        elif kind == _HEX:
            out.append(_emit_hex(value, target))
        elif kind in (_COLOR, _FORMAT, _RESET):
            out.append(prefix + value)
    return "".join(out)


def _validate_hex_color(color: str) -> None:
    if not isinstance(color, str) or not _HEX_COLOR.fullmatch(color):
        raise InvalidColorFormat(
            code=ErrorCode.INVALID_COLOR.value,
            message="Invalid hex color format. Use #RRGGBB",
            details={"color": color},
        )


def _hex_to_rgb(color: str) -> tuple[int, int, int]:
    return int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def interpolate_color(start: str, end: str, factor: float) -> str:
    """Linearly interpolate two ``#RRGGBB`` colors; returns upper-case hex."""
    channels = []
    for a, b in zip(_hex_to_rgb(start), _hex_to_rgb(end)):
        value = _round_half_up(a + (b - a) * factor)
        channels.append(min(255, max(0, value)))
    return "#" + "".join(f"{c:02X}" for c in channels)


def to_minecraft_hex(color: str) -> str:
    """Convert ``#RRGGBB`` to ``§x§R§R§G§G§B§B``."""
    return SECTION_SIGN + "x" + "".join(SECTION_SIGN + c for c in color.lstrip("#").upper())


def generate_gradient(text: str, start_color: str, end_color: str) -> str:
    """
    Color each character along a linear gradient.

    Character ``i`` of ``n`` gets factor ``i / (n - 1)`` (0 for a single
    character) and is prefixed with its hex color code.

    Raises:
        InvalidColorFormat: If either color is not ``#RRGGBB``
    """
    if not text:
        return ""

    _validate_hex_color(start_color)
    _validate_hex_color(end_color)

    length = len(text)
    out: list[str] = []
    for i, char in enumerate(text):
        factor = 0.0 if length == 1 else i / (length - 1)
        out.append(to_minecraft_hex(interpolate_color(start_color, end_color, factor)) + char)
    return "".join(out)


def encode_for_url(text: str) -> str:
    """Percent-encode MOTD text for share links."""
    return quote(text, safe=_URL_SAFE)


def decode_from_url(encoded: str, logger: Optional["AuditLogger"] = None) -> str:
    """
    Decode MOTD text from a share link.

    Older links were double encoded; leftover ``%C2%A7`` and ``%26`` are
    mapped back to ``§`` and ``&``. A malformed percent sequence yields an
    empty string instead of an exception.
    """
    try:
        if _MALFORMED_PERCENT.search(encoded):
            raise ValueError("malformed percent-encoding")
        decoded = unquote(encoded, errors="strict")
    except (ValueError, UnicodeDecodeError) as e:
        if logger:
            logger.log(
                LogLevel.WARN,
                "MotdFormatter",
                f"Failed to decode URL parameter: {e}",
                {"encoded": encoded[:200]},
            )
        return ""

    decoded = decoded.replace("%C2%A7", SECTION_SIGN)
    decoded = decoded.replace("%26", "&")
    return decoded


def strip_formatting(text: str) -> str:
    """Remove every code sequence, leaving only the visible characters."""
    return "".join(value for kind, value in _tokenize(text or "") if kind == _TEXT)


def get_visible_length(text: str) -> int:
    """Number of characters parse_to_html renders as glyphs."""
    return sum(1 for kind, _ in _tokenize(text or "") if kind == _TEXT)


def center_text(text: str, line_width: int = DEFAULT_LINE_WIDTH) -> str:
    """Prefix text with enough spaces to center it on a line of ``line_width``."""
    if not text:
        return ""
    padding = max(0, (line_width - get_visible_length(text)) // 2)
    return " " * padding + text


def validate_motd(text: str, max_line_length: int = DEFAULT_LINE_WIDTH) -> MotdValidationResult:
    """
    Check a MOTD against display recommendations.

    Flags more than two lines, lines whose visible length exceeds
    ``max_line_length``, and excessive format codes.
    """
    errors: list[str] = []
    lines = (text or "").split("\n")

    if len(lines) > MAX_MOTD_LINES:
        errors.append(f"MOTD should have a maximum of {MAX_MOTD_LINES} lines")

    for index, line in enumerate(lines, start=1):
        visible = get_visible_length(line)
        if visible > max_line_length:
            errors.append(
                f"Line {index} exceeds recommended {max_line_length} characters ({visible} chars)"
            )

    code_count = sum(1 for kind, _ in _tokenize(text or "") if kind != _TEXT)
    if code_count > MAX_FORMAT_CODES:
        errors.append("Excessive format codes detected (may cause rendering issues)")

    return MotdValidationResult(valid=not errors, errors=errors)


def validate_motd_length(text: str) -> MotdValidationResult:
    """Hard total-length check (256 characters) with a warning above 200."""
    length = len(text or "")
    if length > MAX_MOTD_LENGTH:
        return MotdValidationResult(
            valid=False,
            errors=[
                f"MOTD is too long ({length}/{MAX_MOTD_LENGTH} characters). "
                "Some servers may truncate or reject it."
            ],
        )
    if length > MOTD_LENGTH_WARNING:
        return MotdValidationResult(
            valid=True,
            warnings=[
                f"MOTD is quite long ({length}/{MAX_MOTD_LENGTH} characters). "
                "Consider shortening it for better display."
            ],
        )
    return MotdValidationResult(valid=True)


def validate_motd_url_params(params: Mapping[str, str]) -> MotdValidationResult:
    """
    Check the query parameters of a MOTD share link.

    ``motd`` carries base64 text and takes precedence over ``text``, which
    carries percent-encoded text. A link with neither parameter is valid.
    The decoded MOTD must pass validate_motd_length.
    """
    if params.get("motd"):
        try:
            content = base64.b64decode(params["motd"], validate=True).decode("utf-8")
        except ValueError:
            content = None
    elif params.get("text"):
        content = decode_from_url(params["text"]) or None
    else:
        return MotdValidationResult(valid=True)

    if content is None:
        return MotdValidationResult(
            valid=False,
            errors=["Invalid MOTD URL parameter. The data appears to be corrupted."],
        )
    return validate_motd_length(content)


def validate_color_code(code: str) -> MotdValidationResult:
    """Check that ``code`` is a single valid legacy color/format code."""
    if not code or len(code) != 1:
        return MotdValidationResult(valid=False, errors=["Color code must be a single character"])
    if code.lower() not in VALID_CODES:
        return MotdValidationResult(
            valid=False,
            errors=[
                f"Invalid color code '{code}'. Valid codes are: "
                "0-9, a-f (colors), k-o (formatting), r (reset)"
            ],
        )
    return MotdValidationResult(valid=True)


def convert_section_sign(text: str, to_sign: str) -> str:
    """Swap every ``&`` for ``§`` or vice versa."""
    if to_sign not in (SECTION_SIGN, "&"):
        raise ValueError(f"Target sign must be '{SECTION_SIGN}' or '&', got {to_sign!r}")
    from_sign = "&" if to_sign == SECTION_SIGN else SECTION_SIGN
    return text.replace(from_sign, to_sign)
