"""
Property-based tests for the MOTD formatter.

Tests the color code engine: HTML rendering, dialect conversion, gradients,
URL sharing and visible-length helpers.
"""

import base64
import re
from io import StringIO

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from mcsrv_status.audit_logger import AuditLogger
from mcsrv_status.enums import LogLevel, MotdDialect
from mcsrv_status.exceptions import InvalidColorFormat
from mcsrv_status.motd_formatter import (
    MINECRAFT_COLORS,
    ColorSpan,
    center_text,
    convert_section_sign,
    convert_to_format,
    decode_from_url,
    encode_for_url,
    generate_gradient,
    get_visible_length,
    hex_to_legacy,
    interpolate_color,
    parse_spans,
    parse_to_html,
    strip_formatting,
    to_minecraft_hex,
    validate_color_code,
    validate_motd,
    validate_motd_length,
    validate_motd_url_params,
)


# Strategies for generating test data

PLAIN_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789 .,!?-_:"
HEX_ALPHABET = "0123456789abcdefABCDEF"


@st.composite
def plain_text_strategy(draw, min_size: int = 0, max_size: int = 30) -> str:
    """Generate text without any code signs."""
    return draw(st.text(
        alphabet=st.sampled_from(PLAIN_ALPHABET),
        min_size=min_size,
        max_size=max_size,
    ))


@st.composite
def hex_color_strategy(draw) -> str:
    """Generate a well-formed #RRGGBB color."""
    digits = draw(st.text(alphabet=st.sampled_from(HEX_ALPHABET), min_size=6, max_size=6))
    return "#" + digits


@st.composite
def code_strategy(draw) -> str:
    """Generate a single complete code sequence in either sign."""
    sign = draw(st.sampled_from(["§", "&"]))
    kind = draw(st.sampled_from(["legacy", "section_hex", "hash_hex"]))
    if kind == "legacy":
        code = draw(st.sampled_from(list("0123456789abcdefklmnorABCDEFKLMNOR")))
        return sign + code
    digits = draw(hex_color_strategy())[1:]
    if kind == "section_hex":
        return sign + "x" + "".join(sign + d for d in digits)
    return sign + "#" + digits


@st.composite
def formatted_text_strategy(draw) -> tuple[str, int]:
    """Generate formatted text and the number of visible characters in it."""
    segments = draw(st.lists(
        st.one_of(code_strategy(), plain_text_strategy(min_size=1, max_size=5)),
        max_size=12,
    ))
    text = "".join(segments)
    visible = sum(
        len(s) for s in segments if not s.startswith("§") and not s.startswith("&")
    )
    return text, visible


@st.composite
def messy_text_strategy(draw) -> str:
    """Generate arbitrary text rich in signs, codes and HTML specials."""
    return draw(st.text(
        alphabet=st.sampled_from(list("abXY 019#xrlkKz<>\"'&§")),
        max_size=40,
    ))


class TestVisibleLengthProperty:
    """
    Property-based tests for visible length.
    """

    @given(sample=formatted_text_strategy())
    @settings(max_examples=100)
    def test_visible_length_counts_only_glyphs(self, sample: tuple[str, int]) -> None:
        """
        *For any* text built from complete codes and plain runs, the visible
        length SHALL equal the number of plain characters.
        """
        text, visible = sample

        assert get_visible_length(text) == visible
        assert len(strip_formatting(text)) == visible

    @given(text=messy_text_strategy())
    @settings(max_examples=100)
    def test_visible_length_matches_rendered_glyphs(self, text: str) -> None:
        """
        *For any* text, the visible length SHALL equal the number of glyph
        spans parse_to_html renders.
        """
        rendered = parse_to_html(text)

        assert rendered.count("<span ") == get_visible_length(text)

    @given(text=plain_text_strategy())
    @settings(max_examples=100)
    def test_plain_text_is_its_own_visible_text(self, text: str) -> None:
        """
        *For any* text without code signs, stripping SHALL leave it unchanged.
        """
        assert strip_formatting(text) == text
        assert get_visible_length(text) == len(text)


class TestResetProperty:
    """
    Property-based tests for the reset code.
    """

    @given(prefix=messy_text_strategy(), suffix=plain_text_strategy())
    @settings(max_examples=100)
    def test_reset_restores_default_state(self, prefix: str, suffix: str) -> None:
        """
        *For any* prefix, text following a reset SHALL render exactly as it
        would with no preceding formatting.
        """
        assume(not prefix.endswith("§"))

        rendered = parse_to_html(prefix + "§r" + suffix)

        assert rendered == parse_to_html(prefix) + parse_to_html(suffix)

    @given(prefix=messy_text_strategy(), suffix=messy_text_strategy())
    @settings(max_examples=100)
    def test_repeated_reset_is_idempotent(self, prefix: str, suffix: str) -> None:
        """
        *For any* text, applying the reset code twice SHALL render the same as
        applying it once.
        """
        assume(not prefix.endswith("§"))

        once = parse_to_html(prefix + "§r" + suffix)
        twice = parse_to_html(prefix + "§r§r" + suffix)

        assert once == twice


class TestHtmlRendering:
    """Tests for parse_to_html and parse_spans."""

    def test_empty_input_renders_empty(self) -> None:
        assert parse_to_html("") == ""

    def test_color_and_style_are_applied_per_character(self) -> None:
        rendered = parse_to_html("§a§lHi")

        assert rendered == (
            '<span style="color: #55FF55; font-weight: bold">H</span>'
            '<span style="color: #55FF55; font-weight: bold">i</span>'
        )

    def test_ampersand_codes_render_like_section_codes(self) -> None:
        assert parse_to_html("&cRed &#00FF00x") == parse_to_html("§cRed §#00FF00x")

    def test_hex_color_is_applied(self) -> None:
        rendered = parse_to_html("§x§1§2§a§B§c§Dz")

        assert rendered == '<span style="color: #12aBcD">z</span>'

    def test_unknown_code_is_skipped(self) -> None:
        assert parse_to_html("§zA") == parse_to_html("A")
        assert strip_formatting("§zA&qB") == "A&qB"

    def test_ampersand_hash_without_hex_is_text(self) -> None:
        assert strip_formatting("Tom &#1 fan") == "Tom &#1 fan"
        assert get_visible_length("&#12345") == 7
        assert parse_spans("&#GG0000x") == [ColorSpan("&#GG0000x", "#FFFFFF")]

    def test_trailing_sign_is_rendered_as_text(self) -> None:
        assert strip_formatting("Hi§") == "Hi§"

    @given(text=messy_text_strategy())
    @settings(max_examples=100)
    def test_html_special_characters_are_escaped(self, text: str) -> None:
        """
        *For any* text, the rendered HTML SHALL contain no raw markup from the
        input: every '<' belongs to a generated span tag.
        """
        rendered = parse_to_html(text)

        stripped = re.sub(r'<span style="[^"]*">|</span>', "", rendered)
        assert "<" not in stripped
        assert ">" not in stripped
        assert '"' not in stripped

    def test_script_tag_is_escaped(self) -> None:
        rendered = parse_to_html('<script>"x"</script>')

        assert "<script>" not in rendered
        assert "&lt;" in rendered
        assert "&quot;" in rendered

    def test_parse_spans_merges_runs(self) -> None:
        spans = parse_spans("§a§lHi§rX")

        assert spans == [
            ColorSpan("Hi", "#55FF55", ("bold",)),
            ColorSpan("X", "#FFFFFF", ()),
        ]

    def test_color_code_keeps_active_styles(self) -> None:
        spans = parse_spans("§lA§cB")

        assert spans[1] == ColorSpan("B", MINECRAFT_COLORS["c"], ("bold",))


class TestDialectConversion:
    """Tests for convert_to_format."""

    SAMPLE = "§6Hi §#FF5555there"

    def test_bungeecord_uses_ampersand_hex_pairs(self) -> None:
        assert convert_to_format(self.SAMPLE, "bungeecord") == "&6Hi &x&F&F&5&5&5&5there"

    def test_serverlistplus_uses_hash_hex(self) -> None:
        assert convert_to_format(self.SAMPLE, MotdDialect.SERVERLISTPLUS) == "&6Hi &#FF5555there"

    def test_spigot_uses_escaped_section_hex(self) -> None:
        esc = "\\u00A7"
        expected = f"{esc}6Hi {esc}x" + "".join(esc + c for c in "FF5555") + "there"

        assert convert_to_format(self.SAMPLE, "spigot") == expected

    def test_vanilla_downgrades_hex_to_legacy(self) -> None:
        converted = convert_to_format(self.SAMPLE, "vanilla")

        assert converted == "\\u00A76Hi \\u00A7cthere"
        assert "&x" not in converted
        assert "\\u00A7x" not in converted

    def test_lowercase_hex_is_uppercased(self) -> None:
        assert convert_to_format("&#ff55aaX", "serverlistplus") == "&#FF55AAX"

    def test_unknown_dialect_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            convert_to_format("§aHi", "paper")

    def test_hex_to_legacy_exact_match(self) -> None:
        for color in MINECRAFT_COLORS.values():
            assert MINECRAFT_COLORS[hex_to_legacy(color)] == color

    @given(sample=formatted_text_strategy(), dialect=st.sampled_from(list(MotdDialect)))
    @settings(max_examples=100)
    def test_conversion_preserves_visible_text(
        self, sample: tuple[str, int], dialect: MotdDialect
    ) -> None:
        """
        *For any* formatted text and dialect, conversion SHALL keep the
        visible characters in order.
        """
        text, _ = sample
        converted = convert_to_format(text, dialect)

        if dialect in (MotdDialect.BUNGEECORD, MotdDialect.SERVERLISTPLUS):
            assert strip_formatting(converted) == strip_formatting(text)
        else:
            assert strip_formatting(converted.replace("\\u00A7", "§")) == strip_formatting(text)


class TestGradientProperty:
    """
    Property-based tests for gradient generation.
    """

    @given(
        text=plain_text_strategy(min_size=2, max_size=30),
        start=hex_color_strategy(),
        end=hex_color_strategy(),
    )
    @settings(max_examples=100)
    def test_gradient_endpoints_match_colors(self, text: str, start: str, end: str) -> None:
        """
        *For any* text of two or more characters, the first character SHALL
        carry the start color and the last character the end color.
        """
        gradient = generate_gradient(text, start, end)

        colors = re.findall(r"§x((?:§[0-9A-F]){6})", gradient)
        assert len(colors) == len(text)
        assert "§x" + colors[0] == to_minecraft_hex(start)
        assert "§x" + colors[-1] == to_minecraft_hex(end)

    @given(
        text=plain_text_strategy(min_size=1, max_size=30),
        start=hex_color_strategy(),
        end=hex_color_strategy(),
    )
    @settings(max_examples=100)
    def test_gradient_keeps_visible_text(self, text: str, start: str, end: str) -> None:
        """
        *For any* text, the gradient SHALL render exactly the input characters.
        """
        gradient = generate_gradient(text, start, end)

        assert strip_formatting(gradient) == text

    def test_single_character_uses_start_color(self) -> None:
        assert generate_gradient("A", "#FF0000", "#0000FF") == to_minecraft_hex("#FF0000") + "A"

    def test_empty_text_returns_empty(self) -> None:
        assert generate_gradient("", "not-a-color", "#000000") == ""

    @pytest.mark.parametrize("bad", ["FF0000", "#FF00", "#GG0000", "", "#FF00000"])
    def test_invalid_color_is_rejected(self, bad: str) -> None:
        with pytest.raises(InvalidColorFormat):
            generate_gradient("Hi", bad, "#000000")

    def test_invalid_color_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            generate_gradient("Hi", "#000000", "blue")

    def test_interpolation_midpoint_rounds_half_up(self) -> None:
        assert interpolate_color("#000000", "#010101", 0.5) == "#010101"


class TestUrlRoundTripProperty:
    """
    Property-based tests for URL sharing.
    """

    @given(text=st.text(max_size=60))
    @settings(max_examples=100)
    def test_decode_inverts_encode(self, text: str) -> None:
        """
        *For any* text not containing the legacy escape sequences, decoding
        the encoded form SHALL return the original text.
        """
        assume("%C2%A7" not in text and "%26" not in text)

        assert decode_from_url(encode_for_url(text)) == text

    def test_encoding_matches_uri_component_rules(self) -> None:
        assert encode_for_url("§aHi & bye!") == "%C2%A7aHi%20%26%20bye!"

    def test_legacy_double_encoding_is_undone(self) -> None:
        assert decode_from_url("%25C2%25A7aHi%2526") == "§aHi&"

    @pytest.mark.parametrize("malformed", ["%", "%E0%A4%A", "abc%ZZ", "%C3%28"])
    def test_malformed_input_decodes_to_empty(self, malformed: str) -> None:
        assert decode_from_url(malformed) == ""

    def test_malformed_input_is_logged(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)

        assert decode_from_url("%", logger=logger) == ""
        assert logger.entries[0].level == LogLevel.WARN


class TestCenteringAndValidation:
    """Tests for centering and MOTD validation helpers."""

    def test_center_ignores_codes(self) -> None:
        assert center_text("§aHi", 10) == "    §aHi"

    def test_center_never_pads_negative(self) -> None:
        assert center_text("x" * 20, 10) == "x" * 20

    def test_center_empty_text(self) -> None:
        assert center_text("") == ""

    @given(text=plain_text_strategy(min_size=1, max_size=60))
    @settings(max_examples=100)
    def test_centered_text_fits_line(self, text: str) -> None:
        """
        *For any* text shorter than the line, centering SHALL pad the left
        side by half the free space.
        """
        centered = center_text(text, 60)

        assert centered.endswith(text)
        assert len(centered) - len(text) == (60 - len(text)) // 2

    def test_valid_two_line_motd(self) -> None:
        result = validate_motd("§aHello\n§bWorld")

        assert result.valid
        assert result.errors == []

    def test_three_lines_are_flagged(self) -> None:
        assert not validate_motd("a\nb\nc").valid

    def test_long_line_is_flagged(self) -> None:
        result = validate_motd("x" * 61)

        assert not result.valid
        assert "Line 1" in result.errors[0]

    def test_codes_do_not_count_towards_line_length(self) -> None:
        assert validate_motd("§a" * 30 + "x" * 60).valid

    def test_excessive_codes_are_flagged(self) -> None:
        assert not validate_motd("§a" * 101).valid

    def test_total_length_limits(self) -> None:
        assert not validate_motd_length("x" * 257).valid

        warned = validate_motd_length("x" * 201)
        assert warned.valid
        assert warned.warnings

        assert validate_motd_length("x" * 200).warnings == []

    def test_share_link_without_params_is_valid(self) -> None:
        assert validate_motd_url_params({}).valid
        assert validate_motd_url_params({"motd": "", "text": ""}).valid

    def test_share_link_text_param_is_decoded_before_length_check(self) -> None:
        # 100 encoded section signs decode to 100 characters
        assert validate_motd_url_params({"text": "%C2%A7" * 100}).valid
        assert not validate_motd_url_params({"text": encode_for_url("x" * 257)}).valid

    def test_share_link_base64_param(self) -> None:
        encoded = base64.b64encode("§aHello".encode("utf-8")).decode("ascii")
        too_long = base64.b64encode(("x" * 300).encode("utf-8")).decode("ascii")

        assert validate_motd_url_params({"motd": encoded}).valid
        result = validate_motd_url_params({"motd": too_long})
        assert not result.valid
        assert "too long" in result.errors[0]

    @pytest.mark.parametrize("params", [
        {"motd": "not base64!"},
        {"motd": base64.b64encode(b"\xff\xfe").decode("ascii")},
        {"text": "%E0%A4%A"},
    ])
    def test_share_link_corrupted_param(self, params: dict) -> None:
        result = validate_motd_url_params(params)

        assert not result.valid
        assert result.errors == ["Invalid MOTD URL parameter. The data appears to be corrupted."]

    @pytest.mark.parametrize("code", list("0123456789abcdefklmnorA"))
    def test_valid_color_codes(self, code: str) -> None:
        assert validate_color_code(code).valid

    @pytest.mark.parametrize("code", ["", "g", "ab", "#"])
    def test_invalid_color_codes(self, code: str) -> None:
        assert not validate_color_code(code).valid

    def test_convert_section_sign(self) -> None:
        assert convert_section_sign("&aHi", "§") == "§aHi"
        assert convert_section_sign("§aHi", "&") == "&aHi"
        with pytest.raises(ValueError):
            convert_section_sign("x", "$")
