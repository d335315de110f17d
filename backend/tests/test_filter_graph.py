"""
Tests for the single-clip filter graph builder.

Verifies:
- Neutral settings produce only the mandatory stages
- Every numeric value is clamped into its safe range
- Optional stages appear in the fixed order when enabled
- Overlay text is escaped into one literal filter argument
"""

import re

import pytest

from gifvision.render.filters import (
    build_color_balance_filter,
    build_color_cycle_filter,
    build_drawtext_filter,
    build_edge_filter,
    build_eq_filter,
    build_hue_filter,
    build_motion_trail_filter,
    build_pixellate_filter,
    build_sepia_filter,
    build_sharpen_filter,
    build_stream_filter_graph,
    build_stream_filters,
    edge_thresholds,
    escape_filter_text,
    fmt,
    resolve_text_color,
)
from gifvision.render.models import AdjustmentSettings

FONT = "/fonts/DejaVuSans.ttf"

NEUTRAL_GRAPH = (
    "[0:v]setpts=PTS-STARTPTS,fps=15.00,"
    "scale='trunc(iw*1.00/2)*2:trunc(ih*1.00/2)*2:flags=lanczos',"
    "format=rgba[prepal];"
    "[prepal]split[palin][gifin];"
    "[palin]palettegen=max_colors=256:stats_mode=full[palette];"
    "[gifin][palette]paletteuse=dither=floyd_steinberg[out]"
)


class TestNeutralPipeline:
    """Default settings emit the minimal graph."""

    def test_neutral_filters_are_mandatory_only(self):
        filters = build_stream_filters(AdjustmentSettings())
        assert filters == [
            "setpts=PTS-STARTPTS",
            "fps=15.00",
            "scale='trunc(iw*1.00/2)*2:trunc(ih*1.00/2)*2:flags=lanczos'",
            "format=rgba",
        ]

    def test_neutral_graph_text(self):
        assert build_stream_filter_graph(AdjustmentSettings()) == NEUTRAL_GRAPH

    def test_font_alone_does_not_add_overlay(self):
        """A font without overlay text adds nothing."""
        assert build_stream_filter_graph(AdjustmentSettings(), FONT) == NEUTRAL_GRAPH

    def test_graph_has_single_output_label(self):
        graph = build_stream_filter_graph(AdjustmentSettings(sepia=0.5, hue=30))
        assert graph.count("[out]") == 1
        assert graph.endswith("[out]")


class TestClamping:
    """Out-of-range values are clamped before embedding."""

    def test_frame_rate_above_maximum(self):
        filters = build_stream_filters(AdjustmentSettings(frame_rate=70))
        assert "fps=60.00" in filters

    def test_frame_rate_below_minimum(self):
        filters = build_stream_filters(AdjustmentSettings(frame_rate=0))
        assert "fps=1.00" in filters

    @pytest.mark.parametrize("fraction", [0.05, 0.1, 0.333, 0.5, 0.77, 1.0])
    def test_scale_rounds_to_even_dimensions(self, fraction):
        scale = build_stream_filters(AdjustmentSettings(resolution_percent=fraction))[2]
        match = re.fullmatch(
            r"scale='trunc\(iw\*([\d.]+)/2\)\*2:trunc\(ih\*([\d.]+)/2\)\*2:flags=lanczos'",
            scale,
        )
        assert match is not None
        assert match.group(1) == match.group(2) == fmt(fraction)

    def test_scale_clamped_to_minimum_fraction(self):
        scale = build_stream_filters(AdjustmentSettings(resolution_percent=0.01))[2]
        assert "iw*0.05/2" in scale

    def test_scale_clamped_to_full_size(self):
        scale = build_stream_filters(AdjustmentSettings(resolution_percent=2.5))[2]
        assert "iw*1.00/2" in scale

    @pytest.mark.parametrize("requested,embedded", [
        (1, 2),
        (2, 2),
        (64, 64),
        (256, 256),
        (1000, 256),
    ])
    def test_palette_color_count(self, requested, embedded):
        graph = build_stream_filter_graph(AdjustmentSettings(max_colors=requested))
        assert f"palettegen=max_colors={embedded}:stats_mode=full" in graph

    def test_font_size_clamped(self):
        small = build_drawtext_filter(AdjustmentSettings(text_overlay="hi", font_size=10), FONT)
        large = build_drawtext_filter(AdjustmentSettings(text_overlay="hi", font_size=500), FONT)
        assert ":fontsize=50:" in small
        assert ":fontsize=216:" in large

    def test_fixed_decimal_separator(self):
        assert fmt(1.5) == "1.50"
        assert fmt(0.125, 3) == "0.125"


class TestOptionalStages:
    """Each optional stage appears only away from its neutral value."""

    def test_eq_neutral_within_epsilon(self):
        assert build_eq_filter(AdjustmentSettings(brightness=0.00001)) is None

    def test_eq_brightness(self):
        stage = build_eq_filter(AdjustmentSettings(brightness=0.2))
        assert stage == "eq=brightness=0.200:contrast=1.000:saturation=1.000"

    def test_eq_values_clamped(self):
        stage = build_eq_filter(AdjustmentSettings(brightness=3, contrast=-1, saturation=9))
        assert stage == "eq=brightness=1.000:contrast=0.000:saturation=2.000"

    def test_hue(self):
        assert build_hue_filter(0.0) is None
        assert build_hue_filter(45) == "hue=h=45.00"
        assert build_hue_filter(400) == "hue=h=180.00"

    def test_sepia(self):
        assert build_sepia_filter(0.0) is None
        stage = build_sepia_filter(1.0)
        assert stage.startswith("colorchannelmixer=rr=0.39:rg=0.77:rb=0.19:")
        assert stage.count("=") == 10

    def test_partial_sepia_keeps_identity_share(self):
        stage = build_sepia_filter(0.5)
        # 0.393 * 0.5 + 0.5
        assert "rr=0.70" in stage

    def test_color_balance(self):
        assert build_color_balance_filter(AdjustmentSettings()) is None
        stage = build_color_balance_filter(AdjustmentSettings(color_balance_red=1.5))
        assert stage == "colorchannelmixer=rr=1.50:gg=1.00:bb=1.00"

    def test_color_cycle_rate(self):
        assert build_color_cycle_filter(0.0) is None
        assert build_color_cycle_filter(1.0) == "hue=h='360.00*t':s=1"

    def test_color_cycle_capped_at_three_rotations(self):
        assert build_color_cycle_filter(5.0) == "hue=h='1080.00*t':s=1"

    @pytest.mark.parametrize("amount,frames", [
        (0.0625, 3),
        (0.5, 6),
        (1.0, 10),
        (4.0, 10),
    ])
    def test_motion_trail_frames(self, amount, frames):
        stage = build_motion_trail_filter(amount)
        weights = " ".join(["1"] * frames)
        assert stage == f"tmix=frames={frames}:weights='{weights}'"

    def test_motion_trail_off(self):
        assert build_motion_trail_filter(0.0) is None

    def test_sharpen(self):
        assert build_sharpen_filter(0.0) is None
        assert build_sharpen_filter(0.5) == "unsharp=luma_msize_x=5:luma_msize_y=5:luma_amount=3.00"

    def test_pixellate_block_size(self):
        assert build_pixellate_filter(0.0) is None
        assert build_pixellate_filter(10) == "pixelize=width=12:height=12:mode=avg:planes=15"
        assert build_pixellate_filter(100) == "pixelize=width=52:height=52:mode=avg:planes=15"

    def test_edge_detect_disabled(self):
        assert build_edge_filter(AdjustmentSettings(edge_detect_threshold=0.9)) is None

    def test_edge_detect_with_boost(self):
        stage = build_edge_filter(AdjustmentSettings(edge_detect_enabled=True, edge_detect_boost=0.5))
        extract, boost = stage.split(",")
        assert extract.startswith("edgedetect=mode=wires:low=")
        assert boost == "eq=brightness=0.150:contrast=1.250"

    def test_edge_detect_without_boost(self):
        stage = build_edge_filter(AdjustmentSettings(edge_detect_enabled=True))
        assert "," not in stage

    @pytest.mark.parametrize("threshold", [0.0, 0.1, 0.25, 0.5, 0.75, 1.0, -3.0, 7.0])
    def test_edge_thresholds_stay_in_safe_band(self, threshold):
        low, high = edge_thresholds(threshold)
        assert 0.05 <= low <= 0.2
        assert low + 0.05 <= high + 1e-9
        assert high <= 0.4

    def test_edge_thresholds_inverted(self):
        """A higher slider value detects more edges."""
        assert edge_thresholds(0.0) == pytest.approx((0.2, 0.4))
        assert edge_thresholds(1.0) == pytest.approx((0.05, 0.15))


class TestStageOrder:
    """Enabled stages follow the fixed order."""

    def test_everything_enabled(self):
        settings = AdjustmentSettings(
            brightness=0.1,
            hue=10,
            sepia=0.3,
            color_balance_blue=1.2,
            color_cycle_speed=0.5,
            motion_trails=0.5,
            sharpen=0.5,
            pixellate=4,
            edge_detect_enabled=True,
            negate_colors=True,
            flip_horizontal=True,
            flip_vertical=True,
            text_overlay="hello",
        )
        filters = build_stream_filters(settings, FONT)
        prefixes = [
            "setpts",
            "fps=",
            "scale=",
            "eq=",
            "hue=h=10",
            "colorchannelmixer=rr=0.",
            "colorchannelmixer=rr=1.00:gg=1.00:bb=1.20",
            "hue=h='",
            "tmix=",
            "unsharp=",
            "pixelize=",
            "edgedetect=",
            "negate=",
            "hflip",
            "vflip",
            "drawtext=",
            "format=rgba",
        ]
        assert len(filters) == len(prefixes)
        for stage, prefix in zip(filters, prefixes):
            assert stage.startswith(prefix), f"{stage!r} should start with {prefix!r}"


class TestTextOverlay:
    """drawtext escaping and color reduction."""

    def test_escape_order(self):
        assert escape_filter_text("a\\b") == "a\\\\b"
        assert escape_filter_text("it's") == "it\\'s"
        assert escape_filter_text("5:00") == "5\\:00"

    def test_quote_and_colon_stay_one_argument(self):
        stage = build_drawtext_filter(AdjustmentSettings(text_overlay="It's 5:00"), FONT)
        assert "text='It\\'s 5\\:00'" in stage

        # With escaped characters removed, only the delimiting quotes remain
        unescaped = stage.replace("\\'", "").replace("\\:", "")
        assert unescaped.count("'") == 4
        options = unescaped.split(":")
        assert options[0].startswith("drawtext=fontfile=")
        assert options[1].startswith("text=")

    def test_font_path_escaped(self):
        stage = build_drawtext_filter(AdjustmentSettings(text_overlay="x"), "C:/Fonts/arial.ttf")
        assert "fontfile='C\\:/Fonts/arial.ttf'" in stage

    def test_blank_text_skipped(self):
        assert build_drawtext_filter(AdjustmentSettings(text_overlay="   "), FONT) is None

    def test_missing_font_skips_overlay(self):
        assert build_drawtext_filter(AdjustmentSettings(text_overlay="hi"), None) is None

    @pytest.mark.parametrize("requested,resolved", [
        ("white", "white"),
        ("black", "black"),
        ("#000000", "black"),
        (" Black ", "black"),
        ("red", "white"),
        ("#ff8800", "white"),
    ])
    def test_two_color_reduction(self, requested, resolved):
        assert resolve_text_color(requested) == resolved

    def test_drawtext_full_text(self):
        stage = build_drawtext_filter(
            AdjustmentSettings(text_overlay="hi", font_size=60, font_color="black"), FONT
        )
        assert stage == (
            "drawtext=fontfile='/fonts/DejaVuSans.ttf':text='hi':"
            "fontsize=60:fontcolor=black:x=10:y=10"
        )
