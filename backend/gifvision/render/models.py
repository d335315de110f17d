"""
Render request and adjustment models.

AdjustmentSettings mirrors every control of the adjustments panel. Values are
stored as given: the filter graph builder clamps each one into its safe
range, since it is the last stop before FFmpeg sees the number.

Requests are immutable and consumed once by the scheduler.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class StreamSelection(str, Enum):
    """Which of the two stream slots within a layer."""

    A = "A"
    B = "B"


class BlendMode(str, Enum):
    """
    Compositing modes available for layer and master blends.

    Values are stable identifiers; `keyword` is the FFmpeg blend filter
    vocabulary and `display_name` is the label shown to operators.
    """

    NORMAL = "normal"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    OVERLAY = "overlay"
    DARKEN = "darken"
    LIGHTEN = "lighten"
    COLOR_DODGE = "color_dodge"
    COLOR_BURN = "color_burn"
    HARD_LIGHT = "hard_light"
    SOFT_LIGHT = "soft_light"
    DIFFERENCE = "difference"
    EXCLUSION = "exclusion"
    HUE = "hue"
    SATURATION = "saturation"
    COLOR = "color"
    LUMINOSITY = "luminosity"

    @property
    def keyword(self) -> str:
        return BLEND_MODE_KEYWORDS[self]

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


BLEND_MODE_KEYWORDS = {
    BlendMode.NORMAL: "normal",
    BlendMode.MULTIPLY: "multiply",
    BlendMode.SCREEN: "screen",
    BlendMode.OVERLAY: "overlay",
    BlendMode.DARKEN: "darken",
    BlendMode.LIGHTEN: "lighten",
    BlendMode.COLOR_DODGE: "dodge",
    BlendMode.COLOR_BURN: "burn",
    BlendMode.HARD_LIGHT: "hardlight",
    BlendMode.SOFT_LIGHT: "softlight",
    BlendMode.DIFFERENCE: "difference",
    BlendMode.EXCLUSION: "exclusion",
    BlendMode.HUE: "hue",
    BlendMode.SATURATION: "saturation",
    BlendMode.COLOR: "color",
    BlendMode.LUMINOSITY: "luminosity",
}


class AdjustmentSettings(BaseModel):
    """
    Desired transform for one clip.

    Defaults are the neutral values: rendering with a default instance emits
    only the mandatory pipeline stages.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    resolution_percent: float = 1.0
    max_colors: int = 256
    frame_rate: float = 15.0
    clip_duration_seconds: float = 3.0

    # Text overlay
    text_overlay: str = ""
    font_size: int = 54
    font_color: str = "white"

    # Color grading
    brightness: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0
    hue: float = 0.0
    sepia: float = 0.0
    color_balance_red: float = 1.0
    color_balance_green: float = 1.0
    color_balance_blue: float = 1.0

    # Stylistic effects
    color_cycle_speed: float = 0.0
    motion_trails: float = 0.0
    sharpen: float = 0.0
    pixellate: float = 0.0
    edge_detect_enabled: bool = False
    edge_detect_threshold: float = 0.1
    edge_detect_boost: float = 0.0
    negate_colors: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False


class StreamRenderRequest(BaseModel):
    """Render one stream (Layer N, Stream A/B) from a trimmed source clip."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    layer_id: int
    stream: StreamSelection
    source_path: str
    adjustments: AdjustmentSettings = AdjustmentSettings()
    trim_start_ms: int = 0
    trim_end_ms: int = 0
    suggested_output_path: Optional[str] = None
    job_id: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_job_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("job_id") and "layer_id" in data and "stream" in data:
            from ..jobs.registry import stream_render_id

            data = {**data, "job_id": stream_render_id(data["layer_id"], StreamSelection(data["stream"]))}
        return data


class LayerBlendRequest(BaseModel):
    """
    Blend Stream A and Stream B outputs of one layer.

    Either path may be omitted: a layer with a single rendered stream
    publishes that stream unchanged as its blend output.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    layer_id: int
    stream_a_path: Optional[str] = None
    stream_b_path: Optional[str] = None
    blend_mode: BlendMode = BlendMode.NORMAL
    opacity: float = 1.0
    suggested_output_path: Optional[str] = None
    job_id: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_job_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("job_id") and "layer_id" in data:
            from ..jobs.registry import layer_blend_id

            mode = BlendMode(data.get("blend_mode", BlendMode.NORMAL))
            data = {**data, "job_id": layer_blend_id(data["layer_id"], mode)}
        return data


class MasterBlendRequest(BaseModel):
    """Blend the Layer 1 and Layer 2 outputs into the master GIF."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    layer_one_path: str
    layer_two_path: str
    blend_mode: BlendMode = BlendMode.NORMAL
    opacity: float = 1.0
    suggested_output_path: Optional[str] = None
    job_id: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_job_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("job_id"):
            from ..jobs.registry import master_blend_id

            mode = BlendMode(data.get("blend_mode", BlendMode.NORMAL))
            data = {**data, "job_id": master_blend_id(mode)}
        return data
