"""Pydantic models for type-safe data structures."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .patterns import PatternFamily, parse_descriptor

RGB = tuple[int, int, int]
TextureLevel = Literal["low", "medium", "high"]

_HEX_LENGTH = 6


def hex_to_rgb(value: str) -> RGB:
    """Parse ``#rrggbb`` (leading ``#`` optional) into an RGB tuple.

    Raises:
        ValueError: If the string is not a 6-digit hex color.
    """
    digits = value.strip().lstrip("#")
    if len(digits) != _HEX_LENGTH:
        msg = f"Invalid hex color: {value!r}"
        raise ValueError(msg)
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def rgb_to_hex(rgb: RGB) -> str:
    """Format an RGB tuple as ``#rrggbb``."""
    r, g, b = rgb
    return f"#{r:02x}{g:02x}{b:02x}"


def _coerce_rgb(value: Any) -> Any:
    if isinstance(value, str):
        return hex_to_rgb(value)
    return value


class DominantColor(BaseModel):
    """Quantized RGB bucket ranked by sampled-pixel frequency.

    Attributes:
        rgb: Bucket center as (R, G, B), each 0-255.
        frequency: Share of sampled pixels that fell into this bucket.
    """
    model_config = ConfigDict(frozen=True)

    rgb: RGB
    frequency: float = Field(ge=0.0, le=1.0)

    @field_validator("rgb", mode="before")
    @classmethod
    def _parse_rgb(cls, value: Any) -> Any:
        return _coerce_rgb(value)

    @property
    def hex(self) -> str:
        return rgb_to_hex(self.rgb)


class ColorProfile(BaseModel):
    """Compact color signature of one frame.

    Attributes:
        dominant_colors: Top-N buckets, sorted by descending frequency.
        brightness_variance: Luma variance across all sampled pixels.
        contrast_ratio: max brightness / max(min brightness, 1).
        saturation: Mean per-pixel saturation, 0.0-1.0.
        histogram: 256-bin brightness histogram (diagnostics only).
        sampled_pixels: Number of pixels that contributed to the profile.
        total_pixels: Pixels in the working-resolution frame.
    """
    dominant_colors: list[DominantColor] = Field(default_factory=list)
    brightness_variance: float = Field(default=0.0, ge=0.0)
    contrast_ratio: float = Field(default=0.0, ge=0.0)
    saturation: float = Field(default=0.0, ge=0.0, le=1.0)
    histogram: list[int] = Field(default_factory=lambda: [0] * 256)
    sampled_pixels: int = Field(default=0, ge=0)
    total_pixels: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "ColorProfile":
        freqs = [c.frequency for c in self.dominant_colors]
        if any(a < b for a, b in zip(freqs, freqs[1:])):
            msg = "dominant_colors must be sorted by descending frequency"
            raise ValueError(msg)
        return self

    @classmethod
    def empty(cls) -> "ColorProfile":
        """Neutral profile returned for degenerate input."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.sampled_pixels == 0 or not self.dominant_colors


class TextureFeatures(BaseModel):
    """Edge, contrast, repetition and pattern signals of one frame.

    Attributes:
        contrast: Mean local (max-min)/255 over 5x5 windows, 0.0-1.0.
        edge_density: Sobel edges per 100 sampled pixels.
        repetition_score: Fraction of block pairs judged similar, 0.0-1.0.
        color_complexity: Distinct coarse colors normalized to 0.0-1.0.
        pattern: Classified pattern family.
    """
    contrast: float = Field(default=0.0, ge=0.0, le=1.0)
    edge_density: float = Field(default=0.0, ge=0.0, le=100.0)
    repetition_score: float = Field(default=0.0, ge=0.0, le=1.0)
    color_complexity: float = Field(default=0.0, ge=0.0, le=1.0)
    pattern: PatternFamily = PatternFamily.PLAIN

    @classmethod
    def empty(cls) -> "TextureFeatures":
        return cls()


class PatternDescriptor(BaseModel):
    """Reference pattern descriptor resolved through the closed tag table."""
    model_config = ConfigDict(frozen=True)

    text: str
    family: PatternFamily
    tag: str

    @classmethod
    def parse(cls, text: str) -> "PatternDescriptor":
        family, tag = parse_descriptor(text)
        return cls(text=text, family=family, tag=tag)


class ReferenceEntry(BaseModel):
    """Precomputed, static color/pattern profile for one known venue.

    Attributes:
        entry_id: Stable identifier of the venue.
        display_name: Human-readable venue name.
        dominant_colors: Reference dominant colors, most frequent first.
            Hex strings are accepted on input.
        variance: Reference brightness variance.
        pattern: Pattern descriptor; plain strings are parsed on input.
    """
    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(min_length=1)
    display_name: str
    dominant_colors: tuple[RGB, ...] = Field(min_length=1)
    variance: float = Field(ge=0.0)
    pattern: PatternDescriptor

    @field_validator("dominant_colors", mode="before")
    @classmethod
    def _parse_colors(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(_coerce_rgb(v) for v in value)
        return value

    @field_validator("dominant_colors")
    @classmethod
    def _check_channels(cls, value: tuple[RGB, ...]) -> tuple[RGB, ...]:
        for rgb in value:
            if any(not 0 <= c <= 255 for c in rgb):
                msg = f"RGB channel out of range: {rgb}"
                raise ValueError(msg)
        return value

    @field_validator("pattern", mode="before")
    @classmethod
    def _parse_pattern(cls, value: Any) -> Any:
        if isinstance(value, str):
            return PatternDescriptor.parse(value)
        return value


class DetectedFeatures(BaseModel):
    """Snapshot of what was detected in the captured frame."""
    dominant_colors: list[str]
    pattern: PatternFamily
    texture_level: TextureLevel
    is_geometric: bool
    is_ornamental: bool


class MatchResult(BaseModel):
    """Scored, explained candidate for one reference entry.

    Attributes:
        entry_id: Matched reference entry id.
        display_name: Matched reference display name.
        confidence: Weighted visual confidence, 0-100.
        final_confidence: Confidence after the location/vision-only ceiling is applied.
        color_similarity: Color similarity, 0-100.
        pattern_similarity: Pattern similarity, 0-100.
        texture_similarity: Texture similarity, 0-100.
        reasoning: Ordered short explanations.
        detected_features: Features of the captured frame.
    """
    entry_id: str
    display_name: str
    confidence: float = Field(ge=0.0, le=100.0)
    final_confidence: float = Field(ge=0.0, le=100.0)
    color_similarity: float = Field(ge=0.0, le=100.0)
    pattern_similarity: float = Field(ge=0.0, le=100.0)
    texture_similarity: float = Field(ge=0.0, le=100.0)
    reasoning: list[str]
    detected_features: DetectedFeatures


class GateDecision(BaseModel):
    """Outcome of the carpet-likelihood pre-filter.

    Attributes:
        passed: True if the frame may proceed to matching.
        score: Combined carpet likelihood, 0.0-1.0.
        skin_fraction: Share of sampled pixels classified as skin.
        color_score: Palette plausibility sub-score.
        texture_score: Texture plausibility sub-score.
        statistics_score: Statistical plausibility sub-score.
        reason: Short explanation of the decision.
    """
    passed: bool
    score: float = Field(ge=0.0, le=1.0)
    skin_fraction: float = Field(ge=0.0, le=1.0)
    color_score: float = Field(default=0.0, ge=0.0, le=1.0)
    texture_score: float = Field(default=0.0, ge=0.0, le=1.0)
    statistics_score: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str


class LocationContext(BaseModel):
    """Optional location prior supplied by the host.

    Attributes:
        distance_km: Distance to the nearest candidate venue in kilometres.
        nearby_count: Number of candidate venues within range.
    """
    distance_km: float = Field(ge=0.0)
    nearby_count: int = Field(ge=0)


class DiagnosticSnapshot(BaseModel):
    """State of the last analysis, for debug overlays."""
    color_profile: ColorProfile | None = None
    texture_features: TextureFeatures | None = None
    gate: GateDecision | None = None
    matches: list[MatchResult] = Field(default_factory=list)
    elapsed_ms: float = 0.0
    analysis_count: int = 0
