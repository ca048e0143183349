"""Carpet likelihood gate: rejects frames that are obviously not carpet."""

import logging
from typing import Any

import cv2
import numpy as np

from .color import perceptual_similarity_matrix
from .config import RecognizerConfig
from .frames import resize_square, to_rgb
from .models import ColorProfile, GateDecision, TextureFeatures
from .patterns import PatternFamily

logger = logging.getLogger(__name__)

# Empirical skin-tone RGB ranges, (lower, upper) inclusive per channel
SKIN_TONE_BUCKETS: tuple[tuple[tuple[int, int, int], tuple[int, int, int]], ...] = (
    ((180, 130, 100), (255, 220, 200)),  # light
    ((140, 95, 65), (230, 175, 145)),    # medium
    ((100, 60, 40), (180, 130, 105)),    # tan
    ((55, 32, 20), (130, 95, 75)),       # deep
)

# Skin chroma: red leads green by a margin and green stays close to blue
SKIN_MIN_RED_GREEN_GAP = 15
SKIN_GREEN_BLUE_RATIO = (1.05, 1.6)

# Earth tones, deep reds, teals, golds, navies, greens and purples
CARPET_PALETTE: tuple[tuple[int, int, int], ...] = (
    (139, 0, 0), (178, 34, 34), (128, 0, 32), (255, 69, 0),
    (47, 79, 79), (0, 139, 139), (0, 128, 128), (70, 130, 180), (0, 0, 128),
    (139, 69, 19), (210, 105, 30), (205, 133, 63), (245, 222, 179), (160, 82, 45),
    (218, 165, 32), (255, 215, 0), (184, 134, 11),
    (34, 139, 34), (85, 107, 47),
    (128, 0, 128), (147, 112, 219),
    (105, 105, 105), (47, 47, 47),
)

# Sub-score weights (color, texture, statistics)
COLOR_WEIGHT = 0.35
TEXTURE_WEIGHT = 0.35
STATISTICS_WEIGHT = 0.30

# Plausible bands for carpet frames
EDGE_BAND = (5.0, 60.0)
CONTRAST_BAND = (0.1, 0.8)
VARIANCE_BAND = (100.0, 5000.0)
SATURATION_BAND = (0.1, 0.85)
MIN_REPETITION = 0.2

_STRUCTURED = (PatternFamily.GEOMETRIC, PatternFamily.ORNAMENTAL)


def _in_band(value: float, band: tuple[float, float]) -> bool:
    return band[0] <= value <= band[1]


class CarpetLikelihoodGate:
    """Pre-filter run before matching to avoid false-positive check-ins.

    Two stages:

    1. Skin-tone rejection on raw pixels (a hand or a face in front of the camera).
    2. A weighted carpet-likelihood score from palette, texture and statistical
       plausibility of the extracted features.
    """

    def __init__(self, config: RecognizerConfig | None = None):
        self.config = config or RecognizerConfig()
        self._palette = np.array(CARPET_PALETTE, dtype=np.float64)

    def skin_fraction(self, frame: Any) -> float:
        """Share of sampled pixels that fall into any skin-tone bucket.

        A pixel is counted when it lies inside a bucket's RGB range, is red
        dominant (R > G > B) and has skin chroma: R - G of at least
        ``SKIN_MIN_RED_GREEN_GAP`` and G/B within ``SKIN_GREEN_BLUE_RATIO``.
        The chroma check keeps earth-tone carpet browns such as sienna out.

        Args:
            frame: RGB(A) or grayscale pixel buffer.

        Returns:
            Fraction in [0, 1]; 0.0 for degenerate input.
        """
        rgb = to_rgb(frame)
        if rgb is None:
            return 0.0
        rgb = resize_square(rgb, self.config.color_size)
        stride = self.config.skin_stride
        sample = np.ascontiguousarray(rgb[::stride, ::stride])
        if sample.size == 0:
            return 0.0

        mask = np.zeros(sample.shape[:2], dtype=np.uint8)
        for lower, upper in SKIN_TONE_BUCKETS:
            mask |= cv2.inRange(sample, np.array(lower, np.uint8), np.array(upper, np.uint8))

        r = sample[:, :, 0].astype(np.int16)
        g = sample[:, :, 1].astype(np.int16)
        b = sample[:, :, 2].astype(np.int16)
        low, high = SKIN_GREEN_BLUE_RATIO
        skin = (
            (mask > 0)
            & (g > b)
            & (r - g >= SKIN_MIN_RED_GREEN_GAP)
            & (g >= low * b)
            & (g <= high * b)
        )
        return float(np.count_nonzero(skin)) / skin.size

    def color_score(self, profile: ColorProfile) -> float:
        """Fraction of dominant colors close to the typical carpet palette."""
        if profile.is_empty:
            return 0.0
        colors = [c.rgb for c in profile.dominant_colors]
        best = perceptual_similarity_matrix(colors, self._palette).max(axis=1)
        return float(np.count_nonzero(best >= self.config.palette_similarity)) / len(colors)

    def texture_score(self, features: TextureFeatures) -> float:
        score = 0.0
        if _in_band(features.edge_density, EDGE_BAND):
            score += 0.4
        if _in_band(features.contrast, CONTRAST_BAND):
            score += 0.3
        if features.pattern in _STRUCTURED:
            score += 0.3
        return min(score, 1.0)

    def statistics_score(self, profile: ColorProfile, features: TextureFeatures) -> float:
        score = 0.0
        if _in_band(profile.brightness_variance, VARIANCE_BAND):
            score += 0.4
        if _in_band(profile.saturation, SATURATION_BAND):
            score += 0.3
        if features.repetition_score >= MIN_REPETITION:
            score += 0.3
        return min(score, 1.0)

    def evaluate(
        self,
        frame: Any,
        profile: ColorProfile,
        features: TextureFeatures,
    ) -> GateDecision:
        """Decide whether a frame may proceed to matching.

        Args:
            frame: Raw pixel buffer, used for skin-tone rejection.
            profile: Color profile of the same frame.
            features: Texture features of the same frame.

        Returns:
            Gate decision with sub-scores and a short reason.
        """
        skin = self.skin_fraction(frame)
        if skin > self.config.skin_threshold:
            logger.info(f"Gate rejected frame: skin tones cover {skin:.0%} of samples")
            return GateDecision(
                passed=False,
                score=0.0,
                skin_fraction=skin,
                reason=f"Skin tones detected ({skin:.0%} of frame)",
            )

        color = self.color_score(profile)
        texture = self.texture_score(features)
        statistics = self.statistics_score(profile, features)
        score = float(np.clip(
            COLOR_WEIGHT * color + TEXTURE_WEIGHT * texture + STATISTICS_WEIGHT * statistics,
            0.0, 1.0,
        ))
        passed = score > self.config.likelihood_threshold

        if passed:
            reason = f"Carpet likelihood {score:.2f}"
        else:
            reason = (
                f"Carpet likelihood {score:.2f} below threshold "
                f"{self.config.likelihood_threshold:.2f}"
            )
            logger.info(f"Gate rejected frame: {reason}")

        logger.debug(
            f"Gate scores - color: {color:.2f}, texture: {texture:.2f}, "
            f"statistics: {statistics:.2f}, skin: {skin:.2f}"
        )
        return GateDecision(
            passed=passed,
            score=score,
            skin_fraction=skin,
            color_score=color,
            texture_score=texture,
            statistics_score=statistics,
            reason=reason,
        )
