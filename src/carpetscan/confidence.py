#!/usr/bin/env python3
"""Confidence policy tables: weights, thresholds, score tables and location blending.

Values are a starting tuning table. Swap in a different ``ConfidenceConfig``
instance to tune or A/B test without code changes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal, NamedTuple

from .models import PatternDescriptor, TextureFeatures, TextureLevel
from .patterns import COMPLEX_FAMILIES, UNKNOWN_TAG, PatternFamily

SimilarityLevel = Literal["excellent", "good", "moderate", "weak", "poor"]

_WEIGHT_TOLERANCE = 1e-6


class WeightSignals(NamedTuple):
    """How informative each channel of the captured frame was, each 0.0-1.0."""

    color_variance: float
    pattern_clarity: float
    texture_detail: float


@dataclass(frozen=True)
class FeatureWeights:
    """Weights of the color, pattern and texture similarities."""

    color: float = 0.35
    pattern: float = 0.40
    texture: float = 0.25

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.color, self.pattern, self.texture)

    @property
    def total(self) -> float:
        return self.color + self.pattern + self.texture


@dataclass(frozen=True)
class SimilarityThresholds:
    """Lower bounds of the qualitative similarity levels."""

    excellent: float = 0.85
    good: float = 0.70
    moderate: float = 0.55
    weak: float = 0.40


@dataclass(frozen=True)
class PatternScores:
    """Pattern similarity by how closely detected and reference families relate."""

    exact: float = 0.95
    close: float = 0.85
    related: float = 0.75
    partial: float = 0.60
    none: float = 0.30


@dataclass(frozen=True)
class ColorBonuses:
    """Confidence points added for color agreement on the location-assisted path."""

    excellent: float = 8.0
    good: float = 6.0
    moderate: float = 4.0
    weak: float = 2.0


@dataclass(frozen=True)
class TextureBand:
    """Expected texture for references whose variance is below ``max_variance``."""

    max_variance: float
    contrast: float
    edge_density: float


@dataclass(frozen=True)
class ConfidenceConfig:
    """Static, swappable policy table consumed by the scorer and the gate."""

    weights: FeatureWeights = field(default_factory=FeatureWeights)
    thresholds: SimilarityThresholds = field(default_factory=SimilarityThresholds)
    pattern_scores: PatternScores = field(default_factory=PatternScores)
    color_bonuses: ColorBonuses = field(default_factory=ColorBonuses)

    # Share of the weight budget redistributed by frame signals (0 = static weights)
    weight_adaptivity: float = 0.4

    # Color similarity blend with the variance-proximity bonus
    variance_bonus_weight: float = 0.15
    consistency_bonus: float = 0.10

    # Texture complexity bands (lower bounds of medium and high)
    texture_medium: float = 0.3
    texture_high: float = 0.6

    # Expected texture by reference variance, ascending by max_variance
    texture_bands: tuple[TextureBand, ...] = (
        TextureBand(max_variance=80.0, contrast=0.2, edge_density=8.0),
        TextureBand(max_variance=150.0, contrast=0.4, edge_density=20.0),
        TextureBand(max_variance=math.inf, contrast=0.6, edge_density=35.0),
    )
    edge_tolerance: float = 50.0

    # Location prior: (max distance km, boost) for a single nearby venue
    distance_boosts: tuple[tuple[float, float], ...] = (
        (0.05, 95.0),
        (0.1, 90.0),
        (0.2, 85.0),
        (0.5, 75.0),
    )
    single_far_boost: float = 60.0
    two_nearby_boost: float = 50.0
    many_nearby_boost: float = 30.0
    visual_adjustment: float = 0.2
    vision_only_cap: float = 85.0
    location_cap: float = 98.0

    def validate(self) -> None:
        """Validate the policy tables.

        Raises:
            ValueError: If any table is inconsistent.
        """
        w = self.weights.as_tuple()
        if min(w) < 0.0 or abs(self.weights.total - 1.0) > _WEIGHT_TOLERANCE:
            msg = f"weights must be non-negative and sum to 1, got {w}"
            raise ValueError(msg)
        t = self.thresholds
        if not 1.0 >= t.excellent >= t.good >= t.moderate >= t.weak >= 0.0:
            msg = f"similarity thresholds must be descending in [0,1], got {t}"
            raise ValueError(msg)
        for name in ("weight_adaptivity", "variance_bonus_weight", "consistency_bonus"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                msg = f"{name} must be in [0,1], got {value}"
                raise ValueError(msg)
        if not 0.0 <= self.texture_medium <= self.texture_high <= 1.0:
            msg = "texture bands must satisfy 0 <= medium <= high <= 1"
            raise ValueError(msg)
        limits = [band.max_variance for band in self.texture_bands]
        if not limits or limits != sorted(limits) or limits[-1] != math.inf:
            msg = "texture_bands must be ascending and end with an unbounded band"
            raise ValueError(msg)
        if not 0.0 <= self.vision_only_cap <= self.location_cap <= 100.0:
            msg = "caps must satisfy 0 <= vision_only_cap <= location_cap <= 100"
            raise ValueError(msg)

    def dynamic_weights(self, signals: WeightSignals) -> FeatureWeights:
        """Rebalance the base weights toward the channels the frame informs.

        ``w = (1 - a) * base + a * signal / sum(signals)`` with ``a`` the weight
        adaptivity. Every weight therefore stays within
        ``[(1 - a) * base, (1 - a) * base + a]`` and the triple sums to 1.
        Non-finite or negative signals count as zero; when all signals are zero the
        base weights are returned unchanged.

        Args:
            signals: Per-channel informativeness of the captured frame.

        Returns:
            Weights for color, pattern and texture.
        """
        cleaned = [
            min(max(s, 0.0), 1.0) if math.isfinite(s) else 0.0 for s in signals
        ]
        total = sum(cleaned)
        if total <= 0.0:
            return self.weights

        a = self.weight_adaptivity
        base = self.weights.as_tuple()
        color, pattern, texture = (
            (1.0 - a) * b + a * s / total for b, s in zip(base, cleaned)
        )
        # Push rounding residue into the largest weight so the sum is exactly 1
        residue = 1.0 - (color + pattern + texture)
        if pattern >= color and pattern >= texture:
            pattern += residue
        elif color >= texture:
            color += residue
        else:
            texture += residue
        return FeatureWeights(color=color, pattern=pattern, texture=texture)

    def pattern_match_score(
        self, detected: PatternFamily, descriptor: PatternDescriptor
    ) -> float:
        """Score how well a detected family fits a reference descriptor.

        - exact: the descriptor tag names the detected family itself
        - close: the tag is a synonym of the detected family (e.g. floral)
        - related: both families are structured, or both are plain
        - partial: unknown descriptor, or mixed against plain
        - none: anything else
        """
        scores = self.pattern_scores
        if descriptor.tag == UNKNOWN_TAG:
            return scores.partial
        if descriptor.family == detected:
            return scores.exact if descriptor.tag == detected.value else scores.close
        if detected in COMPLEX_FAMILIES and descriptor.family in COMPLEX_FAMILIES:
            return scores.related
        if PatternFamily.MIXED in (detected, descriptor.family):
            return scores.partial
        return scores.none

    def similarity_level(self, score: float) -> SimilarityLevel:
        """Map a 0.0-1.0 similarity to a qualitative level."""
        t = self.thresholds
        if score >= t.excellent:
            return "excellent"
        if score >= t.good:
            return "good"
        if score >= t.moderate:
            return "moderate"
        if score >= t.weak:
            return "weak"
        return "poor"

    def color_match_bonus(self, similarity: float) -> float:
        """Confidence points for a 0.0-1.0 color similarity."""
        level = self.similarity_level(similarity)
        if level == "poor":
            return 0.0
        return float(getattr(self.color_bonuses, level))

    def texture_level(self, features: TextureFeatures) -> TextureLevel:
        """Overall texture complexity of a frame (low / medium / high)."""
        complexity = (
            features.contrast + features.edge_density / 100.0 + features.color_complexity
        ) / 3.0
        if complexity >= self.texture_high:
            return "high"
        if complexity >= self.texture_medium:
            return "medium"
        return "low"

    def expected_texture(self, variance: float) -> TextureBand:
        """Texture band expected for a reference with the given variance."""
        for band in self.texture_bands:
            if variance < band.max_variance:
                return band
        return self.texture_bands[-1]

    def location_confidence_boost(self, distance_km: float, nearby_count: int) -> float:
        """Prior confidence (0-100) from distance and the number of nearby venues."""
        if nearby_count == 1:
            for max_distance, boost in self.distance_boosts:
                if distance_km <= max_distance:
                    return boost
            return self.single_far_boost
        if nearby_count == 2:  # noqa: PLR2004
            return self.two_nearby_boost
        return self.many_nearby_boost

    def blend_confidence(
        self, visual: float, location_boost: float, use_location: bool
    ) -> float:
        """Combine visual confidence with an optional location prior.

        Location-assisted: the prior dominates and the visual score adjusts it by
        ``(visual - 50) * visual_adjustment``, bounded to ``[0, location_cap]``.
        Vision only: the visual score bounded to ``[0, vision_only_cap]``.
        """
        if use_location:
            adjusted = location_boost + (visual - 50.0) * self.visual_adjustment
            return min(self.location_cap, max(0.0, adjusted))
        return min(self.vision_only_cap, max(0.0, visual))
