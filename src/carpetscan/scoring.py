"""Similarity scoring of captured features against reference entries, and ranking."""

import logging
from collections.abc import Sequence
from functools import partial
from multiprocessing.pool import ThreadPool

import numpy as np

from .color import perceptual_similarity_matrix
from .confidence import ConfidenceConfig, FeatureWeights, WeightSignals
from .config import RecognizerConfig
from .models import (
    ColorProfile,
    DetectedFeatures,
    LocationContext,
    MatchResult,
    ReferenceEntry,
    TextureFeatures,
)
from .patterns import PatternFamily

logger = logging.getLogger(__name__)

# Normalizers for the dynamic weight signals
_BRIGHTNESS_STD_SCALE = 64.0
_EDGE_CLARITY_SCALE = 30.0

_HIGH_REPETITION = 0.7


def _clamp01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def _fits_family(features: TextureFeatures, family: PatternFamily) -> bool:
    """Check captured features against what a reference family usually shows."""
    edges = features.edge_density
    repetition = features.repetition_score
    if family == PatternFamily.GEOMETRIC:
        return repetition >= 0.5 and edges >= 20.0
    if family == PatternFamily.ORNAMENTAL:
        return repetition < 0.6 and edges >= 10.0
    if family == PatternFamily.PLAIN:
        return edges < 10.0 and repetition >= 0.7
    return edges >= 10.0


class SimilarityScorer:
    """Computes color, pattern and texture similarity for one reference entry."""

    def __init__(
        self,
        confidence: ConfidenceConfig | None = None,
        config: RecognizerConfig | None = None,
    ):
        self.confidence = confidence or ConfidenceConfig()
        self.config = config or RecognizerConfig()

    def _color_similarity(
        self,
        captured: Sequence[tuple[int, int, int]],
        captured_variance: float,
        reference: Sequence[tuple[int, int, int]],
        reference_variance: float,
    ) -> float:
        k = self.config.compare_colors
        captured = list(captured)[:k]
        reference = list(reference)[:k]
        if not captured or not reference:
            return 0.0

        best = perceptual_similarity_matrix(captured, reference).max(axis=1)
        palette = float(best.mean())

        scale = max(reference_variance, captured_variance, 1.0)
        variance_bonus = _clamp01(1.0 - abs(captured_variance - reference_variance) / scale)

        w = self.confidence.variance_bonus_weight
        return _clamp01((1.0 - w) * palette + w * variance_bonus)

    def color_similarity(
        self, profile: ColorProfile, reference: ColorProfile | ReferenceEntry
    ) -> float:
        """Palette similarity of a captured profile to a reference, 0.0-1.0.

        Each captured dominant color is matched to its closest reference color by
        perceptual distance; the best matches are averaged and blended with a bonus
        for similar brightness variance.

        Args:
            profile: Captured color profile.
            reference: Reference entry, or another profile.

        Returns:
            Similarity in [0, 1]; 0.0 whenever either side has no colors.
        """
        if profile.is_empty:
            return 0.0
        if isinstance(reference, ColorProfile):
            if reference.is_empty:
                return 0.0
            ref_colors = [c.rgb for c in reference.dominant_colors]
            ref_variance = reference.brightness_variance
        else:
            ref_colors = list(reference.dominant_colors)
            ref_variance = reference.variance
        return self._color_similarity(
            [c.rgb for c in profile.dominant_colors],
            profile.brightness_variance,
            ref_colors,
            ref_variance,
        )

    def pattern_similarity(self, features: TextureFeatures, entry: ReferenceEntry) -> float:
        """Pattern table score plus a bonus when features fit the reference family."""
        score = self.confidence.pattern_match_score(features.pattern, entry.pattern)
        if _fits_family(features, entry.pattern.family):
            score += self.confidence.consistency_bonus
        return _clamp01(score)

    def texture_similarity(self, features: TextureFeatures, entry: ReferenceEntry) -> float:
        """Compare captured contrast and edges with what the reference variance implies."""
        band = self.confidence.expected_texture(entry.variance)
        contrast_score = 1.0 - abs(features.contrast - band.contrast)
        edge_gap = abs(features.edge_density - band.edge_density)
        edge_score = 1.0 - min(1.0, edge_gap / self.confidence.edge_tolerance)
        return _clamp01((contrast_score + edge_score) / 2.0)

    def weight_signals(self, profile: ColorProfile, features: TextureFeatures) -> WeightSignals:
        """How informative the color, pattern and texture channels of a frame are."""
        std = float(np.sqrt(max(profile.brightness_variance, 0.0)))
        color = 0.5 * min(1.0, std / _BRIGHTNESS_STD_SCALE) + 0.5 * profile.saturation
        pattern = min(1.0, features.edge_density / _EDGE_CLARITY_SCALE)
        return WeightSignals(
            color_variance=_clamp01(color),
            pattern_clarity=_clamp01(pattern),
            texture_detail=_clamp01(features.contrast),
        )

    def detected_features(
        self, profile: ColorProfile, features: TextureFeatures
    ) -> DetectedFeatures:
        return DetectedFeatures(
            dominant_colors=[c.hex for c in profile.dominant_colors[:3]],
            pattern=features.pattern,
            texture_level=self.confidence.texture_level(features),
            is_geometric=features.pattern == PatternFamily.GEOMETRIC,
            is_ornamental=features.pattern == PatternFamily.ORNAMENTAL,
        )

    def reasoning(
        self,
        color_sim: float,
        pattern_sim: float,
        texture_sim: float,
        features: TextureFeatures,
        entry: ReferenceEntry,
    ) -> list[str]:
        """Short, ordered explanations of a score."""
        level = self.confidence.similarity_level
        reasons = []

        color_level = level(color_sim)
        reasons.append(f"{color_level.capitalize()} color match ({color_sim * 100:.0f}%)")

        pattern_level = level(pattern_sim)
        detected = features.pattern.value
        if pattern_level in ("excellent", "good"):
            reasons.append(
                f"{pattern_level.capitalize()} pattern match ({detected} vs {entry.pattern.text})"
            )
        elif pattern_level == "moderate":
            reasons.append(f"Related pattern ({detected} vs {entry.pattern.text})")
        else:
            reasons.append(f"Pattern mismatch ({detected} vs {entry.pattern.text})")

        texture_level = level(texture_sim)
        if texture_level in ("excellent", "good"):
            reasons.append("Texture complexity aligns well")
        elif texture_level == "moderate":
            reasons.append("Texture partially consistent")
        else:
            reasons.append("Different texture characteristics")

        if features.pattern == PatternFamily.GEOMETRIC:
            reasons.append("Geometric pattern detected")
        elif features.pattern == PatternFamily.ORNAMENTAL:
            reasons.append("Ornamental pattern detected")
        elif features.pattern == PatternFamily.PLAIN:
            reasons.append("Plain surface with little structure")
        if features.repetition_score >= _HIGH_REPETITION:
            reasons.append("Highly repetitive design")
        if self.confidence.texture_level(features) == "high":
            reasons.append("Rich texture detail")
        return reasons

    def score(  # noqa: PLR0913
        self,
        profile: ColorProfile,
        features: TextureFeatures,
        entry: ReferenceEntry,
        weights: FeatureWeights,
        detected: DetectedFeatures,
        location: LocationContext | None = None,
    ) -> MatchResult:
        """Score one reference entry.

        Args:
            profile: Captured color profile.
            features: Captured texture features.
            entry: Reference entry to compare against.
            weights: Dynamic weights for this analysis.
            detected: Detected-features snapshot shared by all results.
            location: Optional location prior.

        Returns:
            Match result with similarities scaled to 0-100.
        """
        color_sim = self.color_similarity(profile, entry)
        pattern_sim = self.pattern_similarity(features, entry)
        texture_sim = self.texture_similarity(features, entry)

        visual = 100.0 * _clamp01(
            weights.color * color_sim
            + weights.pattern * pattern_sim
            + weights.texture * texture_sim
        )

        policy = self.confidence
        if location is not None:
            boost = policy.location_confidence_boost(location.distance_km, location.nearby_count)
            final = policy.blend_confidence(
                visual + policy.color_match_bonus(color_sim), boost, use_location=True
            )
        else:
            final = policy.blend_confidence(visual, 0.0, use_location=False)

        return MatchResult(
            entry_id=entry.entry_id,
            display_name=entry.display_name,
            confidence=visual,
            final_confidence=min(100.0, max(0.0, final)),
            color_similarity=color_sim * 100.0,
            pattern_similarity=pattern_sim * 100.0,
            texture_similarity=texture_sim * 100.0,
            reasoning=self.reasoning(color_sim, pattern_sim, texture_sim, features, entry),
            detected_features=detected,
        )


def _score_entry_worker(  # noqa: PLR0913
    entry: ReferenceEntry,
    scorer: SimilarityScorer,
    profile: ColorProfile,
    features: TextureFeatures,
    weights: FeatureWeights,
    detected: DetectedFeatures,
    location: LocationContext | None,
) -> MatchResult | None:
    """Worker function scoring one entry; malformed entries yield None."""
    try:
        return scorer.score(profile, features, entry, weights, detected, location)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
        entry_id = getattr(entry, "entry_id", "<unknown>")
        logger.warning(f"Skipping malformed reference entry {entry_id!r}: {e}")
        return None


class MatchRanker:
    """Scores every reference entry and returns the best-first top-K results."""

    def __init__(
        self,
        scorer: SimilarityScorer | None = None,
        top_k: int = 5,
        num_workers: int = 1,
    ):
        """Initialize ranker.

        Args:
            scorer: Similarity scorer. Defaults to one with the default policy.
            top_k: Maximum number of results returned.
            num_workers: Threads used to score entries (1 = serial).
        """
        self.scorer = scorer or SimilarityScorer()
        self.top_k = top_k
        self.num_workers = num_workers

    def rank(
        self,
        profile: ColorProfile,
        features: TextureFeatures,
        references: Sequence[ReferenceEntry],
        location: LocationContext | None = None,
    ) -> list[MatchResult]:
        """Rank reference entries by confidence.

        Args:
            profile: Captured color profile.
            features: Captured texture features.
            references: Static reference entries.
            location: Optional location prior.

        Returns:
            Results sorted by descending confidence (ties by entry id), at most top_k.
        """
        if not references:
            return []

        weights = self.scorer.confidence.dynamic_weights(
            self.scorer.weight_signals(profile, features)
        )
        logger.debug(
            f"Weights - Color: {weights.color:.2f}, Pattern: {weights.pattern:.2f}, "
            f"Texture: {weights.texture:.2f}"
        )

        worker_func = partial(
            _score_entry_worker,
            scorer=self.scorer,
            profile=profile,
            features=features,
            weights=weights,
            detected=self.scorer.detected_features(profile, features),
            location=location,
        )

        if self.num_workers > 1 and len(references) > 1:
            with ThreadPool(processes=self.num_workers) as pool:
                scored = pool.map(worker_func, references)
        else:
            scored = [worker_func(entry) for entry in references]

        results = [r for r in scored if r is not None]
        results.sort(key=lambda r: (-r.confidence, r.entry_id))
        return results[: self.top_k]
