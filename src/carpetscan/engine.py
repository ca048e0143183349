"""Carpet recognition engine: extraction, gating and ranking of one frame per call."""

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any

import numpy as np
import numpy.typing as npt

from .color import ColorProfileExtractor
from .confidence import ConfidenceConfig
from .config import RecognizerConfig
from .frames import to_rgb
from .gate import CarpetLikelihoodGate
from .models import (
    ColorProfile,
    DiagnosticSnapshot,
    GateDecision,
    LocationContext,
    MatchResult,
    ReferenceEntry,
    TextureFeatures,
)
from .scoring import MatchRanker, SimilarityScorer
from .texture import TextureFeatureExtractor

logger = logging.getLogger(__name__)


class AnalysisState(str, Enum):
    """Per-frame cycle: idle -> analyzing -> rejected | scored -> idle."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    REJECTED = "rejected"
    SCORED = "scored"


class CarpetRecognizer:
    """Identifies the venue whose reference carpet best matches a captured frame.

    One analysis runs at a time. A call made while another is in flight returns
    the previous result instead of overlapping, because the frame source and its
    intermediate buffers belong to a single capture loop.
    """

    def __init__(
        self,
        references: Iterable[ReferenceEntry],
        config: RecognizerConfig | None = None,
        confidence: ConfidenceConfig | None = None,
    ):
        """Initialize recognizer.

        Args:
            references: Static reference entries (e.g. a ``ReferenceDatabase``).
            config: Sampling and gating settings.
            confidence: Confidence policy table.

        Raises:
            ValueError: If either configuration is invalid.
        """
        self.config = config or RecognizerConfig()
        self.confidence = confidence or ConfidenceConfig()
        self.config.validate()
        self.confidence.validate()

        self.references: tuple[ReferenceEntry, ...] = tuple(references)
        self.color_extractor = ColorProfileExtractor(self.config)
        self.texture_extractor = TextureFeatureExtractor(self.config)
        self.gate = CarpetLikelihoodGate(self.config)
        self.ranker = MatchRanker(
            SimilarityScorer(self.confidence, self.config),
            top_k=self.config.top_k,
            num_workers=self.config.num_workers,
        )

        self._lock = threading.Lock()
        self._state = AnalysisState.IDLE
        self._last_outcome: AnalysisState | None = None
        self._snapshot = DiagnosticSnapshot()

        logger.info(f"Carpet recognizer ready with {len(self.references)} reference entries")
        if not self.references:
            logger.warning("Reference set is empty; every analysis will return no matches")

    @property
    def state(self) -> AnalysisState:
        """IDLE or ANALYZING."""
        return self._state

    @property
    def last_outcome(self) -> AnalysisState | None:
        """REJECTED or SCORED for the last finished analysis, None before the first."""
        return self._last_outcome

    @property
    def snapshot(self) -> DiagnosticSnapshot:
        return self._snapshot

    @property
    def last_profile(self) -> ColorProfile | None:
        return self._snapshot.color_profile

    @property
    def last_texture(self) -> TextureFeatures | None:
        return self._snapshot.texture_features

    def analyze(self, frame: Any, location: LocationContext | None = None) -> list[MatchResult]:
        """Analyze one frame and rank the reference entries.

        Never raises: any failure is logged and degrades to "no match".

        Args:
            frame: Pixel buffer (RGBA, RGB or grayscale array) or a ``FrameSource``.
            location: Optional location prior for the blended confidence.

        Returns:
            Matches sorted best-first; empty if the frame was rejected, the frame was
            empty, or no references are loaded. While another analysis is running,
            the previous result is returned.
        """
        if not self._lock.acquire(blocking=False):
            logger.debug("Analysis already in progress, returning previous result")
            return list(self._snapshot.matches)

        self._state = AnalysisState.ANALYZING
        try:
            return self._analyze(frame, location)
        except Exception:
            logger.exception("Carpet analysis failed")
            self._last_outcome = AnalysisState.REJECTED
            return []
        finally:
            self._state = AnalysisState.IDLE
            self._lock.release()

    def _read_frame(self, frame: Any) -> npt.NDArray[np.uint8] | None:
        if hasattr(frame, "read_pixels"):
            frame = frame.read_pixels()
        return to_rgb(frame)

    def _extract(
        self, rgb: npt.NDArray[np.uint8]
    ) -> tuple[ColorProfile, TextureFeatures]:
        if self.config.parallel_extraction:
            # Both extractors only read the frame and write disjoint outputs
            with ThreadPoolExecutor(max_workers=2) as executor:
                color_future = executor.submit(self.color_extractor.extract, rgb)
                texture_future = executor.submit(self.texture_extractor.extract, rgb)
                return color_future.result(), texture_future.result()
        return self.color_extractor.extract(rgb), self.texture_extractor.extract(rgb)

    def _analyze(self, frame: Any, location: LocationContext | None) -> list[MatchResult]:
        start = time.perf_counter()
        count = self._snapshot.analysis_count + 1

        rgb = self._read_frame(frame)
        if rgb is None:
            profile, texture = ColorProfile.empty(), TextureFeatures.empty()
            decision = GateDecision(
                passed=False, score=0.0, skin_fraction=0.0, reason="Empty or unsupported frame"
            )
        else:
            profile, texture = self._extract(rgb)
            decision = self.gate.evaluate(rgb, profile, texture)

        if decision.passed:
            matches = self.ranker.rank(profile, texture, self.references, location)
            self._last_outcome = AnalysisState.SCORED
        else:
            matches = []
            self._last_outcome = AnalysisState.REJECTED

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self._snapshot = DiagnosticSnapshot(
            color_profile=profile,
            texture_features=texture,
            gate=decision,
            matches=matches,
            elapsed_ms=elapsed_ms,
            analysis_count=count,
        )
        self._log_results(count, elapsed_ms, decision, matches)
        return list(matches)

    def _log_results(
        self,
        count: int,
        elapsed_ms: float,
        decision: GateDecision,
        matches: list[MatchResult],
    ) -> None:
        if not decision.passed:
            logger.debug(f"Analysis #{count} rejected in {elapsed_ms:.1f}ms: {decision.reason}")
            return
        logger.debug(f"Analysis #{count} scored {len(matches)} candidates in {elapsed_ms:.1f}ms")
        for i, match in enumerate(matches[:3], start=1):
            logger.debug(
                f"  {i}. {match.display_name} ({match.confidence:.1f}%) "
                f"color {match.color_similarity:.0f}% | pattern {match.pattern_similarity:.0f}% "
                f"| texture {match.texture_similarity:.0f}%"
            )

    def debug_info(self) -> dict[str, Any]:
        """Human-readable summary of the last analysis for debug overlays."""
        snap = self._snapshot
        info: dict[str, Any] = {
            "analysis_count": snap.analysis_count,
            "elapsed_ms": round(snap.elapsed_ms, 1),
            "outcome": self._last_outcome.value if self._last_outcome else None,
        }
        if snap.color_profile is not None:
            profile = snap.color_profile
            info["color"] = {
                "dominant_colors": [c.hex for c in profile.dominant_colors[:5]],
                "variance": round(profile.brightness_variance, 1),
                "contrast_ratio": round(profile.contrast_ratio, 2),
                "saturation": f"{profile.saturation * 100:.1f}%",
                "sampled_pixels": profile.sampled_pixels,
            }
        if snap.texture_features is not None:
            texture = snap.texture_features
            info["pattern"] = {
                "type": texture.pattern.value,
                "contrast": f"{texture.contrast * 100:.1f}%",
                "edge_density": f"{texture.edge_density:.1f}/100px",
                "repetition": f"{texture.repetition_score * 100:.1f}%",
                "color_complexity": f"{texture.color_complexity * 100:.1f}%",
            }
        if snap.gate is not None:
            info["gate"] = {
                "passed": snap.gate.passed,
                "score": round(snap.gate.score, 2),
                "reason": snap.gate.reason,
            }
        matches = snap.matches
        info["matches"] = {
            "total": len(matches),
            "best": matches[0].display_name if matches else None,
            "best_confidence": round(matches[0].confidence, 1) if matches else None,
            "average_confidence": (
                round(sum(m.confidence for m in matches) / len(matches), 1) if matches else None
            ),
        }
        return info
