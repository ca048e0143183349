"""
End-to-end tests for the carpet recognition engine.
"""

import numpy as np
import pytest

from carpetscan import (
    AnalysisState,
    CarpetRecognizer,
    LocationContext,
    RecognizerConfig,
    ReferenceDatabase,
    ReferenceEntry,
)


def carpet_frame() -> np.ndarray:
    """Burgundy/gold checkerboard that passes the likelihood gate."""
    idx = np.arange(300) // 24
    mask = (idx[:, None] + idx[None, :]) % 2 == 1
    frame = np.empty((300, 300, 3), dtype=np.uint8)
    frame[~mask] = (128, 0, 32)
    frame[mask] = (218, 165, 32)
    return frame


def skin_frame() -> np.ndarray:
    frame = np.zeros((300, 300, 3), dtype=np.uint8)
    frame[:] = (224, 172, 140)
    return frame


def references_for(frame: np.ndarray) -> list[ReferenceEntry]:
    """Build a reference matching the frame plus an off-color distractor."""
    extractor = CarpetRecognizer([])
    profile = extractor.color_extractor.extract(frame)
    pattern = extractor.texture_extractor.extract(frame).pattern.value
    own = ReferenceEntry(
        entry_id="own",
        display_name="Own Carpet",
        dominant_colors=[c.rgb for c in profile.dominant_colors],
        variance=profile.brightness_variance,
        pattern=pattern,
    )
    distractor = ReferenceEntry(
        entry_id="distractor",
        display_name="Distractor",
        dominant_colors=["#00ff00", "#0000ff"],
        variance=profile.brightness_variance,
        pattern=pattern,
    )
    return [distractor, own]


class FixedSource:
    """Frame source returning the same frame on every read."""

    def __init__(self, frame):
        self.frame = frame
        self.reads = 0

    def read_pixels(self):
        self.reads += 1
        return self.frame


class ReentrantSource:
    """Frame source that starts a second analysis while the first is running."""

    def __init__(self, recognizer: CarpetRecognizer, frame: np.ndarray):
        self.recognizer = recognizer
        self.frame = frame
        self.inner_result = None

    def read_pixels(self):
        self.inner_result = self.recognizer.analyze(self.frame)
        return self.frame


class TestCarpetRecognizer:
    """Test analysis of complete frames."""

    def test_identifies_matching_reference(self):
        """Test that a frame matches the reference built from it."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(references_for(frame))

        matches = recognizer.analyze(frame)

        assert [m.entry_id for m in matches] == ["own", "distractor"]
        assert matches[0].color_similarity > matches[1].color_similarity
        assert matches[0].final_confidence <= 85.0
        assert recognizer.last_outcome == AnalysisState.SCORED
        assert recognizer.state == AnalysisState.IDLE

    def test_deterministic(self):
        """Test that analyzing the same frame twice gives identical results."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(ReferenceDatabase.sample())

        first = recognizer.analyze(frame)
        second = recognizer.analyze(frame.copy())

        assert first
        assert first == second

    def test_skin_frame_returns_no_matches(self):
        """Test that a skin-toned frame is rejected before scoring."""
        recognizer = CarpetRecognizer(ReferenceDatabase.sample())

        assert recognizer.analyze(skin_frame()) == []
        assert recognizer.last_outcome == AnalysisState.REJECTED
        assert not recognizer.snapshot.gate.passed

    def test_earth_tone_carpet_is_scored(self):
        """Test that a brown patterned carpet reaches scoring."""
        idx = np.arange(300) // 24
        mask = (idx[:, None] + idx[None, :]) % 2 == 1
        frame = np.empty((300, 300, 3), dtype=np.uint8)
        frame[~mask] = (160, 82, 45)
        frame[mask] = (139, 69, 19)
        recognizer = CarpetRecognizer(ReferenceDatabase.sample())

        matches = recognizer.analyze(frame)

        assert matches
        assert recognizer.last_outcome == AnalysisState.SCORED
        assert recognizer.snapshot.gate.skin_fraction == 0.0

    def test_empty_frame(self):
        """Test that degenerate frames are reported as no match."""
        recognizer = CarpetRecognizer(ReferenceDatabase.sample())

        assert recognizer.analyze(np.zeros((0, 0, 4), np.uint8)) == []
        assert recognizer.snapshot.gate.reason == "Empty or unsupported frame"
        assert recognizer.last_profile.is_empty

    def test_empty_reference_set(self):
        """Test that an empty reference set yields no matches without failing."""
        recognizer = CarpetRecognizer([])

        assert recognizer.analyze(carpet_frame()) == []
        assert recognizer.snapshot.gate.passed

    def test_frame_source(self):
        """Test that a frame source is read once per analysis."""
        frame = carpet_frame()
        source = FixedSource(frame)
        recognizer = CarpetRecognizer(references_for(frame))

        matches = recognizer.analyze(source)

        assert source.reads == 1
        assert matches[0].entry_id == "own"

    def test_rgba_frame(self):
        """Test that RGBA frames give the same result as RGB."""
        frame = carpet_frame()
        rgba = np.dstack([frame, np.full(frame.shape[:2], 255, dtype=np.uint8)])
        recognizer = CarpetRecognizer(references_for(frame))

        assert recognizer.analyze(rgba) == recognizer.analyze(frame)

    def test_parallel_extraction(self):
        """Test that concurrent extraction matches sequential extraction."""
        frame = carpet_frame()
        references = references_for(frame)
        sequential = CarpetRecognizer(references)
        parallel = CarpetRecognizer(
            references, config=RecognizerConfig(parallel_extraction=True, num_workers=2)
        )

        assert parallel.analyze(frame) == sequential.analyze(frame)

    def test_location_prior(self):
        """Test that a location prior raises the final confidence ceiling."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(references_for(frame))
        location = LocationContext(distance_km=0.03, nearby_count=1)

        vision_only = recognizer.analyze(frame)[0]
        assisted = recognizer.analyze(frame, location=location)[0]

        assert assisted.confidence == pytest.approx(vision_only.confidence)
        assert assisted.final_confidence > vision_only.final_confidence
        assert assisted.final_confidence <= 98.0


class TestBusyGuard:
    """Test that overlapping analyses do not run concurrently."""

    def test_reentrant_call_returns_previous_result(self):
        """Test that a call during an analysis returns the previous matches."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(references_for(frame))
        previous = recognizer.analyze(frame)

        source = ReentrantSource(recognizer, frame)
        recognizer.analyze(source)

        assert source.inner_result == previous
        assert recognizer.snapshot.analysis_count == 2

    def test_first_reentrant_call_returns_empty(self):
        """Test that an overlapping call before any result returns nothing."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(references_for(frame))

        source = ReentrantSource(recognizer, frame)
        matches = recognizer.analyze(source)

        assert source.inner_result == []
        assert matches[0].entry_id == "own"


class TestFailureHandling:
    """Test that analysis failures degrade to no match."""

    def test_internal_error_returns_empty(self, monkeypatch):
        """Test that an exception during ranking is contained."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(references_for(frame))

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(recognizer.ranker, "rank", explode)

        assert recognizer.analyze(frame) == []
        assert recognizer.last_outcome == AnalysisState.REJECTED
        assert recognizer.state == AnalysisState.IDLE

    def test_invalid_config_rejected(self):
        """Test that invalid settings fail at construction."""
        with pytest.raises(ValueError, match="top_k"):
            CarpetRecognizer([], config=RecognizerConfig(top_k=0))

    def test_quantization_steps_validated(self):
        """Test that quantization steps are checked by name."""
        with pytest.raises(ValueError, match="color_step"):
            RecognizerConfig(color_step=0).validate()
        with pytest.raises(ValueError, match="complexity_step"):
            RecognizerConfig(complexity_step=200).validate()


class TestDiagnostics:
    """Test the diagnostic snapshot and debug summary."""

    def test_debug_info(self):
        """Test the debug summary after a scored analysis."""
        frame = carpet_frame()
        recognizer = CarpetRecognizer(references_for(frame))
        recognizer.analyze(frame)

        info = recognizer.debug_info()

        assert info["analysis_count"] == 1
        assert info["outcome"] == "scored"
        assert info["gate"]["passed"] is True
        assert info["matches"]["best"] == "Own Carpet"
        assert info["matches"]["total"] == 2
        assert len(info["color"]["dominant_colors"]) == 2
        assert info["pattern"]["type"] == recognizer.last_texture.pattern.value

    def test_debug_info_before_analysis(self):
        """Test the debug summary of a fresh recognizer."""
        info = CarpetRecognizer([]).debug_info()

        assert info["analysis_count"] == 0
        assert info["outcome"] is None
        assert info["matches"]["best"] is None
