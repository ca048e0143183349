"""Carpet Scan - Identify venues by matching photographed carpets to reference profiles."""

from .color import ColorProfileExtractor
from .confidence import ConfidenceConfig, FeatureWeights, WeightSignals
from .config import RecognizerConfig
from .database import ReferenceDatabase
from .engine import AnalysisState, CarpetRecognizer
from .frames import FrameSource
from .gate import CarpetLikelihoodGate
from .models import (
    ColorProfile,
    DominantColor,
    GateDecision,
    LocationContext,
    MatchResult,
    PatternDescriptor,
    ReferenceEntry,
    TextureFeatures,
)
from .patterns import PatternFamily
from .scoring import MatchRanker, SimilarityScorer
from .texture import TextureFeatureExtractor, classify_pattern

__version__ = "0.1.0"

__all__ = [
    "AnalysisState",
    "CarpetLikelihoodGate",
    "CarpetRecognizer",
    "ColorProfile",
    "ColorProfileExtractor",
    "ConfidenceConfig",
    "DominantColor",
    "FeatureWeights",
    "FrameSource",
    "GateDecision",
    "LocationContext",
    "MatchRanker",
    "MatchResult",
    "PatternDescriptor",
    "PatternFamily",
    "RecognizerConfig",
    "ReferenceDatabase",
    "ReferenceEntry",
    "SimilarityScorer",
    "TextureFeatureExtractor",
    "TextureFeatures",
    "WeightSignals",
    "classify_pattern",
]
