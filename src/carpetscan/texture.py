"""Texture and pattern features (edges, local contrast, repetition, color complexity)."""

import logging
from typing import Any

import cv2
import numpy as np
import numpy.typing as npt
from skimage.util import view_as_blocks

from .config import RecognizerConfig
from .frames import luma, resize_square, to_rgb
from .models import TextureFeatures
from .patterns import PatternFamily

logger = logging.getLogger(__name__)

# Pattern classification thresholds
GEOMETRIC_MIN_EDGES = 25.0
GEOMETRIC_MIN_REPETITION = 0.6
ORNAMENTAL_MIN_CONTRAST = 0.4
ORNAMENTAL_MIN_EDGES = 15.0
PLAIN_MAX_EDGES = 10.0
PLAIN_MAX_CONTRAST = 0.3


def classify_pattern(
    edge_density: float, contrast: float, repetition_score: float
) -> PatternFamily:
    """Classify the pattern family from texture signals.

    Rules are evaluated in order and the first match wins:

    1. many edges and strong repetition -> geometric
    2. high contrast and moderate-to-many edges -> ornamental
    3. few edges and low contrast -> plain
    4. anything else -> mixed

    Args:
        edge_density: Edges per 100 sampled pixels.
        contrast: Mean local contrast, 0.0-1.0.
        repetition_score: Block repetition score, 0.0-1.0.

    Returns:
        Pattern family. Identical inputs always give the same family.
    """
    if edge_density > GEOMETRIC_MIN_EDGES and repetition_score > GEOMETRIC_MIN_REPETITION:
        return PatternFamily.GEOMETRIC
    if contrast > ORNAMENTAL_MIN_CONTRAST and edge_density > ORNAMENTAL_MIN_EDGES:
        return PatternFamily.ORNAMENTAL
    if edge_density < PLAIN_MAX_EDGES and contrast < PLAIN_MAX_CONTRAST:
        return PatternFamily.PLAIN
    return PatternFamily.MIXED


def _crop_to_multiple(img: npt.NDArray[Any], block: int) -> npt.NDArray[Any]:
    h = (img.shape[0] // block) * block
    w = (img.shape[1] // block) * block
    return img[:h, :w]


class TextureFeatureExtractor:
    """Turns a pixel buffer into :class:`TextureFeatures`.

    All neighborhood operations run on a grayscale copy at a fixed, smaller working
    resolution than color extraction uses.
    """

    def __init__(self, config: RecognizerConfig | None = None):
        self.config = config or RecognizerConfig()

    def compute_edge_density(self, gray: npt.NDArray[np.float32]) -> float:
        """Sobel edges per 100 interior pixels.

        Args:
            gray: Grayscale image as float32.

        Returns:
            Edge density in [0, 100].
        """
        if gray.shape[0] < 3 or gray.shape[1] < 3:
            return 0.0
        gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
        magnitude = cv2.magnitude(gx, gy)[1:-1, 1:-1]
        edges = np.count_nonzero(magnitude > self.config.edge_threshold)
        return float(edges) / magnitude.size * 100.0

    def compute_local_contrast(self, gray: npt.NDArray[np.float32]) -> float:
        """Mean (max - min) / 255 over non-overlapping windows."""
        win = self.config.contrast_window
        cropped = _crop_to_multiple(gray, win)
        if cropped.size == 0:
            return 0.0
        blocks = view_as_blocks(np.ascontiguousarray(cropped), (win, win))
        spread = blocks.max(axis=(2, 3)) - blocks.min(axis=(2, 3))
        return float(np.clip(spread.mean() / 255.0, 0.0, 1.0))

    def compute_repetition(self, gray: npt.NDArray[np.float32]) -> float:
        """Fraction of block pairs that look alike.

        The image is tiled into square blocks; each block is compared with the
        blocks a fixed number of tiles to its right and below it. Pair similarity
        is ``1 - mean|a - b| / 255`` and a pair counts as repeating when the
        similarity reaches ``repetition_threshold``.

        Args:
            gray: Grayscale image as float32.

        Returns:
            Repetition score in [0, 1]; 0.0 when no pairs fit in the frame.
        """
        bs = self.config.repetition_block
        cropped = _crop_to_multiple(gray, bs)
        if cropped.size == 0:
            return 0.0
        blocks = view_as_blocks(np.ascontiguousarray(cropped), (bs, bs))
        rows, cols = blocks.shape[:2]

        similarities = []
        for offset in self.config.repetition_offsets:
            if offset < cols:
                diff = np.abs(blocks[:, :-offset] - blocks[:, offset:]).mean(axis=(2, 3))
                similarities.append((1.0 - diff / 255.0).ravel())
            if offset < rows:
                diff = np.abs(blocks[:-offset] - blocks[offset:]).mean(axis=(2, 3))
                similarities.append((1.0 - diff / 255.0).ravel())

        if not similarities:
            return 0.0
        pairs = np.concatenate(similarities)
        return float(np.count_nonzero(pairs >= self.config.repetition_threshold)) / pairs.size

    def compute_color_complexity(self, rgb: npt.NDArray[np.uint8]) -> float:
        """Distinct coarse colors over a sparse sample, normalized by an empirical cap."""
        pixels = rgb.reshape(-1, 3)[:: self.config.complexity_stride].astype(np.int64)
        if len(pixels) == 0:
            return 0.0
        q = pixels // self.config.complexity_step
        keys = (q[:, 0] << 16) | (q[:, 1] << 8) | q[:, 2]
        distinct = len(np.unique(keys))
        return min(1.0, distinct / self.config.complexity_cap)

    def extract(self, frame: Any) -> TextureFeatures:
        """Extract texture features of a frame.

        Args:
            frame: RGB(A) or grayscale pixel buffer at any resolution.

        Returns:
            Texture features. Degenerate input yields :meth:`TextureFeatures.empty`.
        """
        rgb = to_rgb(frame)
        if rgb is None:
            logger.debug("Texture extraction skipped: empty or unsupported frame")
            return TextureFeatures.empty()

        rgb = resize_square(rgb, self.config.texture_size)
        gray = luma(rgb)

        edge_density = self.compute_edge_density(gray)
        contrast = self.compute_local_contrast(gray)
        repetition = self.compute_repetition(gray)

        return TextureFeatures(
            contrast=contrast,
            edge_density=min(edge_density, 100.0),
            repetition_score=min(repetition, 1.0),
            color_complexity=self.compute_color_complexity(rgb),
            pattern=classify_pattern(edge_density, contrast, repetition),
        )
