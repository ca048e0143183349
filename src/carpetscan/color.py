"""Color profile extraction from multi-region pixel samples."""

import logging
from typing import Any

import numpy as np
import numpy.typing as npt

from .config import RecognizerConfig
from .frames import luma, resize_square, to_rgb
from .models import ColorProfile, DominantColor

logger = logging.getLogger(__name__)

# Channel weights approximating luminance sensitivity (R, G, B)
PERCEPTUAL_WEIGHTS = np.array([0.30, 0.59, 0.11], dtype=np.float64)


def perceptual_similarity_matrix(
    colors_a: npt.ArrayLike, colors_b: npt.ArrayLike
) -> npt.NDArray[np.float64]:
    """Pairwise perceptual similarity between two RGB color lists.

    Similarity is ``max(0, 1 - d / 255)`` where ``d`` is the Euclidean distance of
    the channel differences scaled by :data:`PERCEPTUAL_WEIGHTS`.

    Args:
        colors_a: Array of shape (N, 3).
        colors_b: Array of shape (M, 3).

    Returns:
        Array of shape (N, M) with values in [0, 1].
    """
    a = np.asarray(colors_a, dtype=np.float64).reshape(-1, 3)
    b = np.asarray(colors_b, dtype=np.float64).reshape(-1, 3)
    diff = (a[:, None, :] - b[None, :, :]) * PERCEPTUAL_WEIGHTS
    distance = np.sqrt(np.einsum("ijk,ijk->ij", diff, diff))
    return np.clip(1.0 - distance / 255.0, 0.0, 1.0)


def perceptual_similarity(rgb1: tuple[int, int, int], rgb2: tuple[int, int, int]) -> float:
    """Perceptual similarity of two single colors, 0.0-1.0."""
    return float(perceptual_similarity_matrix([rgb1], [rgb2])[0, 0])


class ColorProfileExtractor:
    """Turns a pixel buffer into a compact :class:`ColorProfile`.

    The frame is resized to a square working resolution and sampled with a fixed
    stride inside five sub-regions (four quadrants plus center) rather than the full
    raster, which limits bias from uneven lighting and bounds the cost per frame.
    """

    def __init__(self, config: RecognizerConfig | None = None):
        """Initialize extractor.

        Args:
            config: Recognizer settings. Defaults to ``RecognizerConfig()``.
        """
        self.config = config or RecognizerConfig()

    def sample_pixels(self, rgb: npt.NDArray[np.uint8]) -> npt.NDArray[np.uint8]:
        """Collect strided pixel samples from every configured region.

        Args:
            rgb: Frame at working resolution (H, W, 3).

        Returns:
            Sampled pixels as an (N, 3) uint8 array.
        """
        h, w = rgb.shape[:2]
        stride = self.config.color_stride
        chunks = []
        for fx, fy, fw, fh in self.config.sample_regions:
            x0, x1 = int(w * fx), int(w * (fx + fw))
            y0, y1 = int(h * fy), int(h * (fy + fh))
            chunks.append(rgb[y0:y1:stride, x0:x1:stride].reshape(-1, 3))
        return np.concatenate(chunks, axis=0) if chunks else np.empty((0, 3), np.uint8)

    def quantize(self, pixels: npt.NDArray[np.uint8]) -> npt.NDArray[np.int64]:
        """Map pixels to the center of their coarse per-channel bucket."""
        step = self.config.color_step
        q = (pixels.astype(np.int64) // step) * step + step // 2
        return np.minimum(q, 255)

    def dominant_colors(self, pixels: npt.NDArray[np.uint8]) -> list[DominantColor]:
        """Rank quantized buckets by frequency and keep the top N.

        Ties are broken by bucket value so the ranking is deterministic.
        """
        if len(pixels) == 0:
            return []
        q = self.quantize(pixels)
        keys = (q[:, 0] << 16) | (q[:, 1] << 8) | q[:, 2]
        buckets, counts = np.unique(keys, return_counts=True)
        order = np.lexsort((buckets, -counts))[: self.config.top_n_colors]
        total = float(len(pixels))
        return [
            DominantColor(
                rgb=(int(buckets[i] >> 16) & 0xFF, int(buckets[i] >> 8) & 0xFF,
                     int(buckets[i]) & 0xFF),
                frequency=float(counts[i]) / total,
            )
            for i in order
        ]

    def extract(self, frame: Any) -> ColorProfile:
        """Extract the color profile of a frame.

        Args:
            frame: RGB(A) or grayscale pixel buffer at any resolution.

        Returns:
            Color profile. Degenerate input yields :meth:`ColorProfile.empty`.
        """
        rgb = to_rgb(frame)
        if rgb is None:
            logger.debug("Color extraction skipped: empty or unsupported frame")
            return ColorProfile.empty()

        size = self.config.color_size
        rgb = resize_square(rgb, size)
        pixels = self.sample_pixels(rgb)
        if len(pixels) == 0:
            return ColorProfile.empty()

        brightness = luma(pixels)
        min_b = float(brightness.min())
        max_b = float(brightness.max())

        channels = pixels.astype(np.float32)
        cmax = channels.max(axis=1)
        cmin = channels.min(axis=1)
        saturation = np.divide(
            cmax - cmin, cmax, out=np.zeros_like(cmax), where=cmax > 0
        )

        bins = np.minimum(np.floor(brightness), 255).astype(np.int64)
        histogram = np.bincount(bins, minlength=256)

        return ColorProfile(
            dominant_colors=self.dominant_colors(pixels),
            brightness_variance=float(np.var(brightness)),
            contrast_ratio=max_b / max(min_b, 1.0),
            saturation=float(np.clip(saturation.mean(), 0.0, 1.0)),
            histogram=histogram.tolist(),
            sampled_pixels=len(pixels),
            total_pixels=size * size,
        )
