#!/usr/bin/env python3
"""Configuration dataclasses for carpetscan package."""

from __future__ import annotations

from dataclasses import dataclass, field

# (x, y, w, h) as fractions of the working frame
Region = tuple[float, float, float, float]

DEFAULT_SAMPLE_REGIONS: tuple[Region, ...] = (
    (0.2, 0.2, 0.3, 0.3),    # top-left
    (0.5, 0.2, 0.3, 0.3),    # top-right
    (0.2, 0.5, 0.3, 0.3),    # bottom-left
    (0.5, 0.5, 0.3, 0.3),    # bottom-right
    (0.35, 0.35, 0.3, 0.3),  # center
)


@dataclass
class RecognizerConfig:
    """Sampling, extraction and gating settings for one recognizer."""

    # Color extraction
    color_size: int = 300
    color_stride: int = 3
    color_step: int = 16  # per-channel quantization step
    top_n_colors: int = 8
    sample_regions: tuple[Region, ...] = field(default=DEFAULT_SAMPLE_REGIONS)

    # Texture extraction
    texture_size: int = 200
    edge_threshold: float = 50.0
    contrast_window: int = 5
    repetition_block: int = 16
    repetition_offsets: tuple[int, ...] = (1, 2)  # in blocks
    repetition_threshold: float = 0.92
    complexity_stride: int = 4
    complexity_step: int = 32  # per-channel quantization step
    complexity_cap: int = 100

    # Likelihood gate
    skin_stride: int = 4
    skin_threshold: float = 0.30
    likelihood_threshold: float = 0.30
    palette_similarity: float = 0.85

    # Ranking
    compare_colors: int = 5  # top-K dominant colors compared per side
    top_k: int = 5
    num_workers: int = 1  # >1 scores reference entries on a thread pool
    parallel_extraction: bool = False

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            ValueError: If any parameter is invalid.
        """
        if self.color_size < 10 or self.texture_size < 10:
            msg = (
                f"working sizes must be >= 10px, got color={self.color_size}, "
                f"texture={self.texture_size}"
            )
            raise ValueError(msg)
        if self.color_stride < 1 or self.skin_stride < 1 or self.complexity_stride < 1:
            msg = "sampling strides must be >= 1"
            raise ValueError(msg)
        if not 1 <= self.color_step <= 128:
            msg = f"color_step must be in [1,128], got {self.color_step}"
            raise ValueError(msg)
        if not 1 <= self.complexity_step <= 128:
            msg = f"complexity_step must be in [1,128], got {self.complexity_step}"
            raise ValueError(msg)
        if self.top_n_colors < 1 or self.compare_colors < 1 or self.top_k < 1:
            msg = "top_n_colors, compare_colors and top_k must be >= 1"
            raise ValueError(msg)
        if not self.sample_regions:
            msg = "sample_regions must not be empty"
            raise ValueError(msg)
        for x, y, w, h in self.sample_regions:
            if min(x, y) < 0.0 or w <= 0.0 or h <= 0.0 or x + w > 1.0 or y + h > 1.0:
                msg = f"sample region out of frame: {(x, y, w, h)}"
                raise ValueError(msg)
        if self.repetition_block < 2 or self.contrast_window < 2:
            msg = "repetition_block and contrast_window must be >= 2"
            raise ValueError(msg)
        if not self.repetition_offsets or min(self.repetition_offsets) < 1:
            msg = f"repetition_offsets must be positive, got {self.repetition_offsets}"
            raise ValueError(msg)
        for name in ("repetition_threshold", "skin_threshold",
                     "likelihood_threshold", "palette_similarity"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                msg = f"{name} must be in [0,1], got {value}"
                raise ValueError(msg)
        if self.complexity_cap < 1:
            msg = f"complexity_cap must be >= 1, got {self.complexity_cap}"
            raise ValueError(msg)
        if self.num_workers < 1:
            msg = f"num_workers must be >= 1, got {self.num_workers}"
            raise ValueError(msg)
