"""Pixel buffer normalization shared by the extractors."""

from typing import Any, Protocol

import cv2
import numpy as np
import numpy.typing as npt

_GRAY_NDIM = 2
_COLOR_NDIM = 3
_RGB_CHANNELS = 3
_RGBA_CHANNELS = 4

# ITU-R BT.601 luma weights (R, G, B)
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


class FrameSource(Protocol):
    """Caller-owned pixel source (camera, video file, test fixture)."""

    def read_pixels(self) -> npt.NDArray[Any] | None:
        """Return the current frame as an RGB(A) or grayscale array, or None."""
        ...


def to_rgb(frame: Any) -> npt.NDArray[np.uint8] | None:
    """Normalize a caller pixel buffer to an ``(H, W, 3)`` uint8 RGB array.

    Accepts RGBA (alpha dropped), RGB, single-channel ``(H, W, 1)`` and
    ``(H, W)`` grayscale buffers. Float buffers are clipped to 0-255.

    Args:
        frame: Array-like pixel buffer.

    Returns:
        RGB uint8 array, or None if the buffer is empty or has an unsupported shape.
    """
    if frame is None:
        return None
    arr = np.asarray(frame)
    if arr.size == 0 or arr.ndim not in (_GRAY_NDIM, _COLOR_NDIM):
        return None
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        return None

    if arr.dtype != np.uint8:
        if not np.issubdtype(arr.dtype, np.number):
            return None
        arr = np.clip(np.nan_to_num(arr.astype(np.float64)), 0, 255).astype(np.uint8)

    if arr.ndim == _GRAY_NDIM:
        return np.ascontiguousarray(np.repeat(arr[:, :, None], _RGB_CHANNELS, axis=2))

    channels = arr.shape[2]
    if channels == 1:
        return np.ascontiguousarray(np.repeat(arr, _RGB_CHANNELS, axis=2))
    if channels == _RGBA_CHANNELS:
        return np.ascontiguousarray(arr[:, :, :_RGB_CHANNELS])
    if channels == _RGB_CHANNELS:
        return np.ascontiguousarray(arr)
    return None


def resize_square(rgb: npt.NDArray[np.uint8], size: int) -> npt.NDArray[np.uint8]:
    """Downsample (or upsample) a frame to ``size x size`` working resolution."""
    h, w = rgb.shape[:2]
    if h == size and w == size:
        return rgb
    interpolation = cv2.INTER_AREA if h >= size and w >= size else cv2.INTER_LINEAR
    return cv2.resize(rgb, (size, size), interpolation=interpolation)


def luma(rgb: npt.NDArray[Any]) -> npt.NDArray[np.float32]:
    """Per-pixel luma (0.299R + 0.587G + 0.114B) as float32.

    Works on ``(H, W, 3)`` frames and ``(N, 3)`` pixel lists alike.
    """
    return rgb[..., :_RGB_CHANNELS].astype(np.float32) @ LUMA_WEIGHTS
