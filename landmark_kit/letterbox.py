from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import InvalidImageDimensions
from .types import LetterboxResult


def _cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterboxing. Install with `pip install opencv-python`.") from e
    return cv2


def as_rgba(image) -> np.ndarray:
    """
    Return `image` as a (H, W, 4) uint8 RGBA array. RGB input gets an opaque alpha channel.

    Anything `np.asarray` understands is accepted (NumPy arrays, PIL images, ...).
    The caller's buffer is never modified.
    """

    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Expected image shape (H, W, 3) or (H, W, 4), got {arr.shape}")
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


def letterbox_params(width: float, height: float, size: int = 640) -> Tuple[float, float, float]:
    """
    Uniform scale and centring offsets that fit a (width, height) image into a size x size square.

    Returns:
        (scale, offset_x, offset_y) with scale = min(size / width, size / height).
        The dimension that limits the scale is padded by exactly 0.
    """

    if width <= 0 or height <= 0:
        raise InvalidImageDimensions(f"Image dimensions must be positive, got {width}x{height}")
    if size <= 0:
        raise ValueError(f"Letterbox size must be positive, got {size}")

    scale_w = size / width
    scale_h = size / height
    if scale_w <= scale_h:
        scale = scale_w
        content_w, content_h = float(size), height * scale
    else:
        scale = scale_h
        content_w, content_h = width * scale, float(size)

    offset_x = (size - content_w) / 2
    offset_y = (size - content_h) / 2
    return scale, offset_x, offset_y


def letterbox(
    image,
    size: int = 640,
    color: Tuple[int, int, int] = (114, 114, 114),
) -> LetterboxResult:
    """
    Resize and pad an image into a size x size RGBA canvas, preserving aspect ratio.

    The canvas is pre-filled with `color` (opaque). The source is resized with bilinear
    interpolation and pasted at the offsets rounded to whole pixels; the returned
    offsets are the exact fractional values so the mapping can be inverted precisely.
    """

    rgba = as_rgba(image)
    h, w = rgba.shape[:2]
    if w == 0 or h == 0:
        raise InvalidImageDimensions(f"Image dimensions must be positive, got {w}x{h}")

    scale, offset_x, offset_y = letterbox_params(w, h, size)

    resized_w = min(size, max(1, int(round(w * scale))))
    resized_h = min(size, max(1, int(round(h * scale))))

    if (w, h) != (resized_w, resized_h):
        cv2 = _cv2()
        content = cv2.resize(rgba, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)
    else:
        content = rgba

    left = min(max(0, int(round(offset_x - 0.1))), size - resized_w)
    top = min(max(0, int(round(offset_y - 0.1))), size - resized_h)

    canvas = np.empty((size, size, 4), dtype=np.uint8)
    canvas[:, :, :3] = np.asarray(color, dtype=np.uint8)
    canvas[:, :, 3] = 255
    canvas[top : top + resized_h, left : left + resized_w] = content

    return LetterboxResult(pixels=canvas, scale=scale, offset_x=offset_x, offset_y=offset_y, size=size)


def limit_image_size(image, max_dimension: int = 2000) -> np.ndarray:
    """
    Downscale an image so neither side exceeds `max_dimension` (aspect preserved).

    Large uploads are shrunk before letterboxing to bound memory; smaller images are
    returned as-is.
    """

    arr = np.asarray(image)
    if arr.ndim < 2:
        raise ValueError(f"Expected an (H, W[, C]) image, got shape {arr.shape}")
    h, w = arr.shape[:2]
    if w == 0 or h == 0:
        raise InvalidImageDimensions(f"Image dimensions must be positive, got {w}x{h}")
    if w <= max_dimension and h <= max_dimension:
        return arr

    ratio = min(max_dimension / w, max_dimension / h)
    new_w = max(1, int(round(w * ratio)))
    new_h = max(1, int(round(h * ratio)))
    cv2 = _cv2()
    return cv2.resize(arr, (new_w, new_h), interpolation=cv2.INTER_AREA)
