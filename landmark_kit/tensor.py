from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .errors import InvalidBufferSize


def pack_tensor(pixels: np.ndarray, size: Optional[int] = None) -> np.ndarray:
    """
    Convert an S x S RGBA buffer into the network input tensor.

    Accepts the (S, S, 4) canvas from `letterbox()` or a flat buffer of 4*S*S bytes.
    Returns a C-contiguous float32 array shaped (1, 3, S, S): planes R, G, B, each
    row-major, values pixel / 255. Alpha is dropped. `tensor.ravel()` is the planar
    buffer of length 3*S*S.
    """

    buf = np.asarray(pixels)
    total = int(buf.size)

    if size is None:
        if buf.ndim == 3:
            size = int(buf.shape[0])
        else:
            size = int(math.isqrt(total // 4)) if total > 0 else 0
    if size <= 0 or total != 4 * size * size:
        raise InvalidBufferSize(f"Expected {4 * max(size, 0) ** 2} RGBA values for size {size}, got {total}")
    if buf.ndim == 3 and buf.shape != (size, size, 4):
        raise InvalidBufferSize(f"Expected buffer shape ({size}, {size}, 4), got {buf.shape}")

    hwc = buf.reshape(size, size, 4)[:, :, :3]
    chw = np.transpose(hwc, (2, 0, 1)).astype(np.float32) / 255.0
    return np.ascontiguousarray(chw[None, ...])
