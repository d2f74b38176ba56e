from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import SchemaMismatch


@dataclass(frozen=True)
class Detection:
    """
    A detected object in original image coordinates.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_id: int = 0

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2

    @property
    def area(self) -> float:
        return max(0.0, self.x2 - self.x1) * max(0.0, self.y2 - self.y1)


@dataclass(frozen=True)
class Candidate:
    """
    A network output row that passed the confidence threshold, still in letterbox space
    and in center form.
    """

    cx: float
    cy: float
    w: float
    h: float
    score: float
    class_id: int = 0

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        half_w, half_h = self.w / 2, self.h / 2
        return self.cx - half_w, self.cy - half_h, self.cx + half_w, self.cy + half_h


@dataclass(frozen=True)
class LetterboxResult:
    """
    Output of `letterbox()`.

    `pixels` is the (size, size, 4) RGBA canvas. `scale`, `offset_x` and `offset_y`
    describe the mapping original -> letterbox space:

        x_lb = x * scale + offset_x
        y_lb = y * scale + offset_y
    """

    pixels: np.ndarray
    scale: float
    offset_x: float
    offset_y: float
    size: int

    def to_letterbox(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.scale + self.offset_x, y * self.scale + self.offset_y

    def to_original(self, x: float, y: float) -> Tuple[float, float]:
        return (x - self.offset_x) / self.scale, (y - self.offset_y) / self.scale


@dataclass(frozen=True)
class RawPrediction:
    """
    Raw engine output for one image, feature-major: `features[f, i]` is feature `f`
    of candidate `i` (flat index `f * N + i`).
    """

    features: np.ndarray

    @property
    def num_features(self) -> int:
        return int(self.features.shape[0])

    @property
    def num_candidates(self) -> int:
        return int(self.features.shape[1])

    @classmethod
    def from_array(cls, output: np.ndarray) -> "RawPrediction":
        """
        Wrap an engine output shaped (1, F, N) or (F, N). F and N are taken from the shape.
        """

        p = np.asarray(output, dtype=np.float32)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise SchemaMismatch(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
            p = p[0]
        if p.ndim != 2:
            raise SchemaMismatch(f"Expected prediction shape (1, F, N) or (F, N), got {p.shape}")
        return cls(features=p)
