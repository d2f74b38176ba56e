from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

import numpy as np

from .errors import SchemaMismatch
from .types import Candidate, Detection, LetterboxResult, RawPrediction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleClass:
    """
    Layout (5 + aux, N): [cx, cy, w, h, score, aux...]. The score row is used as-is.
    """

    aux_features: int = 0

    @property
    def expected_features(self) -> int:
        return 5 + self.aux_features

    @property
    def required_features(self) -> int:
        return 5


@dataclass(frozen=True)
class MultiClass:
    """
    Layout (4 + C + aux, N): [cx, cy, w, h, class_logits..., aux...].
    Class rows are raw logits and go through a sigmoid.
    """

    class_count: int
    aux_features: int = 0

    def __post_init__(self) -> None:
        if self.class_count < 1:
            raise ValueError("class_count must be >= 1")

    @property
    def expected_features(self) -> int:
        return 4 + self.class_count + self.aux_features

    @property
    def required_features(self) -> int:
        return 4 + self.class_count


DecodeSchema = Union[SingleClass, MultiClass]


class SchemaPolicy(str, enum.Enum):
    # Log a warning and decode the rows the schema needs.
    WARN = "warn"
    # Raise SchemaMismatch.
    STRICT = "strict"


@dataclass(frozen=True)
class DecoderConfig:
    schema: DecodeSchema
    conf_threshold: float
    schema_policy: SchemaPolicy = SchemaPolicy.WARN

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold < 1.0:
            raise ValueError("conf_threshold must be within [0, 1)")
        if self.schema.aux_features < 0:
            raise ValueError("aux_features must be >= 0")


def sigmoid(x: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


class Decoder:
    """
    Turns a raw (F, N) feature-major prediction into detections in original image coordinates.

    Steps per candidate: read box rows 0-3 (cx, cy, w, h in letterbox space), compute the
    score from the schema, keep score > conf_threshold, convert to corners, undo the
    letterbox mapping and clamp to the image. Candidates with non-finite or negative
    geometry are dropped rather than clamped.
    """

    def __init__(self, cfg: DecoderConfig):
        self.cfg = cfg

    def check_schema(self, raw: RawPrediction) -> None:
        schema = self.cfg.schema
        num_features = raw.num_features
        if num_features == schema.expected_features:
            return

        msg = (
            f"Expected {schema.expected_features} features for {type(schema).__name__} "
            f"schema but got {num_features}."
        )
        if num_features < schema.required_features:
            raise SchemaMismatch(f"{msg} At least {schema.required_features} are needed to decode.")
        if self.cfg.schema_policy is SchemaPolicy.STRICT:
            raise SchemaMismatch(msg)
        logger.warning("%s Proceeding anyway.", msg)

    def _scores(self, features: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        schema = self.cfg.schema
        n = features.shape[1]
        if isinstance(schema, SingleClass):
            return features[4, :].astype(np.float64), np.zeros((n,), dtype=np.int64)

        class_scores = sigmoid(features[4 : 4 + schema.class_count, :].astype(np.float64))
        # argmax returns the first maximum, so ties go to the lowest class id.
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(n)]
        return scores, class_ids.astype(np.int64)

    def _select(self, raw: RawPrediction) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        self.check_schema(raw)
        features = raw.features
        if raw.num_candidates == 0:
            return np.empty((0, 4)), np.empty((0,)), np.empty((0,), dtype=np.int64)

        scores, class_ids = self._scores(features)
        keep = scores > self.cfg.conf_threshold
        boxes = features[0:4, keep].T.astype(np.float64)  # (K, 4) as cx, cy, w, h
        return boxes, scores[keep], class_ids[keep]

    def candidates(self, raw: RawPrediction) -> List[Candidate]:
        """
        Candidates above the confidence threshold, in candidate-index order.
        """

        boxes, scores, class_ids = self._select(raw)
        return [
            Candidate(cx=float(cx), cy=float(cy), w=float(w), h=float(h), score=float(score), class_id=int(cls_id))
            for (cx, cy, w, h), score, cls_id in zip(boxes, scores, class_ids)
        ]

    def decode(
        self,
        raw: RawPrediction,
        mapping: LetterboxResult,
        orig_size: Tuple[int, int],
    ) -> List[Detection]:
        """
        Arg:
            raw: engine output for one image
            mapping: the letterbox result the input tensor was built from
            orig_size: (width, height) of the original image
        """

        boxes, scores, class_ids = self._select(raw)
        if boxes.shape[0] == 0:
            return []

        valid = np.all(np.isfinite(boxes), axis=1) & (boxes[:, 2] >= 0) & (boxes[:, 3] >= 0)
        if not np.all(valid):
            logger.debug("Rejected %d candidates with invalid geometry", int(np.count_nonzero(~valid)))
            boxes, scores, class_ids = boxes[valid], scores[valid], class_ids[valid]

        xyxy = self._scale_boxes(self._to_corners(boxes), mapping, orig_size)
        return [
            Detection(
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                confidence=float(score),
                class_id=int(cls_id),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(xyxy, scores, class_ids)
        ]

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _to_corners(boxes: np.ndarray) -> np.ndarray:
        cx, cy, w_box, h_box = boxes.T
        return np.stack([cx - w_box / 2, cy - h_box / 2, cx + w_box / 2, cy + h_box / 2], axis=1)

    @staticmethod
    def _scale_boxes(boxes: np.ndarray, mapping: LetterboxResult, orig_size: Tuple[int, int]) -> np.ndarray:
        """
        Map corner boxes from letterbox space back to the original image and clamp them.
        """

        boxes = boxes.copy()
        boxes[:, [0, 2]] = (boxes[:, [0, 2]] - mapping.offset_x) / mapping.scale
        boxes[:, [1, 3]] = (boxes[:, [1, 3]] - mapping.offset_y) / mapping.scale

        orig_w, orig_h = orig_size
        boxes[:, [0, 2]] = np.clip(boxes[:, [0, 2]], 0, orig_w)
        boxes[:, [1, 3]] = np.clip(boxes[:, [1, 3]], 0, orig_h)
        return boxes
