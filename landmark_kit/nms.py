from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .types import Detection


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    # None keeps every non-overlapping box.
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 or None")


def iou(a: Detection, b: Detection) -> float:
    """
    Intersection over union of two boxes. Zero union (two degenerate boxes) gives 0.
    """

    inter_w = max(0.0, min(a.x2, b.x2) - max(a.x1, b.x1))
    inter_h = max(0.0, min(a.y2, b.y2) - max(a.y1, b.y1))
    inter = inter_w * inter_h
    union = a.area + b.area - inter
    if union <= 0:
        return 0.0
    return inter / union


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig = NMSConfig()) -> np.ndarray:
    """
    Greedy class-agnostic NMS. Expects boxes shape (N, 4) in xyxy and scores shape (N,).

    Boxes are visited by descending score (ties keep input order); a box is dropped when
    its IoU with any kept box exceeds `cfg.iou_threshold`. Returns indices of kept boxes
    in descending score order.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []
    limit = cfg.max_detections

    while order.size > 0 and (limit is None or len(keep) < limit):
        i = order[0]
        keep.append(int(i))
        rest = order[1:]

        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        inter = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
        union = areas[i] + areas[rest] - inter
        with np.errstate(divide="ignore", invalid="ignore"):
            overlap = np.where(union > 0, inter / union, 0.0)

        order = rest[overlap <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float = 0.45,
    max_detections: Optional[int] = None,
) -> List[Detection]:
    """
    Remove near-duplicate detections, geometry only (class ids are ignored).

    Output is sorted by descending confidence. Partition by class first, or use
    `suppress_per_class`, when per-class suppression is wanted.
    """

    if not detections:
        return []
    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float64)
    scores = np.array([d.confidence for d in detections], dtype=np.float64)
    keep = nms(boxes, scores, NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections))
    return [detections[i] for i in keep]


def suppress_per_class(
    detections: Sequence[Detection],
    iou_threshold: float = 0.45,
    max_detections: Optional[int] = None,
) -> List[Detection]:
    """
    Run `suppress` independently for each class id, then merge by descending confidence.
    """

    by_class: Dict[int, List[Detection]] = {}
    for det in detections:
        by_class.setdefault(det.class_id, []).append(det)

    kept: List[Detection] = []
    for cls_dets in by_class.values():
        kept.extend(suppress(cls_dets, iou_threshold, max_detections))

    kept.sort(key=lambda d: d.confidence, reverse=True)
    if max_detections is not None:
        kept = kept[:max_detections]
    return kept
