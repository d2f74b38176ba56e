from __future__ import annotations

import math
import time
from typing import Optional, Sequence

import numpy as np

from .metadata import ClassLabels
from .types import Detection

BOX_COLOR = (255, 0, 0)
TEXT_COLOR = (255, 255, 255)
AR_COLOR = (0, 255, 0)


def _cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for drawing. Install with `pip install opencv-python`.") from e
    return cv2


def _check_image(image: np.ndarray) -> None:
    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array (RGB or RGBA).")
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"Expected image shape (H, W, 3) or (H, W, 4), got {getattr(image, 'shape', None)}")


def _color_planes(image: np.ndarray) -> np.ndarray:
    # Drawing touches RGB only; anti-aliased strokes would otherwise write into alpha.
    return np.ascontiguousarray(image[:, :, :3])


def format_label(det: Detection, labels: Optional[ClassLabels] = None) -> str:
    """
    "<class name> <confidence in percent, one decimal>%", e.g. "WTC 87.3%".
    """

    labels = labels if labels is not None else ClassLabels()
    return f"{labels.name(det.class_id)} {det.confidence * 100:.1f}%"


def draw_detections(
    image: np.ndarray,
    detections: Sequence[Detection],
    *,
    labels: Optional[ClassLabels] = None,
    box_thickness: int = 3,
    font_scale: float = 0.6,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw box outlines and label plates on an RGB/RGBA image and return a copy.

    Args:
        image: (H, W, 3|4) uint8 image in the detections' coordinate space.
        detections: output of the pipeline.
        labels: class lookup; unmapped ids use its fallback name.
    """

    cv2 = _cv2()
    _check_image(image)

    result = image.copy()
    out = _color_planes(result)
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))

        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), BOX_COLOR, thickness=box_thickness)

        label = format_label(det, labels)
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Plate above the box if it fits, else inside.
        y_text_top = y1i - th - baseline - 4
        if y_text_top < 0:
            y_text_top = y1i

        x_text_right = min(x1i + tw + 8, w - 1)
        y_text_bottom = min(y_text_top + th + baseline + 4, h - 1)

        cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), BOX_COLOR, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i + 4, min(y_text_top + th + 2, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            TEXT_COLOR,
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    result[:, :, :3] = out
    return result


def pulse_at(t: Optional[float] = None) -> float:
    """
    Pulse phase in [0, 1] for the AR marker, two radians per second.
    """

    t = time.time() if t is None else t
    return math.sin(t * 2) * 0.5 + 0.5


def _blend(out: np.ndarray, overlay: np.ndarray, alpha: float) -> None:
    cv2 = _cv2()
    cv2.addWeighted(overlay, alpha, out, 1.0 - alpha, 0, dst=out)


def draw_ar_overlay(
    image: np.ndarray,
    detections: Sequence[Detection],
    *,
    labels: Optional[ClassLabels] = None,
    pulse: Optional[float] = None,
    bracket_size: int = 30,
) -> np.ndarray:
    """
    Draw the AR annotation for the first (most confident) detection and return a copy.

    The marker is a pulsing translucent disc with a crosshair at the box center, an info
    panel above the box with the class name and confidence, and corner brackets. Pass
    `pulse` in [0, 1] for a deterministic frame; by default it follows the wall clock.
    """

    cv2 = _cv2()
    _check_image(image)

    result = image.copy()
    if not detections:
        return result

    out = _color_planes(result)
    green = AR_COLOR
    det = detections[0]
    labels = labels if labels is not None else ClassLabels()
    phase = pulse_at() if pulse is None else min(1.0, max(0.0, pulse))

    x1, y1, x2, y2 = (int(round(v)) for v in det.as_xyxy())
    cx, cy = (int(round(v)) for v in det.center)

    # Pulsing disc
    overlay = out.copy()
    radius = int(round(30 + phase * 20))
    cv2.circle(overlay, (cx, cy), radius, green, thickness=-1, lineType=cv2.LINE_AA)
    _blend(out, overlay, 0.3 + phase * 0.3)

    # Crosshair
    cv2.line(out, (cx - 40, cy), (cx + 40, cy), green, thickness=3)
    cv2.line(out, (cx, cy - 40), (cx, cy + 40), green, thickness=3)

    # Info panel above the box
    info_w, info_h = 300, 60
    info_x, info_y = cx - info_w // 2, y1 - 80
    overlay = out.copy()
    cv2.rectangle(overlay, (info_x, info_y), (info_x + info_w, info_y + info_h), (0, 0, 0), -1)
    _blend(out, overlay, 0.8)
    cv2.rectangle(out, (info_x, info_y), (info_x + info_w, info_y + info_h), green, thickness=2)

    for text, scale, thickness, baseline_y in (
        (labels.name(det.class_id), 0.8, 2, info_y + 28),
        (f"Confidence: {det.confidence * 100:.1f}%", 0.55, 1, info_y + 48),
    ):
        (tw, _), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, thickness)
        cv2.putText(
            out,
            text,
            (cx - tw // 2, baseline_y),
            cv2.FONT_HERSHEY_SIMPLEX,
            scale,
            green,
            thickness=thickness,
            lineType=cv2.LINE_AA,
        )

    # Corner brackets
    b = bracket_size
    for corner, horizontal, vertical in (
        ((x1, y1), (x1 + b, y1), (x1, y1 + b)),
        ((x2, y1), (x2 - b, y1), (x2, y1 + b)),
        ((x1, y2), (x1 + b, y2), (x1, y2 - b)),
        ((x2, y2), (x2 - b, y2), (x2, y2 - b)),
    ):
        cv2.line(out, horizontal, corner, green, thickness=4)
        cv2.line(out, corner, vertical, green, thickness=4)

    result[:, :, :3] = out
    return result
