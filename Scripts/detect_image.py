import argparse
import logging
from pathlib import Path

import cv2

from landmark_kit import (
    ClassLabels,
    draw_ar_overlay,
    draw_detections,
    format_label,
    get_profile,
    load_class_names,
    load_detector_profile,
    load_pipeline,
)
from landmark_kit.log import setup_logging

logger = logging.getLogger("detect_image")


def _resolve_profile(args: argparse.Namespace):
    value = args.profile
    profile = load_detector_profile(Path(value)) if value.endswith(".json") else get_profile(value)

    overrides = {}
    if args.conf is not None:
        overrides["conf_threshold"] = args.conf
    if args.iou is not None:
        overrides["iou_threshold"] = args.iou
    if args.max_det is not None:
        overrides["max_detections"] = args.max_det if args.max_det > 0 else None
    if args.metadata:
        overrides["class_names"] = load_class_names(args.metadata)
    return profile.with_overrides(**overrides) if overrides else profile


def _render(frame_rgb, detections, labels: ClassLabels, ar: bool):
    vis = draw_detections(frame_rgb, detections, labels=labels)
    if ar:
        vis = draw_ar_overlay(vis, detections, labels=labels)
    return cv2.cvtColor(vis, cv2.COLOR_RGB2BGR)


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect landmarks in an image or webcam stream and draw the AR overlay.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    parser.add_argument("--model", default="Models/trio_finetuned_32.onnx", help="Path to the model (.onnx/.torchscript).")
    parser.add_argument("--profile", default="trio", help="Built-in profile name (single_class/trio) or a profile .json.")
    parser.add_argument("--metadata", default=None, help="Optional metadata.yaml with a names: mapping.")
    parser.add_argument("--conf", type=float, default=None, help="Override the confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="Override the NMS IoU threshold.")
    parser.add_argument("--max-det", type=int, default=None, help="Override the result cap (0 = unbounded).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--no-ar", action="store_true", help="Only draw boxes and labels.")
    parser.add_argument("--show", action="store_true", help="Show a window with the visualization.")
    parser.add_argument("--out", default=None, help="Optional output image path.")
    parser.add_argument("--every", type=int, default=1, help="Run detection on every Nth webcam frame.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N processed frames (0 = no limit).")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    args = parser.parse_args()

    setup_logging(args.log_level)
    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    profile = _resolve_profile(args)
    labels = profile.labels()
    pipeline = load_pipeline(args.model, profile, backend=args.backend)

    if args.webcam is None:
        image_path = args.image or "Media/example.jpg"
        img = cv2.imread(image_path)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {image_path}")

        rgb = pipeline.prepare_upload(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
        detections = pipeline(rgb)
        vis = _render(rgb, detections, labels, ar=not args.no_ar)
        if args.out:
            if not cv2.imwrite(args.out, vis):
                raise RuntimeError(f"Failed to write output image: {args.out}")
        if args.show:
            cv2.imshow("detections", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()

        for det in detections:
            print(format_label(det, labels), det.as_xyxy())
        return 0

    cap = cv2.VideoCapture(int(args.webcam))
    if not cap.isOpened():
        raise RuntimeError(f"Could not open webcam index: {args.webcam}")

    frame_idx = 0
    processed = 0
    detections = []
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

            frame_idx += 1
            # Frames in between reuse the last result.
            if (frame_idx - 1) % args.every == 0:
                detections = pipeline(rgb)
                processed += 1
                logger.debug("frame=%d detections=%d", frame_idx, len(detections))

            if args.show:
                cv2.imshow("detections", _render(rgb, detections, labels, ar=not args.no_ar))
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    break

            if args.max_frames and processed >= args.max_frames:
                break
    finally:
        cap.release()
        pipeline.engine.dispose()
        if args.show:
            cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
