from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DetectorProfile
from .engine import InferenceEngine
from .letterbox import as_rgba, letterbox, limit_image_size
from .nms import suppress, suppress_per_class
from .postprocess import Decoder
from .tensor import pack_tensor
from .types import Detection, LetterboxResult, RawPrediction

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        if any((parent / m).exists() for m in markers):
            return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Absolute paths are returned as-is; relative ones resolve against `root`, or the
    project root when `root` is "auto"/None.
    """

    p = Path(path)
    if p.is_absolute():
        return p
    base = find_project_root() if root in ("auto", None) else Path(root).resolve()
    return (base / p).resolve()


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    letterbox: LetterboxResult


class DetectionPipeline:
    """
    letterbox -> pack -> inference -> decode -> suppress.

    Takes RGB or RGBA images as NumPy arrays and returns detections in the coordinates
    of the image that was passed in. Every call builds its own buffers, so one pipeline
    can serve any number of sequential callers. Drawing is left to `landmark_kit.visualize`.
    """

    def __init__(self, engine: InferenceEngine, profile: DetectorProfile):
        self.engine = engine
        self.profile = profile
        self.decoder = Decoder(profile.decoder_config())

    def preprocess(self, image) -> PreprocessResult:
        rgba = as_rgba(image)
        orig_h, orig_w = rgba.shape[:2]
        lb = letterbox(rgba, size=self.profile.input_size, color=self.profile.pad_color)
        blob = pack_tensor(lb.pixels, lb.size)
        return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h), letterbox=lb)

    def postprocess(self, output: np.ndarray, prep: PreprocessResult) -> List[Detection]:
        raw = RawPrediction.from_array(output)
        detections = self.decoder.decode(raw, prep.letterbox, prep.orig_size)

        nms_cfg = self.profile.nms_config()
        if self.profile.class_agnostic:
            kept = suppress(detections, nms_cfg.iou_threshold, nms_cfg.max_detections)
        else:
            kept = suppress_per_class(detections, nms_cfg.iou_threshold, nms_cfg.max_detections)

        logger.debug(
            "candidates=%d above_threshold=%d after_nms=%d",
            raw.num_candidates,
            len(detections),
            len(kept),
        )
        return kept

    def prepare_upload(self, image) -> np.ndarray:
        """
        Shrink an uploaded photo to the profile's `max_image_dimension` before detection.
        Detections of the returned image are in its (possibly reduced) coordinates.
        """

        if self.profile.max_image_dimension is None:
            return np.asarray(image)
        return limit_image_size(image, self.profile.max_image_dimension)

    def __call__(self, image) -> List[Detection]:
        prep = self.preprocess(image)
        output = self.engine.infer(prep.blob)
        return self.postprocess(output, prep)

    async def detect_async(self, image) -> List[Detection]:
        prep = self.preprocess(image)
        output = await self.engine.infer_async(prep.blob)
        return self.postprocess(output, prep)


def load_engine(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
) -> InferenceEngine:
    """
    Build and load an engine for a model on disk. The backend is inferred from the
    file extension unless given: .onnx -> onnxruntime, .torchscript/.ts/.pt -> torchscript.
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.")

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_cfg = OnnxRuntimeBackendConfig() if onnx_providers is None else OnnxRuntimeBackendConfig(providers=onnx_providers)
        engine = InferenceEngine(lambda: OnnxRuntimeBackend(resolved, ort_cfg), name=f"onnxruntime:{resolved.name}")
    elif chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_cfg = TorchScriptBackendConfig(device=torch_device)
        engine = InferenceEngine(lambda: TorchScriptBackend(resolved, ts_cfg), name=f"torchscript:{resolved.name}")
    else:
        raise ValueError(f"Unsupported backend: {backend!r}")

    return engine.load()


def load_pipeline(
    model_path: PathLike,
    profile: DetectorProfile,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
) -> DetectionPipeline:
    """
    Typical usage:
        pipe = load_pipeline("models/trio_finetuned_32.onnx", TRIO_PROFILE)
        detections = pipe(rgb_image)
    """

    engine = load_engine(
        model_path,
        backend=backend,
        root=root,
        onnx_providers=onnx_providers,
        torch_device=torch_device,
    )
    return DetectionPipeline(engine, profile)
