"""
Landmark detection pipeline around an exported YOLO-style segmentation model.

Pre-processing (letterbox + tensor packing) and post-processing (decode + NMS)
are plain NumPy; OpenCV is only needed for resizing and drawing, and the
inference runtimes (ONNX Runtime, TorchScript) live in `landmark_kit.backends`.
"""

from .config import BUILTIN_PROFILES, SINGLE_CLASS_PROFILE, TRIO_PROFILE, DetectorProfile, get_profile, load_detector_profile
from .engine import EngineState, InferenceEngine
from .errors import DetectorError, InferenceFailure, InvalidBufferSize, InvalidImageDimensions, SchemaMismatch
from .letterbox import as_rgba, letterbox, letterbox_params, limit_image_size
from .metadata import ClassLabels, load_class_names
from .nms import NMSConfig, iou, nms, suppress, suppress_per_class
from .postprocess import Decoder, DecoderConfig, MultiClass, SchemaPolicy, SingleClass
from .runtime import DetectionPipeline, load_engine, load_pipeline, resolve_path
from .tensor import pack_tensor
from .types import Candidate, Detection, LetterboxResult, RawPrediction
from .visualize import draw_ar_overlay, draw_detections, format_label

__all__ = [
    "BUILTIN_PROFILES",
    "SINGLE_CLASS_PROFILE",
    "TRIO_PROFILE",
    "DetectorProfile",
    "get_profile",
    "load_detector_profile",
    "EngineState",
    "InferenceEngine",
    "DetectorError",
    "InferenceFailure",
    "InvalidBufferSize",
    "InvalidImageDimensions",
    "SchemaMismatch",
    "as_rgba",
    "letterbox",
    "letterbox_params",
    "limit_image_size",
    "ClassLabels",
    "load_class_names",
    "NMSConfig",
    "iou",
    "nms",
    "suppress",
    "suppress_per_class",
    "Decoder",
    "DecoderConfig",
    "MultiClass",
    "SchemaPolicy",
    "SingleClass",
    "DetectionPipeline",
    "load_engine",
    "load_pipeline",
    "resolve_path",
    "pack_tensor",
    "Candidate",
    "Detection",
    "LetterboxResult",
    "RawPrediction",
    "draw_ar_overlay",
    "draw_detections",
    "format_label",
]
