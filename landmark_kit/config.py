from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .metadata import DEFAULT_LABEL_FALLBACK, ClassLabels
from .nms import NMSConfig
from .postprocess import DecodeSchema, DecoderConfig, MultiClass, SchemaPolicy, SingleClass


@dataclass(frozen=True)
class DetectorProfile:
    """
    Everything the pipeline needs to know about one exported model.

    Thresholds, class count and result cap differ between model variants, so none of
    them has a hidden default; pick a built-in profile or load one from JSON.
    """

    schema: DecodeSchema
    conf_threshold: float
    iou_threshold: float
    max_detections: Optional[int] = None
    class_agnostic: bool = True
    schema_policy: SchemaPolicy = SchemaPolicy.WARN
    input_size: int = 640
    pad_color: Tuple[int, int, int] = (114, 114, 114)
    class_names: Mapping[int, str] = field(default_factory=dict)
    label_fallback: str = DEFAULT_LABEL_FALLBACK
    max_image_dimension: Optional[int] = 2000
    name: str = "custom"

    def __post_init__(self) -> None:
        if self.input_size < 32:
            raise ValueError("input_size must be >= 32")
        if len(self.pad_color) != 3 or any(not 0 <= c <= 255 for c in self.pad_color):
            raise ValueError("pad_color must be three values within [0, 255]")
        if self.max_image_dimension is not None and self.max_image_dimension < 1:
            raise ValueError("max_image_dimension must be >= 1 or None")
        # Validated by the component configs.
        self.decoder_config()
        self.nms_config()

    def decoder_config(self) -> DecoderConfig:
        return DecoderConfig(schema=self.schema, conf_threshold=self.conf_threshold, schema_policy=self.schema_policy)

    def nms_config(self) -> NMSConfig:
        return NMSConfig(iou_threshold=self.iou_threshold, max_detections=self.max_detections)

    def labels(self) -> ClassLabels:
        return ClassLabels(names=dict(self.class_names), fallback=self.label_fallback)

    def with_overrides(self, **changes: Any) -> "DetectorProfile":
        return replace(self, **changes)


# Single-class segmentation export: 4 box + 1 score + 32 mask coefficients.
SINGLE_CLASS_PROFILE = DetectorProfile(
    name="single_class",
    schema=SingleClass(aux_features=32),
    conf_threshold=0.2,
    iou_threshold=0.45,
    max_detections=None,
    schema_policy=SchemaPolicy.STRICT,
    class_names={0: "WTC"},
)

# Three-landmark segmentation export: 4 box + 3 class logits + 32 mask coefficients.
TRIO_PROFILE = DetectorProfile(
    name="trio",
    schema=MultiClass(class_count=3, aux_features=32),
    conf_threshold=0.6,
    iou_threshold=0.5,
    max_detections=1,
    schema_policy=SchemaPolicy.WARN,
    class_names={0: "Hudson Yards - The Edge", 1: "Empire State Building", 2: "WTC"},
)

BUILTIN_PROFILES: Dict[str, DetectorProfile] = {
    SINGLE_CLASS_PROFILE.name: SINGLE_CLASS_PROFILE,
    TRIO_PROFILE.name: TRIO_PROFILE,
}


def get_profile(name: str) -> DetectorProfile:
    try:
        return BUILTIN_PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown profile {name!r}; available: {sorted(BUILTIN_PROFILES)}") from None


def _require_number(payload: Dict[str, Any], key: str) -> float:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    value = payload.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer or null")
    return int(value)


def _parse_schema(value: Any) -> DecodeSchema:
    if not isinstance(value, dict):
        raise ValueError("schema must be an object")
    unknown = sorted(set(value) - {"kind", "class_count", "aux_features"})
    if unknown:
        raise ValueError(f"Unknown schema keys: {unknown}")

    aux = _optional_int(value, "aux_features", 0) or 0
    kind = value.get("kind")
    if kind == "single_class":
        if "class_count" in value:
            raise ValueError("single_class schema does not take class_count")
        return SingleClass(aux_features=aux)
    if kind == "multi_class":
        class_count = _optional_int(value, "class_count", None)
        if class_count is None:
            raise ValueError("multi_class schema requires class_count")
        return MultiClass(class_count=class_count, aux_features=aux)
    raise ValueError(f"schema.kind must be 'single_class' or 'multi_class', got {kind!r}")


def _parse_class_names(value: Any) -> Dict[int, str]:
    if isinstance(value, list):
        value = {str(i): name for i, name in enumerate(value)}
    if not isinstance(value, dict):
        raise ValueError("class_names must be a list or an object")
    names: Dict[int, str] = {}
    for key, name in value.items():
        if not str(key).isdigit():
            raise ValueError(f"class_names key {key!r} is not a class id")
        if not isinstance(name, str):
            raise ValueError(f"class_names[{key}] must be a string")
        names[int(key)] = name
    return names


def load_detector_profile(path: Path) -> DetectorProfile:
    """
    Load a detector profile from JSON:

        {
          "schema_version": 1,
          "schema": {"kind": "multi_class", "class_count": 3, "aux_features": 32},
          "conf_threshold": 0.6,
          "iou_threshold": 0.5,
          "max_detections": 1,
          "schema_policy": "warn",
          "class_names": ["Hudson Yards - The Edge", "Empire State Building", "WTC"]
        }
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detector profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector profile must be a JSON object")

    allowed = {
        "schema_version",
        "name",
        "schema",
        "conf_threshold",
        "iou_threshold",
        "max_detections",
        "class_agnostic",
        "schema_policy",
        "input_size",
        "pad_color",
        "class_names",
        "label_fallback",
        "max_image_dimension",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector profile keys: {unknown}")

    if payload.get("schema_version") != 1:
        raise ValueError("detector profile schema_version must be 1")
    if "schema" not in payload:
        raise ValueError("Missing required key: schema")

    policy = payload.get("schema_policy", SchemaPolicy.WARN.value)
    try:
        schema_policy = SchemaPolicy(policy)
    except ValueError:
        raise ValueError(f"schema_policy must be 'warn' or 'strict', got {policy!r}") from None

    class_agnostic = payload.get("class_agnostic", True)
    if not isinstance(class_agnostic, bool):
        raise ValueError("class_agnostic must be a boolean")

    pad_color = payload.get("pad_color", [114, 114, 114])
    if not isinstance(pad_color, list) or not all(isinstance(c, int) and not isinstance(c, bool) for c in pad_color):
        raise ValueError("pad_color must be a list of integers")

    label_fallback = payload.get("label_fallback", DEFAULT_LABEL_FALLBACK)
    if not isinstance(label_fallback, str):
        raise ValueError("label_fallback must be a string")

    name = payload.get("name", path.stem)
    if not isinstance(name, str):
        raise ValueError("name must be a string")

    input_size = _optional_int(payload, "input_size", 640)
    if input_size is None:
        raise ValueError("input_size must be an integer")

    return DetectorProfile(
        name=name,
        schema=_parse_schema(payload["schema"]),
        conf_threshold=_require_number(payload, "conf_threshold"),
        iou_threshold=_require_number(payload, "iou_threshold"),
        max_detections=_optional_int(payload, "max_detections", None),
        class_agnostic=class_agnostic,
        schema_policy=schema_policy,
        input_size=input_size,
        pad_color=tuple(pad_color),
        class_names=_parse_class_names(payload.get("class_names", {})),
        label_fallback=label_fallback,
        max_image_dimension=_optional_int(payload, "max_image_dimension", 2000),
    )
