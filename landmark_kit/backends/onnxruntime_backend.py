from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers, CPU only by default
    - input_name/output_name: override the first model input/output
    - intra_op_threads: 0 lets ORT decide
    """

    providers: Optional[Sequence[str]] = ("CPUExecutionProvider",)
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    intra_op_threads: int = 0


class OnnxRuntimeBackend:
    """
    ONNX Runtime session for a detection model.

    Expects a (1, 3, S, S) float32 blob and returns the primary output, (1, F, N) for
    the supported detection exports.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime`."
            ) from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        if cfg.intra_op_threads > 0:
            sess_opts.intra_op_num_threads = cfg.intra_op_threads
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name

    def infer(self, blob: np.ndarray) -> np.ndarray:
        outputs = self.session.run([self.output_name], {self.input_name: np.asarray(blob, dtype=np.float32)})
        return outputs[0]

    def close(self) -> None:
        self.session = None
