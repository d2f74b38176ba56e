from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    - device: torch device string; "cpu" by default
    - output_index: if the model returns several outputs (boxes + mask protos), use this one
    """

    device: str = "cpu"
    output_index: int = 0


class TorchScriptBackend:
    """
    TorchScript detection model loaded with `torch.jit.load`; no model class code needed.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.output_index = cfg.output_index

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.as_tensor(np.asarray(blob, dtype=np.float32), device=self.device).contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, (tuple, list)):
            y = y[self.output_index]
        return y.detach().to("cpu").float().numpy()

    def close(self) -> None:
        self.model = None
