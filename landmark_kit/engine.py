"""
Inference engine handle with an explicit lifecycle.

The engine wraps a backend (ONNX Runtime, TorchScript, or any object with an
`infer(tensor) -> ndarray` method) created by a loader callable. It is built once
by the caller and passed into the pipeline; there is no module-level session.

    UNLOADED --load()--> LOADING --ok--> READY
    LOADING --error--> FAILED --load()--> LOADING ...
    READY / FAILED --dispose()--> UNLOADED
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Optional, Protocol

import numpy as np

from .errors import InferenceFailure

logger = logging.getLogger(__name__)


class Backend(Protocol):
    def infer(self, blob: np.ndarray) -> np.ndarray:
        ...


class EngineState(str, enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class InferenceEngine:
    def __init__(self, loader: Callable[[], Backend], *, name: Optional[str] = None):
        self._loader = loader
        self.name = name or getattr(loader, "__name__", "engine")
        self._backend: Optional[Backend] = None
        self._state = EngineState.UNLOADED
        self.error: Optional[BaseException] = None

    @classmethod
    def from_backend(cls, backend: Backend, *, name: Optional[str] = None) -> "InferenceEngine":
        """
        Wrap an already constructed backend; the returned engine is READY.
        """

        engine = cls(lambda: backend, name=name or type(backend).__name__)
        engine.load()
        return engine

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    @property
    def backend(self) -> Optional[Backend]:
        return self._backend

    def _set_state(self, state: EngineState) -> None:
        logger.info("Engine %s: %s -> %s", self.name, self._state.value, state.value)
        self._state = state

    def load(self) -> "InferenceEngine":
        if self._state is EngineState.READY:
            return self
        if self._state is EngineState.LOADING:
            raise InferenceFailure(f"Engine {self.name} is already loading")

        self._set_state(EngineState.LOADING)
        try:
            backend = self._loader()
        except Exception as e:
            self.error = e
            self._set_state(EngineState.FAILED)
            raise InferenceFailure(f"Failed to load engine {self.name}: {e}") from e

        self._backend = backend
        self.error = None
        self._set_state(EngineState.READY)
        return self

    def infer(self, blob: np.ndarray) -> np.ndarray:
        if self._state is not EngineState.READY or self._backend is None:
            raise InferenceFailure(f"Engine {self.name} is not ready (state={self._state.value})")
        try:
            return np.asarray(self._backend.infer(blob))
        except Exception as e:
            raise InferenceFailure(f"Inference failed on engine {self.name}: {e}") from e

    async def infer_async(self, blob: np.ndarray) -> np.ndarray:
        """
        Run `infer` in a worker thread so an event loop stays responsive.
        """

        return await asyncio.to_thread(self.infer, blob)

    def dispose(self) -> None:
        backend, self._backend = self._backend, None
        close = getattr(backend, "close", None)
        if callable(close):
            close()
        if self._state is not EngineState.UNLOADED:
            self._set_state(EngineState.UNLOADED)

    def __enter__(self) -> "InferenceEngine":
        return self.load()

    def __exit__(self, *exc) -> None:
        self.dispose()
