import importlib.util
import tempfile
import unittest
from pathlib import Path

import numpy as np

from landmark_kit.engine import EngineState
from landmark_kit.errors import InferenceFailure
from landmark_kit.runtime import load_engine

HAS_TORCH = importlib.util.find_spec("torch") is not None
HAS_ORT = importlib.util.find_spec("onnxruntime") is not None

if HAS_TORCH:
    import torch

    from landmark_kit.backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

    class BoxesAndProtos(torch.nn.Module):
        def forward(self, x):
            return x * 2.0, x.sum(dim=1)


@unittest.skipUnless(HAS_TORCH, "torch not installed")
class TestTorchScriptBackend(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.model_path = Path(tmpdir.name) / "tiny.torchscript"
        traced = torch.jit.trace(BoxesAndProtos().eval(), torch.zeros(1, 3, 4, 4))
        traced.save(str(self.model_path))
        self.blob = np.arange(48, dtype=np.float32).reshape(1, 3, 4, 4) / 48.0

    def test_infer_picks_output(self) -> None:
        backend = TorchScriptBackend(self.model_path)
        out = backend.infer(self.blob)
        self.assertIsInstance(out, np.ndarray)
        self.assertEqual(out.dtype, np.float32)
        self.assertTrue(np.allclose(out, self.blob * 2.0))

        second = TorchScriptBackend(self.model_path, TorchScriptBackendConfig(output_index=1)).infer(self.blob)
        self.assertEqual(second.shape, (1, 4, 4))
        self.assertTrue(np.allclose(second, self.blob.sum(axis=1), atol=1e-6))

    def test_close_releases_model(self) -> None:
        backend = TorchScriptBackend(self.model_path)
        backend.close()
        self.assertIsNone(backend.model)

    def test_missing_model(self) -> None:
        with self.assertRaises(FileNotFoundError):
            TorchScriptBackend(self.model_path.with_name("missing.torchscript"))

    def test_load_engine_by_extension(self) -> None:
        engine = load_engine(self.model_path, root=None)
        self.assertIs(engine.state, EngineState.READY)
        self.assertTrue(engine.name.startswith("torchscript:"))
        self.assertTrue(np.allclose(engine.infer(self.blob), self.blob * 2.0))
        engine.dispose()
        self.assertIs(engine.state, EngineState.UNLOADED)


@unittest.skipUnless(HAS_ORT, "onnxruntime not installed")
class TestOnnxRuntimeBackend(unittest.TestCase):
    def test_missing_model_fails_engine(self) -> None:
        with self.assertRaises(InferenceFailure) as ctx:
            load_engine("/nonexistent/model.onnx", root=None)
        self.assertIsInstance(ctx.exception.__cause__, FileNotFoundError)


class TestLoadEngine(unittest.TestCase):
    def test_unknown_extension(self) -> None:
        with self.assertRaises(ValueError):
            load_engine("/tmp/model.bin", root=None)


if __name__ == "__main__":
    unittest.main()
