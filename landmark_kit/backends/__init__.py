"""
Optional inference backends for landmark_kit.

Backends live in a separate package so the pre/post-processing core can be used
without installing an inference runtime. Each backend exposes `infer(blob)` and
`close()` and is normally wrapped in `landmark_kit.engine.InferenceEngine`.
"""

from __future__ import annotations

__all__ = []
