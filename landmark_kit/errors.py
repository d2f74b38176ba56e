"""
Exceptions raised by the detection pipeline.
"""


class DetectorError(Exception):
    """Base exception for all landmark_kit errors."""

    pass


class InvalidImageDimensions(DetectorError, ValueError):
    """Raised when an image has zero or negative width/height at letterbox time."""

    pass


class InvalidBufferSize(DetectorError, ValueError):
    """Raised when a pixel buffer does not hold S*S RGBA pixels."""

    pass


class SchemaMismatch(DetectorError, ValueError):
    """Raised when the raw prediction layout cannot be decoded with the configured schema."""

    pass


class InferenceFailure(DetectorError, RuntimeError):
    """Raised when the inference engine is not ready or the backend call fails."""

    pass
