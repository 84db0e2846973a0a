"""LiveDetect: real-time ONNX detection on a live camera feed."""

from livedetect.errors import (
    AcquisitionError,
    DetectorError,
    ExecutionError,
    LoadError,
    MalformedOutputError,
)
from livedetect.pipeline import (
    DetectorConfig,
    DetectorController,
    DetectorPhase,
    DetectorSnapshot,
)
from livedetect.yolo.core import Detection, Tensor, decode, preprocess


__all__ = [
    "AcquisitionError",
    "Detection",
    "DetectorConfig",
    "DetectorController",
    "DetectorError",
    "DetectorPhase",
    "DetectorSnapshot",
    "ExecutionError",
    "LoadError",
    "MalformedOutputError",
    "Tensor",
    "decode",
    "preprocess",
]
