"""Camera capture backends for the detection pipeline."""

from __future__ import annotations

from livedetect.pipeline.capture.core import CameraCapture, FrameSource
from livedetect.pipeline.capture.opencv import OpenCVCapture


__all__ = [
    "CameraCapture",
    "FrameSource",
    "OpenCVCapture",
]
