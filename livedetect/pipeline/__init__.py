"""Detection pipeline: capture, scheduling, state and metrics."""

from __future__ import annotations

from livedetect.pipeline.capture import CameraCapture, FrameSource, OpenCVCapture
from livedetect.pipeline.logging import (
    attach_log_buffer,
    configure_logging,
    create_log_buffer,
)
from livedetect.pipeline.loop import DetectorController, InferenceEngine, Session
from livedetect.pipeline.metrics.performance import FpsCounter, PerformanceTracker
from livedetect.pipeline.state import DetectorPhase, DetectorSnapshot, DetectorState
from livedetect.pipeline.types import CameraConfig, DetectorConfig, PerformanceMetrics


__all__ = [
    "CameraCapture",
    "CameraConfig",
    "DetectorConfig",
    "DetectorController",
    "DetectorPhase",
    "DetectorSnapshot",
    "DetectorState",
    "FpsCounter",
    "FrameSource",
    "InferenceEngine",
    "OpenCVCapture",
    "PerformanceMetrics",
    "PerformanceTracker",
    "Session",
    "attach_log_buffer",
    "configure_logging",
    "create_log_buffer",
]
