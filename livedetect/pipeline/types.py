"""Shared configuration and metric containers for the detection pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field

from livedetect.yolo.core.constants import (
    CLASS_NAMES,
    DEFAULT_INPUT_SIZE,
    DEFAULT_PROVIDERS,
)


@dataclass
class CameraConfig:
    """Camera configuration settings."""

    device_index: int | str = 0
    width: int = 640
    height: int = 640
    fps: int = 30


@dataclass
class DetectorConfig:
    """Static detector configuration; fixed for the lifetime of a controller."""

    model_path: str = "best.onnx"
    target_size: int = DEFAULT_INPUT_SIZE
    class_names: tuple[str, ...] = CLASS_NAMES
    confidence_threshold: float = 0.5
    tick_period_s: float = 0.033
    fps_window_s: float = 1.0
    providers: tuple[str, ...] = field(default=DEFAULT_PROVIDERS)
    input_name: str | None = None
    output_name: str | None = None

    def __post_init__(self) -> None:
        self.class_names = tuple(self.class_names)
        self.providers = tuple(self.providers)
        if self.target_size <= 0:
            message = f"target_size must be positive, got {self.target_size}"
            raise ValueError(message)
        if not 0.0 <= self.confidence_threshold <= 1.0:
            message = (
                "confidence_threshold must be within [0, 1], "
                f"got {self.confidence_threshold}"
            )
            raise ValueError(message)
        if self.tick_period_s <= 0:
            message = f"tick_period_s must be positive, got {self.tick_period_s}"
            raise ValueError(message)
        if self.fps_window_s <= 0:
            message = f"fps_window_s must be positive, got {self.fps_window_s}"
            raise ValueError(message)


@dataclass
class PerformanceMetrics:
    """Container for performance metrics."""

    fps: float = 0.0
    inference_ms: float = 0.0
    inference_capacity_fps: float = 0.0
    actual_throughput_fps: float = 0.0
    skipped_ticks: int = 0
