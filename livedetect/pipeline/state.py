"""Detector lifecycle state and the snapshot published to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from livedetect.yolo.core.types import Detection


class DetectorPhase(Enum):
    """Lifecycle phases of a detector controller."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DETECTING = "detecting"
    ERROR = "error"


@dataclass(frozen=True)
class DetectorSnapshot:
    """Immutable view of the detector handed to whatever renders it."""

    detections: tuple[Detection, ...] = ()
    fps: float = 0.0
    is_loading: bool = False
    is_detecting: bool = False
    error: str = ""
    confidence_threshold: float = 0.5
    phase: DetectorPhase = DetectorPhase.IDLE


@dataclass
class DetectorState:
    """Mutable state owned by one ``DetectorController``."""

    session: object | None = None
    phase: DetectorPhase = DetectorPhase.IDLE
    last_error: str = ""
    frame_counter: int = 0
    fps: float = 0.0
    detections: tuple[Detection, ...] = ()
    confidence_threshold: float = 0.5
    camera_ready: bool = False

    @property
    def is_loading(self) -> bool:
        return self.phase is DetectorPhase.LOADING

    @property
    def is_detecting(self) -> bool:
        return self.phase is DetectorPhase.DETECTING

    @property
    def model_loaded(self) -> bool:
        return self.session is not None and self.phase in (
            DetectorPhase.READY,
            DetectorPhase.DETECTING,
        )

    def publish(self, detections: tuple[Detection, ...], fps: float) -> None:
        """Replace the published results with those of a completed cycle."""
        self.detections = detections
        self.fps = fps
        self.frame_counter += 1

    def clear_results(self) -> None:
        self.detections = ()
        self.fps = 0.0

    def snapshot(self) -> DetectorSnapshot:
        return DetectorSnapshot(
            detections=self.detections,
            fps=self.fps,
            is_loading=self.is_loading,
            is_detecting=self.is_detecting,
            error=self.last_error,
            confidence_threshold=self.confidence_threshold,
            phase=self.phase,
        )
