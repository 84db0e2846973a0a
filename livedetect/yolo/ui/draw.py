"""OpenCV overlay for detector snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2
import numpy as np

from livedetect.yolo.core.constants import class_color


if TYPE_CHECKING:
    from collections.abc import Iterable

    from livedetect.pipeline.state import DetectorSnapshot
    from livedetect.yolo.core.types import Detection


FONT = cv2.FONT_HERSHEY_SIMPLEX


def to_pixel_box(
    bbox: tuple[float, float, float, float], width: int, height: int
) -> tuple[int, int, int, int]:
    """Scale a normalized (x1, y1, x2, y2) box to pixel coordinates."""
    x1, y1, x2, y2 = bbox
    return (
        int(np.clip(round(x1 * width), 0, width - 1)),
        int(np.clip(round(y1 * height), 0, height - 1)),
        int(np.clip(round(x2 * width), 0, width - 1)),
        int(np.clip(round(y2 * height), 0, height - 1)),
    )


def format_label(detection: Detection) -> str:
    name = detection.class_name or f"Class {detection.class_id}"
    return f"{name} {detection.score:.1%}"


def draw_boxes(frame: np.ndarray, detections: Iterable[Detection]) -> np.ndarray:
    """Draw one box and label per detection onto a BGR frame in place."""
    h, w = frame.shape[:2]
    for det in detections:
        x1, y1, x2, y2 = to_pixel_box(det.bbox, w, h)
        if x2 <= x1 or y2 <= y1:
            continue

        color = class_color(det.class_id)
        label = format_label(det)
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 3)

        (tw, th), _ = cv2.getTextSize(label, FONT, 0.5, 1)
        top = max(0, y1 - th - 10)
        cv2.rectangle(frame, (x1, top), (x1 + tw + 8, top + th + 10), color, -1)
        cv2.putText(frame, label, (x1 + 4, top + th + 4), FONT, 0.5, (255, 255, 255), 1)
    return frame


def _draw_badge(frame: np.ndarray, text: str, *, right: bool, row: int) -> None:
    (tw, th), _ = cv2.getTextSize(text, FONT, 0.6, 2)
    w = frame.shape[1]
    x0 = w - tw - 26 if right else 10
    y0 = 10 + row * (th + 22)
    cv2.rectangle(frame, (x0, y0), (x0 + tw + 16, y0 + th + 14), (0, 0, 0), -1)
    cv2.putText(frame, text, (x0 + 8, y0 + th + 7), FONT, 0.6, (255, 255, 255), 2)


def draw_detection_list(
    frame: np.ndarray, detections: Iterable[Detection], max_items: int = 5
) -> None:
    """List the strongest detections under the status badges, in class colors."""
    ranked = sorted(detections, key=lambda det: det.score, reverse=True)[:max_items]
    (_, th), _ = cv2.getTextSize("Ag", FONT, 0.6, 2)
    y = 10 + 2 * (th + 22) + th + 6
    for det in ranked:
        cv2.putText(
            frame, format_label(det), (12, y), FONT, 0.55, class_color(det.class_id), 2
        )
        y += th + 10


def draw_detections(frame: np.ndarray, snapshot: DetectorSnapshot) -> np.ndarray:
    """Render boxes, the fps badge and status lines for one snapshot."""
    if snapshot.is_detecting:
        draw_boxes(frame, snapshot.detections)
        _draw_badge(frame, f"{snapshot.fps:.0f} FPS", right=True, row=0)

    if snapshot.is_loading:
        status = "Loading model..."
    elif snapshot.is_detecting:
        status = f"Detected objects ({len(snapshot.detections)})"
    else:
        status = "Press SPACE to start detection"
    _draw_badge(frame, status, right=False, row=0)
    _draw_badge(
        frame,
        f"Confidence threshold: {snapshot.confidence_threshold:.0%}",
        right=False,
        row=1,
    )
    if snapshot.is_detecting:
        draw_detection_list(frame, snapshot.detections)

    if snapshot.error:
        h = frame.shape[0]
        cv2.putText(frame, snapshot.error, (10, h - 15), FONT, 0.55, (38, 38, 220), 2)
    return frame


def draw_log_lines(frame: np.ndarray, lines: Iterable[str], max_lines: int = 4) -> None:
    """Print the most recent log lines along the bottom edge of the frame."""
    recent = list(lines)[-max_lines:]
    h = frame.shape[0]
    y = h - 40 - 18 * (len(recent) - 1)
    for line in recent:
        cv2.putText(frame, line[:96], (10, y), FONT, 0.4, (200, 200, 200), 1, cv2.LINE_AA)
        y += 18
