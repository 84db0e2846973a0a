"""UI overlays for the live detector."""

from __future__ import annotations

from livedetect.yolo.ui.draw import (
    draw_boxes,
    draw_detection_list,
    draw_detections,
    draw_log_lines,
    format_label,
    to_pixel_box,
)


__all__ = [
    "draw_boxes",
    "draw_detection_list",
    "draw_detections",
    "draw_log_lines",
    "format_label",
    "to_pixel_box",
]
