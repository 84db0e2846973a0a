"""YOLO-style model helpers and the live monitor entry point."""

from __future__ import annotations

import importlib

from livedetect.yolo.cli import load_class_names, parse_args
from livedetect.yolo.core.constants import CLASS_NAMES, COLORS, class_color
from livedetect.yolo.core.postprocess import decode, postprocess
from livedetect.yolo.core.preprocess import infer_input_size, preprocess
from livedetect.yolo.core.types import Detection, Tensor
from livedetect.yolo.ui.draw import draw_boxes, draw_detections


def run_detector(*args: object, **kwargs: object) -> int:
    """Run the live detector entry point via lazy import."""
    module = importlib.import_module("livedetect.yolo.monitor")
    return module.run_detector(*args, **kwargs)


__all__ = [
    "CLASS_NAMES",
    "COLORS",
    "Detection",
    "Tensor",
    "class_color",
    "decode",
    "draw_boxes",
    "draw_detections",
    "infer_input_size",
    "load_class_names",
    "parse_args",
    "postprocess",
    "preprocess",
    "run_detector",
]
