"""Core YOLO utilities (constants, preprocess, postprocess)."""

from __future__ import annotations

from livedetect.yolo.core.constants import CLASS_NAMES, COLORS, DEFAULT_INPUT_SIZE
from livedetect.yolo.core.postprocess import decode, postprocess
from livedetect.yolo.core.preprocess import infer_input_size, preprocess
from livedetect.yolo.core.types import Detection, Tensor


__all__ = [
    "CLASS_NAMES",
    "COLORS",
    "DEFAULT_INPUT_SIZE",
    "Detection",
    "Tensor",
    "decode",
    "infer_input_size",
    "postprocess",
    "preprocess",
]
