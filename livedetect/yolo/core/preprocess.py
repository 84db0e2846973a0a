"""Frame to model-input conversion."""

from __future__ import annotations

import cv2
import numpy as np

from livedetect.yolo.core.constants import DEFAULT_INPUT_SIZE
from livedetect.yolo.core.types import Tensor


def infer_input_size(
    input_shape: list[object] | None, default: int = DEFAULT_INPUT_SIZE
) -> tuple[int, int]:
    """Infer (height, width) from an ONNX input shape."""

    if not input_shape or len(input_shape) < 4:
        return (default, default)

    height = input_shape[-2]
    width = input_shape[-1]

    if isinstance(height, int) and isinstance(width, int):
        return (height, width)

    return (default, default)


def _as_rgb(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
    if frame.ndim == 3 and frame.shape[2] == 1:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
    if frame.ndim == 3 and frame.shape[2] >= 3:
        # Alpha (and anything past it) is dropped.
        return frame[:, :, :3]
    message = f"Unsupported frame shape: {frame.shape}"
    raise ValueError(message)


def preprocess(frame: np.ndarray, target_size: int = DEFAULT_INPUT_SIZE) -> Tensor:
    """Resize an RGB(A) frame to a square and lay it out as a 1x3xSxS tensor.

    The frame is stretched to ``target_size`` on both axes (no letterboxing),
    scaled from 8-bit to [0, 1] and re-laid from pixel-interleaved to
    channel-planar order: all red samples, then green, then blue.
    """

    frame = np.asarray(frame)
    if frame.size == 0 or frame.shape[0] == 0 or frame.shape[1] == 0:
        message = f"Cannot preprocess an empty frame (shape {frame.shape})"
        raise ValueError(message)
    if target_size <= 0:
        message = f"target_size must be positive, got {target_size}"
        raise ValueError(message)

    rgb = _as_rgb(frame)
    if rgb.dtype != np.uint8:
        rgb = np.clip(rgb, 0, 255).astype(np.uint8)

    resized = cv2.resize(
        np.ascontiguousarray(rgb),
        (target_size, target_size),
        interpolation=cv2.INTER_AREA,
    )

    blob = resized.astype(np.float32) / np.float32(255.0)
    blob = blob.transpose(2, 0, 1)[np.newaxis, ...]

    return Tensor(blob.reshape(-1), blob.shape)
