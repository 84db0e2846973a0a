"""Pytest-benchmark suite for the per-frame processing stages."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from livedetect.yolo.core.postprocess import decode
from livedetect.yolo.core.preprocess import preprocess


if TYPE_CHECKING:
    from collections.abc import Callable


def _camera_frame() -> np.ndarray:
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(640, 640, 3), dtype=np.uint8)


def _model_output(num_classes: int = 7, candidates: int = 336) -> np.ndarray:
    rng = np.random.default_rng(1)
    out = rng.uniform(0, 128, size=(1, 4 + num_classes, candidates))
    out[0, 4:] = rng.uniform(0, 1, size=(num_classes, candidates))
    return out.astype(np.float32)


def test_preprocess_benchmark(
    benchmark: Callable[..., object],
) -> None:
    """Benchmark frame to input tensor conversion."""
    frame = _camera_frame()
    benchmark(preprocess, frame, 128)


def test_decode_benchmark(
    benchmark: Callable[..., object],
) -> None:
    """Benchmark decoding a full output grid."""
    output = _model_output()
    benchmark(decode, output, 0.5)
