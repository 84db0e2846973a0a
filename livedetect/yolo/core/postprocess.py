"""Decode raw YOLO-style output into scored, normalized detections."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from livedetect.errors import MalformedOutputError
from livedetect.yolo.core.constants import CLASS_NAMES, DEFAULT_INPUT_SIZE
from livedetect.yolo.core.types import Detection, Tensor


if TYPE_CHECKING:
    from collections.abc import Sequence


BOX_ROWS = 4


def _coerce_tensor(output: Tensor | np.ndarray) -> Tensor:
    if isinstance(output, Tensor):
        return output
    return Tensor.from_array(output)


def _check_layout(tensor: Tensor) -> tuple[int, int]:
    """Return (num_outputs, num_detections) or raise for a bad layout."""
    if tensor.ndim != 3 or tensor.shape[0] != 1:
        message = (
            "Expected output shape [1, 4 + classes, candidates], "
            f"got {list(tensor.shape)}"
        )
        raise MalformedOutputError(message)
    _, num_outputs, num_detections = tensor.shape
    if num_outputs < BOX_ROWS + 1:
        message = f"Output has {num_outputs} rows, need at least {BOX_ROWS + 1}"
        raise MalformedOutputError(message)
    return num_outputs, num_detections


def _winning_classes(class_scores: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Single-label winner-take-all per candidate column.

    The running maximum starts at zero, so a candidate whose raw scores are all
    non-positive keeps class 0 with score 0. NaN never wins. The comparison runs
    on raw scores; clamping into [0, 1] happens after the winner is chosen.
    """
    scores = np.where(np.isnan(class_scores), np.float32(0.0), class_scores)
    best = np.argmax(scores, axis=0)
    best_scores = scores[best, np.arange(scores.shape[1])]
    class_ids = np.where(best_scores > 0, best, 0)
    max_scores = np.maximum(best_scores, np.float32(0.0))
    return class_ids, max_scores


def _xywh_to_normalized_xyxy(boxes: np.ndarray, target_size: int) -> np.ndarray:
    cx, cy, w, h = boxes
    size = np.float32(target_size)
    # Negative extents from a misbehaving model would flip the corners.
    half_w = np.abs(w) / np.float32(2.0)
    half_h = np.abs(h) / np.float32(2.0)
    corners = np.stack(
        [
            (cx - half_w) / size,
            (cy - half_h) / size,
            (cx + half_w) / size,
            (cy + half_h) / size,
        ],
        axis=1,
    )
    return np.clip(corners, np.float32(0.0), np.float32(1.0))


def decode(
    output: Tensor | np.ndarray,
    confidence_threshold: float = 0.5,
    class_names: Sequence[str] = CLASS_NAMES,
    target_size: int = DEFAULT_INPUT_SIZE,
    *,
    debug_boxes: bool = False,
) -> list[Detection]:
    """Turn one ``[1, 4 + classes, candidates]`` output into detections.

    Candidates are decoded independently and returned in the model's anchor
    order. A candidate is kept when its clamped winning score is strictly above
    ``confidence_threshold`` and its class index exists in ``class_names``.
    Overlapping candidates are not merged. Malformed output yields an empty
    list instead of raising.
    """
    try:
        tensor = _coerce_tensor(output)
        _, num_detections = _check_layout(tensor)
    except MalformedOutputError as exc:
        logger.warning("Discarding malformed model output: {}", exc)
        return []

    if num_detections == 0:
        return []

    grid = tensor.as_array()[0]
    boxes = grid[:BOX_ROWS]
    class_ids, raw_scores = _winning_classes(grid[BOX_ROWS:])

    scores = np.clip(raw_scores, np.float32(0.0), np.float32(1.0)).astype(np.float32)
    corners = _xywh_to_normalized_xyxy(boxes, target_size)

    keep = (
        (scores > np.float32(confidence_threshold))
        & (class_ids < len(class_names))
        & np.all(np.isfinite(boxes), axis=0)
    )

    if debug_boxes:
        logger.debug(
            "Decoded boxes (first 3): {}",
            corners[:3].round(3).tolist(),
        )
        logger.debug(
            "Decoded scores/classes (first 3): {}",
            list(
                zip(
                    scores[:3].round(3).tolist(),
                    class_ids[:3].tolist(),
                    strict=False,
                )
            ),
        )

    detections: list[Detection] = []
    for index in np.flatnonzero(keep):
        class_id = int(class_ids[index])
        x1, y1, x2, y2 = (float(value) for value in corners[index])
        detections.append(
            Detection(
                class_id=class_id,
                score=float(scores[index]),
                bbox=(x1, y1, x2, y2),
                class_name=class_names[class_id],
            )
        )
    return detections


def postprocess(
    outputs: Sequence[Tensor | np.ndarray],
    confidence_threshold: float = 0.5,
    class_names: Sequence[str] = CLASS_NAMES,
    target_size: int = DEFAULT_INPUT_SIZE,
    *,
    debug_output: bool = False,
    debug_boxes: bool = False,
) -> list[Detection]:
    """Decode the first output of a model run."""
    if outputs is None or len(outputs) == 0:
        return []

    if debug_output:
        logger.info(
            "Model outputs: {}",
            [getattr(out, "shape", np.shape(out)) for out in outputs],
        )

    return decode(
        outputs[0],
        confidence_threshold,
        class_names,
        target_size,
        debug_boxes=debug_boxes,
    )
