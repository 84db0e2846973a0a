"""Tensor and detection value types shared by the pre/post-processing stages."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from livedetect.errors import MalformedOutputError


@dataclass(frozen=True, eq=False)
class Tensor:
    """Flat float32 buffer plus the shape it represents.

    The buffer is copied to a contiguous float32 array on construction and its
    length is checked against the product of ``shape``, so a ``Tensor`` that
    exists is always self-consistent.
    """

    data: np.ndarray
    shape: tuple[int, ...]

    def __post_init__(self) -> None:
        try:
            data = np.ascontiguousarray(self.data, dtype=np.float32).reshape(-1)
            shape = tuple(int(dim) for dim in self.shape)
        except (TypeError, ValueError) as exc:
            message = f"Tensor data is not numeric: {exc}"
            raise MalformedOutputError(message) from exc

        if any(dim < 0 for dim in shape):
            message = f"Tensor shape has negative dimensions: {shape}"
            raise MalformedOutputError(message)

        expected = int(np.prod(shape, dtype=np.int64))
        if data.size != expected:
            message = (
                f"Tensor data length {data.size} does not match shape {shape} "
                f"({expected} elements)"
            )
            raise MalformedOutputError(message)

        object.__setattr__(self, "data", data)
        object.__setattr__(self, "shape", shape)

    @classmethod
    def from_array(cls, array: object) -> Tensor:
        """Wrap an array-like (e.g. an ONNX Runtime output) as a tensor."""
        try:
            arr = np.asarray(array, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            message = f"Cannot convert output to a float32 tensor: {exc}"
            raise MalformedOutputError(message) from exc
        return cls(arr.reshape(-1), arr.shape)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    def as_array(self) -> np.ndarray:
        """Return a view of the buffer with ``shape`` applied."""
        return self.data.reshape(self.shape)


@dataclass(frozen=True)
class Detection:
    """One accepted candidate: winning class, clamped score and normalized box."""

    class_id: int
    score: float
    bbox: tuple[float, float, float, float]
    class_name: str = field(default="")

    def as_dict(self) -> dict[str, object]:
        return {
            "class_id": self.class_id,
            "class_name": self.class_name,
            "score": round(self.score, 4),
            "bbox": [round(value, 4) for value in self.bbox],
        }
