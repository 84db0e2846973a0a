"""Static class table and overlay palette for the facial expression model."""

from __future__ import annotations

import colorsys


CLASS_NAMES: tuple[str, ...] = (
    "angry",
    "fear",
    "disgust",
    "happy",
    "sad",
    "neutral",
    "surprise",
)

DEFAULT_INPUT_SIZE = 128

DEFAULT_PROVIDERS: tuple[str, ...] = ("CUDAExecutionProvider", "CPUExecutionProvider")


def class_color(class_id: int) -> tuple[int, int, int]:
    """Return a BGR color for a class using a golden-angle hue rotation."""
    hue = (class_id * 137.5) % 360
    red, green, blue = colorsys.hls_to_rgb(hue / 360.0, 0.5, 0.7)
    return (round(blue * 255), round(green * 255), round(red * 255))


COLORS: tuple[tuple[int, int, int], ...] = tuple(
    class_color(i) for i in range(len(CLASS_NAMES))
)
