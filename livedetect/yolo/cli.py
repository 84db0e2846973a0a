from __future__ import annotations

import argparse
from pathlib import Path

from livedetect.yolo.core.constants import (
    CLASS_NAMES,
    DEFAULT_INPUT_SIZE,
    DEFAULT_PROVIDERS,
)


def load_class_names(path: str | None) -> tuple[str, ...]:
    """Read one class name per line; blank lines and ``#`` comments are skipped."""
    if path is None:
        return CLASS_NAMES
    names = [
        line.strip()
        for line in Path(path).read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]
    if not names:
        message = f"No class names found in {path}"
        raise ValueError(message)
    return tuple(names)


def _camera_source(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def _threshold(value: str) -> float:
    threshold = float(value)
    if not 0.0 <= threshold <= 1.0:
        message = f"confidence threshold must be within [0, 1], got {value}"
        raise argparse.ArgumentTypeError(message)
    return threshold


def parse_args(argv: list | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Real-time ONNX detection on a live camera feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  livedetect-monitor --model best.onnx
  livedetect-monitor --camera 1 --conf 0.6 --period-ms 50
  livedetect-monitor --camera clip.mp4 --no-display --duration 10
		""",
    )

    parser.add_argument(
        "--camera",
        type=_camera_source,
        default=0,
        help="Camera index, video file or stream URL",
    )
    parser.add_argument("--width", type=int, default=640)
    parser.add_argument("--height", type=int, default=640)
    parser.add_argument("--fps", type=int, default=30)
    parser.add_argument("--model", type=str, default="best.onnx")
    parser.add_argument(
        "--labels",
        type=str,
        default=None,
        help="Text file with one class name per line (default: expression classes)",
    )
    parser.add_argument("--size", type=int, default=DEFAULT_INPUT_SIZE)
    parser.add_argument("--conf", type=_threshold, default=0.5)
    parser.add_argument(
        "--period-ms",
        type=float,
        default=33.0,
        help="Target interval between detection ticks",
    )
    parser.add_argument(
        "--provider",
        action="append",
        dest="providers",
        default=None,
        help=f"ONNX Runtime execution provider, repeatable (default: {DEFAULT_PROVIDERS})",
    )
    parser.add_argument("--no-display", action="store_true")
    parser.add_argument(
        "--show-log",
        action="store_true",
        help="Overlay the most recent log lines on the video window",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (headless runs)",
    )
    parser.add_argument(
        "--debug-detections",
        action="store_true",
        help="Log sample decoded detections every few seconds",
    )
    parser.add_argument("--log-dir", type=str, default="logs")
    parser.add_argument("--json-logs", action="store_true")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )

    return parser.parse_args(argv)
