"""Main entry point for the live detector."""

from __future__ import annotations

import asyncio
import platform
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import cv2
import numpy as np
import onnxruntime as ort
import psutil
from loguru import logger

from livedetect.errors import AcquisitionError
from livedetect.inference.session import OnnxInferenceEngine
from livedetect.pipeline.capture import CameraCapture
from livedetect.pipeline.logging import (
    attach_log_buffer,
    configure_logging,
    create_log_buffer,
)
from livedetect.pipeline.loop import DetectorController
from livedetect.pipeline.types import DEFAULT_PROVIDERS, CameraConfig, DetectorConfig
from livedetect.yolo.cli import load_class_names, parse_args
from livedetect.yolo.ui.draw import draw_detections, draw_log_lines


if TYPE_CHECKING:
    import argparse
    from collections import deque


WINDOW_NAME = "LiveDetect"
THRESHOLD_STEP = 0.05
KEY_QUIT = {ord("q"), 27}
KEY_TOGGLE = ord(" ")
KEY_UP = {ord("+"), ord("=")}
KEY_DOWN = {ord("-"), ord("_")}
KEY_RELOAD = ord("r")


class MonitorInitError(RuntimeError):
    """Raised when monitor initialization fails."""


@dataclass
class MonitorContext:
    """Static context for running the monitor."""

    args: argparse.Namespace
    config: DetectorConfig
    camera: CameraCapture
    controller: DetectorController
    log_buffer: deque[str]
    process: psutil.Process = field(default_factory=psutil.Process)


@dataclass
class RuntimeState:
    """Timestamps for periodic logging."""

    last_log_time: float = field(default_factory=time.perf_counter)
    last_debug_log_time: float = field(default_factory=time.perf_counter)
    last_resource_log_time: float = field(default_factory=time.perf_counter)


def _build_config(args: argparse.Namespace) -> DetectorConfig:
    try:
        class_names = load_class_names(args.labels)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read class labels: {}", exc)
        message = "Invalid class label file"
        raise MonitorInitError(message) from exc

    try:
        return DetectorConfig(
            model_path=args.model,
            target_size=args.size,
            class_names=class_names,
            confidence_threshold=args.conf,
            tick_period_s=args.period_ms / 1000.0,
            providers=tuple(args.providers or DEFAULT_PROVIDERS),
        )
    except ValueError as exc:
        logger.error("Invalid detector configuration: {}", exc)
        message = "Invalid detector configuration"
        raise MonitorInitError(message) from exc


def _build_context(args: argparse.Namespace, log_buffer: deque[str]) -> MonitorContext:
    logger.info("=" * 60)
    logger.info("LiveDetect: real-time ONNX detection")
    logger.info("=" * 60)

    logger.info("Platform: {} {}", platform.system(), platform.release())
    logger.info("Python: {}", platform.python_version())
    logger.info("OpenCV: {}", cv2.__version__)
    logger.info("ONNX Runtime: {}", ort.__version__)

    config = _build_config(args)
    logger.info(
        "Input size: {0}x{0} | Classes: {1} | Threshold: {2:.2f}",
        config.target_size,
        len(config.class_names),
        config.confidence_threshold,
    )

    camera = CameraCapture(
        CameraConfig(
            device_index=args.camera,
            width=args.width,
            height=args.height,
            fps=args.fps,
        )
    )
    controller = DetectorController(
        config,
        OnnxInferenceEngine(providers=config.providers),
        camera,
    )
    return MonitorContext(
        args=args,
        config=config,
        camera=camera,
        controller=controller,
        log_buffer=log_buffer,
    )


def _process_stats(process: psutil.Process) -> dict[str, float]:
    try:
        return {
            "cpu_percent": process.cpu_percent(interval=None),
            "memory_mb": process.memory_info().rss / (1024 * 1024),
        }
    except psutil.Error as exc:
        logger.debug("Unable to read process stats: {}", exc)
        return {"cpu_percent": 0.0, "memory_mb": 0.0}


def _log_periodic_metrics(ctx: MonitorContext, state: RuntimeState) -> None:
    current_time = time.perf_counter()
    snapshot = ctx.controller.snapshot()

    if snapshot.is_detecting and current_time - state.last_log_time >= 2.0:
        metrics = ctx.controller.perf.get_metrics()
        logger.info(
            "FPS: {:.1f} | Inference: {:.1f}ms | Detections: {} | Skipped ticks: {}",
            metrics.fps,
            metrics.inference_ms,
            len(snapshot.detections),
            metrics.skipped_ticks,
        )
        state.last_log_time = current_time

    if ctx.args.debug_detections and current_time - state.last_debug_log_time >= 3.0:
        sample = [det.as_dict() for det in snapshot.detections[:3]]
        logger.info("Sample detections: {}", sample)
        state.last_debug_log_time = current_time

    if current_time - state.last_resource_log_time >= 5.0:
        proc_stats = _process_stats(ctx.process)
        logger.info(
            "Process: CPU {:.1f}% | {:.0f}MB RAM",
            proc_stats["cpu_percent"],
            proc_stats["memory_mb"],
        )
        state.last_resource_log_time = current_time


def _adjust_threshold(controller: DetectorController, delta: float) -> None:
    value = float(np.clip(controller.confidence_threshold + delta, 0.0, 1.0))
    controller.confidence_threshold = round(value, 2)
    logger.info("Confidence threshold: {:.0%}", controller.confidence_threshold)


async def _handle_key(ctx: MonitorContext, key: int) -> bool:
    """Apply one key press; return False when the user asked to quit."""
    controller = ctx.controller
    if key in KEY_QUIT:
        logger.info("Quit requested by user")
        return False
    if key == KEY_TOGGLE:
        controller.toggle()
    elif key in KEY_UP:
        _adjust_threshold(controller, THRESHOLD_STEP)
    elif key in KEY_DOWN:
        _adjust_threshold(controller, -THRESHOLD_STEP)
    elif key == KEY_RELOAD and not controller.snapshot().is_detecting:
        await controller.load()
    return True


async def _display_loop(ctx: MonitorContext, state: RuntimeState) -> None:
    frame_period = 1.0 / max(1, ctx.args.fps)
    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    last_frame: np.ndarray | None = None
    while True:
        if ctx.camera.is_opened():
            try:
                frame = ctx.camera.current_frame()
            except AcquisitionError as exc:
                logger.error("Camera stopped delivering frames: {}", exc)
                return
            if frame is not None:
                last_frame = frame

        if last_frame is not None:
            canvas = cv2.cvtColor(last_frame, cv2.COLOR_RGB2BGR)
            draw_detections(canvas, ctx.controller.snapshot())
            if ctx.args.show_log:
                draw_log_lines(canvas, ctx.log_buffer)
            cv2.imshow(WINDOW_NAME, canvas)

        _log_periodic_metrics(ctx, state)

        key = cv2.waitKey(1) & 0xFF
        if key != 0xFF and not await _handle_key(ctx, key):
            return
        await asyncio.sleep(frame_period)


async def _headless_loop(ctx: MonitorContext, state: RuntimeState) -> None:
    if not ctx.controller.start():
        message = ctx.controller.snapshot().error or "Detection could not start"
        raise MonitorInitError(message)

    deadline = None
    if ctx.args.duration is not None:
        deadline = time.perf_counter() + ctx.args.duration
    while ctx.controller.snapshot().is_detecting:
        _log_periodic_metrics(ctx, state)
        if deadline is not None and time.perf_counter() >= deadline:
            logger.info("Run duration reached")
            return
        await asyncio.sleep(0.25)

    error = ctx.controller.snapshot().error
    if error:
        raise MonitorInitError(error)


def _log_summary(ctx: MonitorContext) -> None:
    final_metrics = ctx.controller.perf.get_metrics()
    logger.info("=" * 60)
    logger.info("Session Summary")
    logger.info("Camera: {}", ctx.camera.get_info().get("source", ""))
    logger.info("Total frames: {}", ctx.controller.perf.frame_count)
    logger.info("Avg throughput: {:.1f} FPS", final_metrics.actual_throughput_fps)
    logger.info("Avg inference: {:.1f}ms", final_metrics.inference_ms)
    logger.info("Skipped ticks: {}", final_metrics.skipped_ticks)


async def _run(ctx: MonitorContext) -> int:
    state = RuntimeState()
    controller = ctx.controller
    try:
        loaded = await controller.load()
        camera_ok = controller.open_camera()
        if not camera_ok:
            message = "Failed to open camera"
            raise MonitorInitError(message)
        if ctx.args.no_display:
            if not loaded:
                message = "Failed to load model"
                raise MonitorInitError(message)
            await _headless_loop(ctx, state)
        else:
            logger.info("SPACE start/stop | +/- threshold | r reload model | q quit")
            await _display_loop(ctx, state)
    except MonitorInitError as exc:
        logger.error("{}", exc)
        return 1
    finally:
        _log_summary(ctx)
        await controller.aclose()
        if not ctx.args.no_display:
            cv2.destroyAllWindows()
        logger.success("Cleanup complete. Goodbye!")
    return 0


def run_detector(argv: list[str] | None = None) -> int:
    """Entry point for running the live detector."""
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_dir, json_logs=args.json_logs)
    log_buffer = create_log_buffer(max_lines=200)
    attach_log_buffer(log_buffer, level="INFO")
    try:
        ctx = _build_context(args, log_buffer)
    except MonitorInitError:
        return 1

    try:
        return asyncio.run(_run(ctx))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


def main() -> None:
    raise SystemExit(run_detector())


if __name__ == "__main__":
    main()
