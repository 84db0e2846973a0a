"""Detection loop: schedules capture, preprocess, inference and decode cycles."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from livedetect.errors import AcquisitionError, ExecutionError, LoadError
from livedetect.pipeline.metrics.performance import PerformanceTracker
from livedetect.pipeline.state import DetectorPhase, DetectorSnapshot, DetectorState
from livedetect.yolo.core.postprocess import decode
from livedetect.yolo.core.preprocess import preprocess


if TYPE_CHECKING:
    from collections.abc import Callable

    from livedetect.pipeline.capture.core import FrameSource
    from livedetect.pipeline.types import DetectorConfig
    from livedetect.yolo.core.types import Detection, Tensor


class Session(Protocol):
    """A loaded model that can execute one input tensor at a time."""

    async def run(self, tensor: Tensor) -> Tensor:
        """Run inference; raise ExecutionError on failure."""
        ...

    def close(self) -> None:
        """Release backend resources."""
        ...


class InferenceEngine(Protocol):
    """Factory for sessions."""

    async def load(
        self,
        model_path: str,
        *,
        input_name: str | None = None,
        output_name: str | None = None,
    ) -> Session:
        """Load a model; raise LoadError on failure."""
        ...


class DetectorController:
    """Owns the detector state and drives the detection loop on an event loop.

    ``start`` launches a ticker task that fires every ``tick_period_s``. A tick
    dispatches a new cycle only when the previous one has finished, so at most
    one inference call is ever outstanding. ``stop`` cancels the ticker; a cycle
    already in flight is left to finish and its result is thrown away.
    """

    def __init__(
        self,
        config: DetectorConfig,
        engine: InferenceEngine,
        frame_source: FrameSource,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Create an idle controller; nothing is acquired until load/open."""
        self.config = config
        self._engine = engine
        self._frame_source = frame_source
        self._clock = clock
        self.state = DetectorState(confidence_threshold=config.confidence_threshold)
        self.perf = PerformanceTracker(fps_window_s=config.fps_window_s, clock=clock)
        self._ticker: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._generation = 0

    async def __aenter__(self) -> DetectorController:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def confidence_threshold(self) -> float:
        return self.state.confidence_threshold

    @confidence_threshold.setter
    def confidence_threshold(self, value: float) -> None:
        value = float(value)
        if not 0.0 <= value <= 1.0:
            message = f"Confidence threshold must be within [0, 1], got {value}"
            raise ValueError(message)
        self.state.confidence_threshold = value
        logger.debug("Confidence threshold set to {:.2f}", value)

    @property
    def phase(self) -> DetectorPhase:
        return self.state.phase

    def snapshot(self) -> DetectorSnapshot:
        """Return a consistent view of the latest results and status flags."""
        return self.state.snapshot()

    async def load(self) -> bool:
        """Load the model once; a failure leaves the controller in ERROR."""
        if self.state.phase in (DetectorPhase.LOADING, DetectorPhase.DETECTING):
            logger.warning("Cannot load model while {}", self.state.phase.value)
            return False

        self._release_session()
        self.state.phase = DetectorPhase.LOADING
        self.state.last_error = ""

        try:
            session = await self._engine.load(
                self.config.model_path,
                input_name=self.config.input_name,
                output_name=self.config.output_name,
            )
        except LoadError as exc:
            logger.error("Failed to load model: {}", exc)
            self.state.phase = DetectorPhase.ERROR
            self.state.last_error = (
                f"Failed to load model. Please ensure {self.config.model_path} exists "
                "and is a valid ONNX file."
            )
            return False

        self._check_input_size(session)
        self.state.session = session
        self.state.phase = DetectorPhase.READY
        return True

    def _check_input_size(self, session: Session) -> None:
        input_size = getattr(session, "input_size", None)
        if input_size is None:
            return
        size = self.config.target_size
        if tuple(input_size(size)) != (size, size):
            logger.warning(
                "Model declares input {} but frames are resized to {}x{}",
                input_size(size),
                size,
                size,
            )

    def open_camera(self) -> bool:
        """Acquire the frame source; failures do not touch the model state."""
        try:
            self._frame_source.open()
        except AcquisitionError as exc:
            logger.error("Failed to access camera: {}", exc)
            self.state.camera_ready = False
            self.state.last_error = "Failed to access camera"
            return False
        self.state.camera_ready = True
        return True

    def start(self) -> bool:
        """Enter DETECTING and start the ticker; must run inside the event loop."""
        if self.state.phase is DetectorPhase.DETECTING:
            return True
        if not self.state.model_loaded:
            self.state.last_error = "Model not loaded yet"
            logger.warning(self.state.last_error)
            return False
        if not self.state.camera_ready:
            self.state.last_error = "Camera not available"
            logger.warning(self.state.last_error)
            return False

        self._generation += 1
        self.state.phase = DetectorPhase.DETECTING
        self.state.last_error = ""
        self.state.frame_counter = 0
        self.state.clear_results()
        self.perf.reset()
        self._ticker = asyncio.create_task(
            self._tick_loop(self._generation),
            name="livedetect-ticker",
        )
        logger.info(
            "Detection started (period {:.0f} ms, threshold {:.2f})",
            self.config.tick_period_s * 1000,
            self.state.confidence_threshold,
        )
        return True

    def stop(self) -> None:
        """Cancel the ticker and clear published results."""
        was_detecting = self.state.phase is DetectorPhase.DETECTING
        self._cancel_ticker()
        if was_detecting:
            self.state.phase = DetectorPhase.READY
            logger.info("Detection stopped after {} frames", self.state.frame_counter)
        self.state.clear_results()
        self.perf.fps_counter.reset()

    def toggle(self) -> bool:
        """Start when stopped, stop when running; return the new detecting flag."""
        if self.state.is_detecting:
            self.stop()
            return False
        return self.start()

    async def step(self) -> tuple[Detection, ...]:
        """Run a single cycle outside the ticker and return what it published."""
        if self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})
        await self._run_cycle(self._generation)
        return self.state.detections

    async def aclose(self) -> None:
        """Stop the loop and release the session and the camera."""
        ticker = self._ticker
        self.stop()
        if ticker is not None:
            await asyncio.gather(ticker, return_exceptions=True)
        if self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})
        self._inflight = None
        self._release_session()
        self._frame_source.release()
        self.state.camera_ready = False
        if self.state.phase is not DetectorPhase.ERROR:
            self.state.phase = DetectorPhase.IDLE
        logger.debug("Detector resources released")

    def _cancel_ticker(self) -> None:
        # Bumping the generation marks any in-flight cycle as stale.
        self._generation += 1
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _release_session(self) -> None:
        session = self.state.session
        self.state.session = None
        if session is not None:
            session.close()

    async def _tick_loop(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        period = self.config.tick_period_s
        next_tick = loop.time()
        while True:
            self._dispatch(generation)
            next_tick += period
            delay = next_tick - loop.time()
            if delay < 0:
                # Fell behind; resume the cadence from now instead of bursting.
                next_tick = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)

    def _dispatch(self, generation: int) -> None:
        if self._inflight is not None and not self._inflight.done():
            self.perf.tick_skipped()
            return
        self._inflight = asyncio.create_task(
            self._run_cycle(generation),
            name="livedetect-cycle",
        )
        self._inflight.add_done_callback(self._on_cycle_done)

    @staticmethod
    def _on_cycle_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Detection cycle failed: {}", exc)

    async def _run_cycle(self, generation: int) -> None:
        session = self.state.session
        if session is None:
            return

        try:
            # Sources may block on the device; keep the loop responsive.
            frame = await asyncio.to_thread(self._frame_source.current_frame)
        except AcquisitionError as exc:
            if generation == self._generation:
                self._fail_camera(exc)
            return
        if frame is None or frame.size == 0:
            return

        tensor = preprocess(frame, self.config.target_size)

        inference_start = self._clock()
        try:
            output = await session.run(tensor)
        except ExecutionError as exc:
            logger.warning("Detection error: {}", exc)
            return
        inference_ms = (self._clock() - inference_start) * 1000

        detections = decode(
            output,
            self.state.confidence_threshold,
            self.config.class_names,
            self.config.target_size,
        )

        if generation != self._generation:
            logger.trace("Discarding result of a cycle dispatched before stop")
            return

        self.perf.add_inference_time(inference_ms)
        self.perf.tick_cycle()
        self.state.publish(tuple(detections), self.perf.fps_counter.fps)

    def _fail_camera(self, exc: AcquisitionError) -> None:
        logger.error("Camera failure during detection: {}", exc)
        self._cancel_ticker()
        self.state.phase = DetectorPhase.ERROR
        self._frame_source.release()
        self.state.camera_ready = False
        self.state.last_error = "Failed to access camera"
        self.state.clear_results()
        self.perf.fps_counter.reset()
