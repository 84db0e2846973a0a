"""Integration tests for the detection loop with fake backends."""

from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace
from typing import TYPE_CHECKING

import numpy as np
import pytest
from loguru import logger

from livedetect.errors import AcquisitionError, ExecutionError, LoadError
from livedetect.pipeline.loop import DetectorController
from livedetect.pipeline.state import DetectorPhase
from livedetect.pipeline.types import DetectorConfig
from livedetect.yolo import monitor
from livedetect.yolo.core.types import Tensor


if TYPE_CHECKING:
    from collections.abc import Iterator


def model_output() -> np.ndarray:
    """Two candidates: 'happy' at 0.8 and 'fear' at 0.96."""
    out = np.zeros((1, 11, 2), dtype=np.float32)
    out[0, :4, 0] = (32, 32, 16, 16)
    out[0, 4 + 3, 0] = 0.8
    out[0, :4, 1] = (96, 96, 16, 16)
    out[0, 4 + 1, 1] = 0.96
    return out


class FakeSession:
    def __init__(self, delay: float = 0.0, fail_every: int = 0) -> None:
        self.delay = delay
        self.fail_every = fail_every
        self.gate: asyncio.Event | None = None
        self.calls = 0
        self.completed = 0
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def run(self, tensor: Tensor) -> Tensor:
        assert tensor.shape == (1, 3, 128, 128)
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_every and self.calls % self.fail_every == 0:
                message = "backend hiccup"
                raise ExecutionError(message)
            return Tensor.from_array(model_output())
        finally:
            self.active -= 1
            self.completed += 1

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    def __init__(self, session: FakeSession | None = None, fail: bool = False) -> None:
        self.session = session or FakeSession()
        self.fail = fail
        self.gate: asyncio.Event | None = None
        self.loads = 0

    async def load(self, model_path, *, input_name=None, output_name=None):
        self.loads += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            message = f"cannot read {model_path}"
            raise LoadError(message)
        return self.session


class FakeSource:
    def __init__(self, open_fails: bool = False, fail_after: int | None = None) -> None:
        self.open_fails = open_fails
        self.fail_after = fail_after
        self.frames = 0
        self.opened = False
        self.released = False

    def open(self) -> None:
        if self.open_fails:
            message = "no device"
            raise AcquisitionError(message)
        self.opened = True

    def current_frame(self) -> np.ndarray | None:
        if self.fail_after is not None and self.frames >= self.fail_after:
            message = "device unplugged"
            raise AcquisitionError(message)
        self.frames += 1
        return np.full((48, 64, 3), 90, dtype=np.uint8)

    def release(self) -> None:
        self.released = True
        self.opened = False

    def is_opened(self) -> bool:
        return self.opened

    def get_info(self) -> dict:
        return {"backend": "fake", "source": "fake"}


class SlowSource(FakeSource):
    """Frame source whose reads block the calling thread like a camera read."""

    def current_frame(self) -> np.ndarray | None:
        time.sleep(0.05)
        return super().current_frame()


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            message = "condition not reached in time"
            raise AssertionError(message)
        await asyncio.sleep(0.005)


def make_controller(
    engine: FakeEngine | None = None,
    source: FakeSource | None = None,
    **config,
) -> DetectorController:
    config.setdefault("tick_period_s", 0.01)
    return DetectorController(
        DetectorConfig(model_path="models/expressions.onnx", **config),
        engine or FakeEngine(),
        source or FakeSource(),
    )


async def ready_controller(**kwargs) -> DetectorController:
    controller = make_controller(**kwargs)
    assert await controller.load()
    assert controller.open_camera()
    return controller


class TestLifecycle:
    """Loading, camera acquisition and start preconditions."""

    def test_load_success(self) -> None:
        async def scenario() -> None:
            controller = make_controller()

            assert await controller.load()

            snapshot = controller.snapshot()
            assert controller.phase is DetectorPhase.READY
            assert not snapshot.is_loading
            assert snapshot.error == ""

        asyncio.run(scenario())

    def test_load_failure_reports_model_path(self) -> None:
        async def scenario() -> None:
            controller = make_controller(engine=FakeEngine(fail=True))
            controller.open_camera()

            assert not await controller.load()

            snapshot = controller.snapshot()
            assert snapshot.phase is DetectorPhase.ERROR
            assert "models/expressions.onnx" in snapshot.error
            assert not controller.start()

        asyncio.run(scenario())

    def test_is_loading_while_model_loads(self) -> None:
        async def scenario() -> None:
            engine = FakeEngine()
            engine.gate = asyncio.Event()
            controller = make_controller(engine=engine)

            task = asyncio.create_task(controller.load())
            await wait_for(lambda: engine.loads == 1)

            assert controller.snapshot().is_loading
            assert not await controller.load()
            engine.gate.set()
            assert await task
            assert not controller.snapshot().is_loading

        asyncio.run(scenario())

    def test_start_before_load(self) -> None:
        async def scenario() -> None:
            controller = make_controller()
            controller.open_camera()

            assert not controller.start()
            assert controller.snapshot().error == "Model not loaded yet"
            assert not controller.snapshot().is_detecting

        asyncio.run(scenario())

    def test_camera_failure_blocks_start_but_keeps_model(self) -> None:
        async def scenario() -> None:
            controller = make_controller(source=FakeSource(open_fails=True))
            await controller.load()

            assert not controller.open_camera()
            assert controller.snapshot().error == "Failed to access camera"
            assert controller.phase is DetectorPhase.READY
            assert not controller.start()
            assert controller.snapshot().error == "Camera not available"

        asyncio.run(scenario())

    def test_aclose_releases_resources(self) -> None:
        async def scenario() -> tuple[FakeEngine, FakeSource, DetectorController]:
            engine = FakeEngine()
            source = FakeSource()
            async with await ready_controller(engine=engine, source=source) as controller:
                controller.start()
                await wait_for(lambda: controller.state.frame_counter >= 2)
            return engine, source, controller

        engine, source, controller = asyncio.run(scenario())

        assert engine.session.closed
        assert source.released
        assert controller.phase is DetectorPhase.IDLE
        assert not controller.snapshot().detections


class TestDetection:
    """Publishing results from detection cycles."""

    def test_step_publishes_detections(self) -> None:
        async def scenario() -> None:
            controller = await ready_controller()

            detections = await controller.step()

            assert [det.class_name for det in detections] == ["happy", "fear"]
            assert controller.snapshot().detections == detections
            assert controller.state.frame_counter == 1
            await controller.aclose()

        asyncio.run(scenario())

    def test_threshold_change_applies_to_next_cycle(self) -> None:
        async def scenario() -> None:
            controller = await ready_controller()

            low = await controller.step()
            controller.confidence_threshold = 0.9
            high = await controller.step()

            assert len(high) <= len(low)
            assert [det.class_name for det in high] == ["fear"]
            await controller.aclose()

        asyncio.run(scenario())

    @pytest.mark.parametrize("value", [-0.1, 1.01])
    def test_threshold_setter_rejects_out_of_range(self, value: float) -> None:
        controller = make_controller()

        with pytest.raises(ValueError):
            controller.confidence_threshold = value
        assert controller.confidence_threshold == 0.5

    def test_loop_publishes_until_stopped(self) -> None:
        async def scenario() -> None:
            controller = await ready_controller()

            assert controller.toggle()
            await wait_for(lambda: controller.state.frame_counter >= 3)
            assert controller.snapshot().is_detecting
            assert controller.snapshot().detections

            assert not controller.toggle()
            snapshot = controller.snapshot()
            assert snapshot.phase is DetectorPhase.READY
            assert snapshot.detections == ()
            assert snapshot.fps == 0.0
            await controller.aclose()

        asyncio.run(scenario())

    def test_at_most_one_cycle_in_flight(self) -> None:
        async def scenario() -> tuple[FakeSession, int]:
            session = FakeSession(delay=0.05)
            controller = await ready_controller(
                engine=FakeEngine(session), tick_period_s=0.005
            )

            controller.start()
            await asyncio.sleep(0.3)
            skipped = controller.perf.skipped_ticks
            await controller.aclose()
            return session, skipped

        session, skipped = asyncio.run(scenario())

        assert session.max_active == 1
        assert session.calls >= 2
        assert skipped > 0

    def test_stop_discards_cycle_in_flight(self) -> None:
        async def scenario() -> None:
            session = FakeSession()
            session.gate = asyncio.Event()
            controller = await ready_controller(engine=FakeEngine(session))

            controller.start()
            await wait_for(lambda: session.active == 1)
            controller.stop()
            session.gate.set()
            await wait_for(lambda: session.completed == 1)
            await asyncio.sleep(0)

            assert controller.state.frame_counter == 0
            assert controller.snapshot().detections == ()
            await controller.aclose()

        asyncio.run(scenario())

    def test_execution_errors_do_not_stop_the_loop(self) -> None:
        async def scenario() -> None:
            session = FakeSession(fail_every=2)
            controller = await ready_controller(engine=FakeEngine(session))

            controller.start()
            await wait_for(lambda: session.calls >= 6)

            assert controller.snapshot().is_detecting
            assert controller.state.frame_counter >= 2
            await controller.aclose()

        asyncio.run(scenario())

    def test_failed_step_publishes_nothing(self) -> None:
        async def scenario() -> None:
            session = FakeSession(fail_every=1)
            controller = await ready_controller(engine=FakeEngine(session))

            assert await controller.step() == ()
            assert controller.state.frame_counter == 0
            await controller.aclose()

        asyncio.run(scenario())

    def test_camera_failure_during_detection(self) -> None:
        async def scenario() -> None:
            source = FakeSource(fail_after=3)
            controller = await ready_controller(source=source)

            controller.start()
            await wait_for(lambda: controller.phase is DetectorPhase.ERROR)

            snapshot = controller.snapshot()
            assert snapshot.error == "Failed to access camera"
            assert not snapshot.is_detecting
            assert snapshot.detections == ()
            assert source.released

            assert await controller.load()
            assert controller.phase is DetectorPhase.READY
            assert not controller.start()

            source.fail_after = None
            assert controller.open_camera()
            assert controller.start()
            await controller.aclose()

        asyncio.run(scenario())


    def test_blocking_frame_source_does_not_stall_the_loop(self) -> None:
        async def scenario() -> tuple[float, int]:
            controller = await ready_controller(source=SlowSource())
            loop = asyncio.get_running_loop()

            controller.start()
            worst = 0.0
            end = loop.time() + 0.3
            while loop.time() < end:
                before = loop.time()
                await asyncio.sleep(0.001)
                worst = max(worst, loop.time() - before)
            frames = controller.state.frame_counter
            await controller.aclose()
            return worst, frames

        worst, frames = asyncio.run(scenario())

        assert worst < 0.03
        assert frames > 0


class TestFrameRate:
    """Published FPS follows the fixed one-second window."""

    def test_fps_from_completed_cycles(self) -> None:
        async def scenario() -> None:
            clock = FakeClock()
            controller = DetectorController(
                DetectorConfig(),
                FakeEngine(),
                FakeSource(),
                clock=clock,
            )
            await controller.load()
            controller.open_camera()

            for _ in range(4):
                clock.now += 0.25
                await controller.step()

            assert controller.snapshot().fps == pytest.approx(4.0)
            await controller.aclose()

        asyncio.run(scenario())

    def test_fps_is_only_published_by_completed_cycles(self) -> None:
        async def scenario() -> None:
            clock = FakeClock()
            session = FakeSession()
            session.gate = asyncio.Event()
            controller = DetectorController(
                DetectorConfig(tick_period_s=0.01),
                FakeEngine(session),
                FakeSource(),
                clock=clock,
            )
            await controller.load()
            controller.open_camera()

            controller.start()
            await wait_for(lambda: session.active == 1)
            clock.now = 1.0
            session.gate.set()
            await wait_for(lambda: controller.state.frame_counter >= 1)
            session.gate.clear()
            await asyncio.sleep(0.05)
            published = controller.snapshot().fps

            # Inference stalls while the clock moves past several windows.
            clock.now = 10.0
            await asyncio.sleep(0.1)

            assert published > 0
            assert controller.snapshot().fps == published
            session.gate.set()
            await controller.aclose()

        asyncio.run(scenario())


class TestMonitor:
    """The command line runner wired to fake backends."""

    @pytest.fixture
    def fakes(self, monkeypatch: pytest.MonkeyPatch) -> Iterator[SimpleNamespace]:
        fakes = SimpleNamespace(engine=FakeEngine(), source=FakeSource())
        monkeypatch.setattr(monitor, "OnnxInferenceEngine", lambda **_: fakes.engine)
        monkeypatch.setattr(monitor, "CameraCapture", lambda _config: fakes.source)
        yield fakes
        logger.remove()

    def test_headless_run(self, fakes: SimpleNamespace, tmp_path) -> None:
        code = monitor.run_detector(
            [
                "--no-display",
                "--duration",
                "0.3",
                "--period-ms",
                "10",
                "--log-dir",
                str(tmp_path),
            ]
        )

        assert code == 0
        assert fakes.engine.session.calls > 0
        assert fakes.engine.session.closed
        assert fakes.source.released

    def test_headless_run_without_model(self, fakes: SimpleNamespace, tmp_path) -> None:
        fakes.engine.fail = True

        code = monitor.run_detector(["--no-display", "--log-dir", str(tmp_path)])

        assert code == 1
        assert fakes.source.released

    def test_bad_labels_file(self, fakes: SimpleNamespace, tmp_path) -> None:
        labels = tmp_path / "labels.txt"
        labels.write_text("\n", encoding="utf-8")

        code = monitor.run_detector(
            ["--no-display", "--labels", str(labels), "--log-dir", str(tmp_path)]
        )

        assert code == 1
        assert fakes.engine.loads == 0

    def test_key_bindings(self, fakes: SimpleNamespace, tmp_path) -> None:
        args = monitor.parse_args(["--log-dir", str(tmp_path)])
        ctx = monitor._build_context(args, monitor.create_log_buffer())

        async def scenario() -> None:
            controller = ctx.controller
            await controller.load()
            controller.open_camera()

            assert await monitor._handle_key(ctx, ord(" "))
            assert controller.snapshot().is_detecting
            assert await monitor._handle_key(ctx, ord("+"))
            assert controller.confidence_threshold == pytest.approx(0.55)
            assert await monitor._handle_key(ctx, ord("-"))
            assert await monitor._handle_key(ctx, ord("-"))
            assert controller.confidence_threshold == pytest.approx(0.45)
            assert await monitor._handle_key(ctx, ord(" "))
            assert not controller.snapshot().is_detecting
            assert await monitor._handle_key(ctx, ord("r"))
            assert fakes.engine.loads == 2
            assert not await monitor._handle_key(ctx, ord("q"))
            await controller.aclose()

        asyncio.run(scenario())
