"""Frame-rate and latency bookkeeping for the detection loop."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from livedetect.pipeline.types import PerformanceMetrics


if TYPE_CHECKING:
    from collections.abc import Callable


class FpsCounter:
    """Count completed cycles per fixed one-second window.

    ``record`` is called once per completed cycle. When a window boundary is
    crossed the count is converted to a rate, published as ``fps`` and reset.
    """

    def __init__(
        self,
        window_s: float = 1.0,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the counter with an empty window starting now."""
        self.window_s = window_s
        self._clock = clock
        self._count = 0
        self._window_start = clock()
        self.fps = 0.0

    def record(self) -> float:
        """Count one completed cycle and return the current published rate."""
        self._count += 1
        return self.poll()

    def poll(self) -> float:
        """Roll the window if its boundary has passed and return the rate."""
        now = self._clock()
        elapsed = now - self._window_start
        if elapsed >= self.window_s:
            self.fps = self._count / elapsed
            self._count = 0
            self._window_start = now
        return self.fps

    def reset(self) -> None:
        """Forget the current window and published rate."""
        self._count = 0
        self._window_start = self._clock()
        self.fps = 0.0


class PerformanceTracker:
    """Track performance metrics with moving averages."""

    def __init__(
        self,
        avg_frames: int = 30,
        fps_window_s: float = 1.0,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the tracker with a rolling window size."""
        self.avg_frames = avg_frames
        self._clock = clock
        self.fps_counter = FpsCounter(window_s=fps_window_s, clock=clock)
        self.inference_times: list[float] = []
        self.frame_count = 0
        self.skipped_ticks = 0
        self.start_time = clock()

    def tick_cycle(self) -> None:
        """Record a completed detection cycle."""
        self.frame_count += 1
        self.fps_counter.record()

    def tick_skipped(self) -> None:
        """Record a tick dropped because a cycle was still in flight."""
        self.skipped_ticks += 1

    def add_inference_time(self, elapsed_ms: float) -> None:
        """Record a single inference duration in milliseconds."""
        self.inference_times.append(elapsed_ms)
        if len(self.inference_times) > self.avg_frames:
            self.inference_times.pop(0)

    def reset(self) -> None:
        """Clear all counters, e.g. when detection is restarted."""
        self.fps_counter.reset()
        self.inference_times.clear()
        self.frame_count = 0
        self.skipped_ticks = 0
        self.start_time = self._clock()

    def get_metrics(self) -> PerformanceMetrics:
        """Compute aggregated performance metrics."""
        metrics = PerformanceMetrics(
            fps=self.fps_counter.poll(),
            skipped_ticks=self.skipped_ticks,
        )

        if self.inference_times:
            metrics.inference_ms = sum(self.inference_times) / len(self.inference_times)
            metrics.inference_capacity_fps = (
                1000.0 / metrics.inference_ms if metrics.inference_ms > 0 else 0.0
            )

        elapsed = self._clock() - self.start_time
        metrics.actual_throughput_fps = (
            self.frame_count / elapsed if elapsed > 0 else 0.0
        )

        return metrics
