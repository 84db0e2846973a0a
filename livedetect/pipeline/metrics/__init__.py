"""Performance metrics helpers for pipelines."""

from __future__ import annotations

from livedetect.pipeline.metrics.performance import FpsCounter, PerformanceTracker


__all__ = [
    "FpsCounter",
    "PerformanceTracker",
]
