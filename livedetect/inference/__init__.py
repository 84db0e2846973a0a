"""Inference engine bindings."""

from __future__ import annotations

from livedetect.inference.session import InferenceSession, OnnxInferenceEngine


__all__ = [
    "InferenceSession",
    "OnnxInferenceEngine",
]
