"""ONNX Runtime binding: model loading and per-frame execution."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import TYPE_CHECKING

import onnxruntime as ort
from loguru import logger

from livedetect.errors import ExecutionError, LoadError, MalformedOutputError
from livedetect.pipeline.types import DEFAULT_PROVIDERS
from livedetect.yolo.core.preprocess import infer_input_size
from livedetect.yolo.core.types import Tensor


if TYPE_CHECKING:
    from collections.abc import Sequence


class InferenceSession:
    """A loaded model, reused for every detection cycle."""

    def __init__(
        self,
        session: ort.InferenceSession,
        *,
        input_name: str | None = None,
        output_name: str | None = None,
    ) -> None:
        """Wrap a backend session and resolve its input/output names."""
        self._session: ort.InferenceSession | None = session
        model_input = session.get_inputs()[0]
        self.input_name = input_name or model_input.name
        self.input_shape = list(model_input.shape)
        self.output_name = output_name or session.get_outputs()[0].name
        providers = session.get_providers()
        self.provider = providers[0] if providers else "unknown"
        self.last_run_ms = 0.0

    @property
    def closed(self) -> bool:
        return self._session is None

    def input_size(self, default: int) -> tuple[int, int]:
        """Return the (height, width) the model declares, or ``default``."""
        return infer_input_size(self.input_shape, default=default)

    def _run_sync(self, blob: object) -> object:
        if self._session is None:
            message = "Inference session is closed"
            raise ExecutionError(message)
        start = time.perf_counter()
        outputs = self._session.run([self.output_name], {self.input_name: blob})
        self.last_run_ms = (time.perf_counter() - start) * 1000
        return outputs[0]

    async def run(self, tensor: Tensor) -> Tensor:
        """Execute one ``[1, 3, S, S]`` tensor and return the first output."""
        shape = tensor.shape
        if len(shape) != 4 or shape[0] != 1 or shape[1] != 3 or shape[2] != shape[3]:
            message = f"Expected input shape [1, 3, S, S], got {list(shape)}"
            raise ExecutionError(message)

        try:
            raw = await asyncio.to_thread(self._run_sync, tensor.as_array())
        except ExecutionError:
            raise
        except Exception as exc:
            message = f"Inference failed: {exc}"
            raise ExecutionError(message) from exc

        try:
            return Tensor.from_array(raw)
        except MalformedOutputError as exc:
            message = f"Model returned a non-numeric output: {exc}"
            raise ExecutionError(message) from exc

    def close(self) -> None:
        """Drop the backend session; further runs fail with ExecutionError."""
        if self._session is not None:
            logger.debug("Releasing inference session ({})", self.provider)
        self._session = None


class OnnxInferenceEngine:
    """Creates ONNX Runtime sessions with the configured providers."""

    def __init__(self, providers: Sequence[str] = DEFAULT_PROVIDERS) -> None:
        """Remember the preferred execution providers, best first."""
        self.providers = tuple(providers)

    def _select_providers(self) -> list[str]:
        available = set(ort.get_available_providers())
        selected = [name for name in self.providers if name in available]
        if not selected:
            logger.warning(
                "None of {} available (have {}); using CPU",
                list(self.providers),
                sorted(available),
            )
            selected = ["CPUExecutionProvider"]
        return selected

    def _create(self, model_path: str) -> ort.InferenceSession:
        return ort.InferenceSession(model_path, providers=self._select_providers())

    async def load(
        self,
        model_path: str | Path,
        *,
        input_name: str | None = None,
        output_name: str | None = None,
    ) -> InferenceSession:
        """Load a model off the event loop thread; raise LoadError on failure."""
        path = Path(model_path)
        if not path.is_file():
            message = f"Model file not found: {path}"
            raise LoadError(message)

        logger.info("Loading model: {}", path)
        try:
            backend = await asyncio.to_thread(self._create, str(path))
            session = InferenceSession(
                backend,
                input_name=input_name,
                output_name=output_name,
            )
        except Exception as exc:
            message = f"Failed to load model {path}: {exc}"
            raise LoadError(message) from exc

        logger.success("Model loaded using: {}", session.provider)
        logger.debug(
            "Model input: {}, shape: {}; output: {}",
            session.input_name,
            session.input_shape,
            session.output_name,
        )
        return session
