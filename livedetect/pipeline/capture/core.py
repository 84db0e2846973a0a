"""Frame source protocol and the camera wrapper used by the detector."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from livedetect.errors import AcquisitionError
from livedetect.pipeline.capture.opencv import OpenCVCapture


if TYPE_CHECKING:
    import numpy as np

    from livedetect.pipeline.types import CameraConfig


class FrameSource(Protocol):
    """Pull-based source of RGB frames, polled once per detection cycle."""

    def open(self) -> None:
        """Acquire the device; raise AcquisitionError when unavailable."""
        ...

    def current_frame(self) -> np.ndarray | None:
        """Return the latest frame without blocking, or None when none is ready."""
        ...

    def release(self) -> None:
        """Release device resources."""
        ...

    def is_opened(self) -> bool:
        """Return True while the device is held."""
        ...

    def get_info(self) -> dict:
        """Return backend metadata for diagnostics."""
        ...


class CameraCapture:
    """Camera frame source backed by OpenCV.

    A daemon thread reads the device continuously and keeps only the most
    recent frame. ``current_frame`` hands out that cached frame without
    consuming it, so the overlay and the detector can both poll it and neither
    blocks on the device.
    """

    def __init__(
        self,
        config: CameraConfig,
        *,
        max_read_failures: int = 30,
        retry_interval: float = 0.01,
    ) -> None:
        """Create a capture wrapper for the configured device."""
        self.config = config
        self.max_read_failures = max_read_failures
        self.retry_interval = retry_interval
        self._capture: OpenCVCapture | None = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._latest: np.ndarray | None = None
        self._failure = ""
        self.backend_name = ""

    def open(self) -> None:
        """Open the device and start the grab thread."""
        self.release()
        capture = OpenCVCapture(self.config)
        if not capture.open():
            message = f"Failed to access camera {self.config.device_index}"
            raise AcquisitionError(message)
        self._capture = capture
        self.backend_name = "OpenCV"
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._grab_loop,
            args=(capture,),
            name="livedetect-grab",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Camera source: {}", capture.get_info())

    def _grab_loop(self, capture: OpenCVCapture) -> None:
        failures = 0
        while not self._stop.is_set():
            try:
                frame = capture.current_frame()
            except AcquisitionError as exc:
                self._set_failure(str(exc))
                return
            if frame is None:
                failures += 1
                if failures >= self.max_read_failures:
                    self._set_failure(
                        f"No frame from camera {self.config.device_index} "
                        f"after {failures} reads"
                    )
                    return
                time.sleep(self.retry_interval)
                continue
            failures = 0
            with self._lock:
                self._latest = frame

    def _set_failure(self, message: str) -> None:
        logger.error("Camera stopped delivering frames: {}", message)
        with self._lock:
            self._failure = message

    def current_frame(self) -> np.ndarray | None:
        """Return the latest frame, or None before the first one has arrived."""
        if self._capture is None:
            message = "Camera has not been opened"
            raise AcquisitionError(message)
        with self._lock:
            if self._failure:
                raise AcquisitionError(self._failure)
            return self._latest

    def release(self) -> None:
        """Stop the grab thread and release the active backend."""
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Camera grab thread did not stop within 2s")
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        with self._lock:
            self._latest = None
            self._failure = ""

    def is_opened(self) -> bool:
        """Return True if the active backend is open."""
        return self._capture is not None and self._capture.is_opened()

    def get_info(self) -> dict:
        """Return backend metadata for diagnostics."""
        if self._capture is not None:
            return self._capture.get_info()
        return {"backend": "None", "source": "", "width": 0, "height": 0, "fps": 0}
