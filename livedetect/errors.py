"""Exception types raised by the detection pipeline."""

from __future__ import annotations


class DetectorError(RuntimeError):
    """Base class for detection pipeline failures."""


class LoadError(DetectorError):
    """Raised when the model resource is missing or cannot be parsed."""


class AcquisitionError(DetectorError):
    """Raised when the camera cannot be opened or stops delivering frames."""


class ExecutionError(DetectorError):
    """Raised when a single inference call fails."""


class MalformedOutputError(DetectorError):
    """Raised when a tensor does not match its declared or expected shape."""
