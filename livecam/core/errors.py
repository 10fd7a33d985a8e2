"""
Error Types

Every failure the live pipeline reports to the user derives from LiveCamError,
so operation boundaries can catch one type and turn it into a status message.
"""

from typing import Iterable, Optional


class LiveCamError(Exception):
    """Base class for reportable pipeline errors."""


class ModelLoadError(LiveCamError):
    """A detector, custom model or feature extractor could not be loaded."""


class DimensionMismatch(LiveCamError):
    """Feature vector length differs from the length already in use."""

    def __init__(self, expected: int, actual: int, message: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message or f"Feature vector has length {actual}, expected {expected}")


class InvalidLabel(LiveCamError):
    """Example label is empty."""


class InvalidDataset(LiveCamError):
    """Imported or replacement dataset failed validation."""

    def __init__(self, message: str, indices: Iterable[int] = ()):
        self.indices = list(indices)
        if self.indices:
            message = f"{message} (invalid records: {self.indices})"
        super().__init__(message)


class CorruptDataset(LiveCamError):
    """Persisted dataset bytes could not be decoded."""


class NotLoaded(LiveCamError):
    """Inference was requested before the required model was loaded."""


class CameraAccessError(LiveCamError):
    """The video device could not be opened."""
