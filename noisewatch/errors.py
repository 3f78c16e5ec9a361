"""Exception types raised by the estimation pipeline and its workers."""

from __future__ import annotations


class NoisewatchError(Exception):
    """Base class for noisewatch failures."""


class ConfigurationError(NoisewatchError, ValueError):
    """Invalid estimator setup detected at construction time."""


class BatchShapeError(NoisewatchError, ValueError):
    """A batch or packed spectrum does not match the configured segment length."""


class OperationCancelled(NoisewatchError):
    """A queue operation was interrupted because shutdown was requested."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason
