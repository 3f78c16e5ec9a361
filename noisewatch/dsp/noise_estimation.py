"""Noise-floor estimation from the high-frequency tail of a periodogram."""

from __future__ import annotations

import math
from enum import Enum
from typing import Optional, Union

import numpy as np
import numpy.typing as npt

from noisewatch.errors import ConfigurationError


class OutputTransform(str, Enum):
    """How the tail average becomes the published estimate."""

    SQRT_HALF = "sqrt_half"
    LINEAR_BANDWIDTH = "linear_bandwidth"


class NoiseFloorExtractor:
    """Reduce an averaged periodogram to a single scaled noise estimate.

    The last ``tail_fraction`` of the bins is assumed to be noise dominated.
    ``SQRT_HALF`` yields an amplitude-domain floor, ``LINEAR_BANDWIDTH``
    rescales the tail power by half the sample rate.
    """

    def __init__(
        self,
        tail_fraction: float,
        scale_factor: float = 1.0,
        transform: Union[OutputTransform, str] = OutputTransform.SQRT_HALF,
        sample_rate_hz: Optional[float] = None,
    ):
        try:
            self.transform = OutputTransform(transform)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown output transform: {transform!r}") from exc
        if not 0.0 < float(tail_fraction) <= 1.0:
            raise ConfigurationError(f"tail_fraction must be in (0, 1], got {tail_fraction}")
        if self.transform is OutputTransform.LINEAR_BANDWIDTH:
            if sample_rate_hz is None or float(sample_rate_hz) <= 0.0:
                raise ConfigurationError("linear_bandwidth transform requires sample_rate_hz > 0")
        self.tail_fraction = float(tail_fraction)
        self.scale_factor = float(scale_factor)
        self.sample_rate_hz = None if sample_rate_hz is None else float(sample_rate_hz)

    def tail_length(self, spectrum_length: int) -> int:
        return int(spectrum_length * self.tail_fraction)

    def tail_average(self, periodogram: npt.ArrayLike) -> float:
        pxx = np.asarray(periodogram, dtype=np.float64)
        if pxx.ndim != 1 or pxx.size == 0:
            raise ValueError("periodogram must be a non-empty 1D array")
        n_tail = self.tail_length(pxx.size)
        if n_tail >= 1:
            return float(np.mean(pxx[-n_tail:]))
        # spectrum too short for the requested fraction: use the last bin
        return float(pxx[-1])

    def extract(self, periodogram: npt.ArrayLike) -> float:
        tail = self.tail_average(periodogram)
        if self.transform is OutputTransform.SQRT_HALF:
            return self.scale_factor * math.sqrt(tail / 2.0)
        assert self.sample_rate_hz is not None  # noqa: S101 - checked in __init__
        return self.scale_factor * tail * (self.sample_rate_hz / 2.0)
