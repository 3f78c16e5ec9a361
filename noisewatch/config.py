"""Estimator configuration and environment defaults.

NOISEWATCH_* environment variables are parsed once here. Other modules
import these constants instead of reading os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import numpy.typing as npt

from noisewatch.dsp.noise_estimation import NoiseFloorExtractor, OutputTransform
from noisewatch.dsp.periodogram import PeriodogramEstimator
from noisewatch.errors import ConfigurationError


def _int_env(name: str, default: int) -> int:
    """Parse a positive integer from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return max(1, int(float(val)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    """Parse a positive float from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        parsed = float(val)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


DEFAULT_WORKERS: int = _int_env("NOISEWATCH_WORKERS", 2)
"""Estimation workers started by the CLI when --workers is not given."""

QUEUE_DEPTH: int = _int_env("NOISEWATCH_QUEUE_DEPTH", 16)
"""Capacity of the batch and estimate queues."""

POLL_SECONDS: float = _float_env("NOISEWATCH_POLL_SECONDS", 0.1)
"""Upper bound on how long a blocked queue call waits between shutdown checks."""


@dataclass
class EstimatorConfig:
    """Everything a worker needs to build its own pipeline."""

    seg_length: int
    frame_size: int
    tail_fraction: float = 0.1
    scale_factor: float = 1.0
    transform: str = OutputTransform.SQRT_HALF.value
    sample_rate_hz: Optional[float] = None
    window: Optional[npt.NDArray[np.float64]] = None

    def validate(self) -> None:
        """Raise ConfigurationError for settings no worker could run with."""
        if self.seg_length < 2:
            raise ConfigurationError(f"seg_length must be >= 2, got {self.seg_length}")
        if self.frame_size < 1:
            raise ConfigurationError(f"frame_size must be >= 1, got {self.frame_size}")
        # the extractor owns the remaining checks
        self.build_extractor()

    def build_estimator(self) -> PeriodogramEstimator:
        return PeriodogramEstimator(self.seg_length, window=self.window, frame_size=self.frame_size)

    def build_extractor(self) -> NoiseFloorExtractor:
        return NoiseFloorExtractor(
            tail_fraction=self.tail_fraction,
            scale_factor=self.scale_factor,
            transform=self.transform,
            sample_rate_hz=self.sample_rate_hz,
        )

    def build_pipeline(self) -> Tuple[PeriodogramEstimator, NoiseFloorExtractor]:
        return self.build_estimator(), self.build_extractor()
