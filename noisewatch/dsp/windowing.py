"""Tapering windows and the periodogram energy normalisation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import numpy.typing as npt

from noisewatch.errors import ConfigurationError
from noisewatch.util.logging import get_logger


FloatArray = npt.NDArray[np.float64]

logger = get_logger(__name__)


@dataclass(frozen=True)
class WindowResolution:
    """Window chosen for a worker plus how it was chosen.

    ``fallback`` is set when a caller-supplied window had the wrong length
    and was replaced by a rectangular one.
    """

    window: FloatArray
    kind: str
    fallback: bool = False


def hamming_window(seg_length: int) -> FloatArray:
    """Symmetric raised-cosine window, 0.54 - 0.46*cos(2*pi*i/(N-1))."""
    _check_seg_length(seg_length)
    return np.asarray(np.hamming(seg_length), dtype=np.float64)


def rectangular_window(seg_length: int) -> FloatArray:
    _check_seg_length(seg_length)
    return np.ones(seg_length, dtype=np.float64)


def resolve_window(requested: Optional[npt.ArrayLike], seg_length: int) -> WindowResolution:
    """Pick the window a worker will use for ``seg_length`` samples.

    No window means Hamming. A window of the right length is used as-is.
    Anything else degrades to rectangular, which is not treated as an error.
    """
    _check_seg_length(seg_length)
    if requested is None:
        return WindowResolution(hamming_window(seg_length), "hamming")

    window = np.asarray(requested, dtype=np.float64)
    if window.ndim == 1 and window.size == seg_length:
        return WindowResolution(window, "custom")

    logger.warning(
        "Window of shape %s does not match seg_length=%d, using rectangular window",
        window.shape,
        seg_length,
    )
    return WindowResolution(rectangular_window(seg_length), "rectangular", fallback=True)


def periodogram_scale(window: npt.ArrayLike) -> float:
    """Return 1 / sum(window**2), the density scaling without sample rate."""
    w = np.asarray(window, dtype=np.float64)
    if w.ndim != 1:
        raise ConfigurationError("window must be 1D")
    if not np.all(np.isfinite(w)):
        raise ConfigurationError("window must contain only finite values")
    if np.any(w < 0):
        raise ConfigurationError("window weights must be non-negative")
    energy = float(np.sum(np.square(w)))
    if energy <= 0.0:
        raise ConfigurationError("window must not be all zeros")
    return 1.0 / energy


def _check_seg_length(seg_length: int) -> None:
    if int(seg_length) < 2:
        raise ConfigurationError(f"seg_length must be >= 2, got {seg_length}")
