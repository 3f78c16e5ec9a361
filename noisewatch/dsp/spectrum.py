"""Packed real FFT and its one-sided power unpacking.

The forward transform uses the FFTPACK packed layout returned by
``scipy.fftpack.rfft``::

    even N: [Re0, Re1, Im1, ..., Re(N/2-1), Im(N/2-1), Re(N/2)]
    odd N:  [Re0, Re1, Im1, ..., Re((N-1)/2), Im((N-1)/2)]

DC is always real. For even N the Nyquist bin is real and sits in the last
slot. For odd N the top bin is a regular complex pair.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import numpy.typing as npt
from scipy import fftpack  # type: ignore

from noisewatch.errors import BatchShapeError


FloatArray = npt.NDArray[np.float64]


def spectrum_length(seg_length: int) -> int:
    """Number of one-sided bins for a real signal of ``seg_length`` samples."""
    return int(seg_length) // 2 + 1


def pack_real_fft(frame: npt.ArrayLike) -> FloatArray:
    """Forward real FFT of ``frame`` in packed real layout (same length as input)."""
    x = np.asarray(frame, dtype=np.float64)
    return np.asarray(fftpack.rfft(x), dtype=np.float64)


def unpack_power(
    packed: npt.ArrayLike,
    seg_length: int,
    scale: float,
    out: Optional[FloatArray] = None,
) -> FloatArray:
    """Convert a packed real spectrum into a scaled one-sided power spectrum.

    Interior bins are doubled to carry the folded negative-frequency energy.
    DC is never doubled, and neither is the real-only Nyquist bin of an even
    length transform.
    """
    spec = np.asarray(packed, dtype=np.float64)
    if spec.ndim != 1 or spec.size != seg_length:
        raise BatchShapeError(f"packed spectrum has shape {spec.shape}, expected ({seg_length},)")

    n_bins = spectrum_length(seg_length)
    if out is None:
        out = np.empty(n_bins, dtype=np.float64)
    elif out.shape != (n_bins,):
        raise BatchShapeError(f"output buffer has shape {out.shape}, expected ({n_bins},)")

    # complex pairs following DC; for even N this stops short of Nyquist
    n_pairs = (seg_length - 1) // 2
    pairs = spec[1 : 1 + 2 * n_pairs].reshape(n_pairs, 2)

    out[0] = spec[0] ** 2
    out[1 : 1 + n_pairs] = 2.0 * np.sum(np.square(pairs), axis=1)
    if seg_length % 2 == 0:
        out[-1] = spec[-1] ** 2

    out *= scale
    return out
