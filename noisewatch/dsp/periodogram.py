"""Welch averaged periodogram over one batch of non-overlapping segments."""

from __future__ import annotations

from typing import Optional

import numpy as np
import numpy.typing as npt

from noisewatch.dsp.spectrum import pack_real_fft, spectrum_length, unpack_power
from noisewatch.dsp.windowing import WindowResolution, periodogram_scale, resolve_window
from noisewatch.errors import BatchShapeError, ConfigurationError


FloatArray = npt.NDArray[np.float64]


class PeriodogramEstimator:
    """Demean, window, transform and average every segment of a batch.

    One instance belongs to one worker. The returned periodogram is an
    internal buffer that the next call to :meth:`estimate` overwrites.
    When ``frame_size`` is given every batch must hold exactly that many
    segments.
    """

    def __init__(
        self,
        seg_length: int,
        window: Optional[npt.ArrayLike] = None,
        frame_size: Optional[int] = None,
    ):
        if frame_size is not None and frame_size < 1:
            raise ConfigurationError(f"frame_size must be >= 1, got {frame_size}")
        self.resolution: WindowResolution = resolve_window(window, seg_length)
        self.seg_length = int(seg_length)
        self.frame_size = None if frame_size is None else int(frame_size)
        self.window = self.resolution.window
        self.scale = periodogram_scale(self.window)
        self.spectrum_length = spectrum_length(self.seg_length)
        self.periodogram: FloatArray = np.zeros(self.spectrum_length, dtype=np.float64)
        self._frame_power: FloatArray = np.empty(self.spectrum_length, dtype=np.float64)

    @property
    def window_fallback(self) -> bool:
        return self.resolution.fallback

    def estimate(self, segments: npt.ArrayLike) -> FloatArray:
        frames = self._as_frames(segments)
        frame_size = frames.shape[0]

        self.periodogram.fill(0.0)
        for frame in frames:
            signal = (frame - frame.mean()) * self.window
            packed = pack_real_fft(signal)
            unpack_power(packed, self.seg_length, self.scale, out=self._frame_power)
            self.periodogram += self._frame_power / frame_size
        return self.periodogram

    def _as_frames(self, segments: npt.ArrayLike) -> FloatArray:
        frames = np.asarray(segments, dtype=np.float64)
        if frames.ndim != 2:
            raise BatchShapeError(f"batch must be 2D [frame_size, seg_length], got shape {frames.shape}")
        if frames.shape[0] == 0:
            raise BatchShapeError("batch must contain at least one segment")
        if self.frame_size is not None and frames.shape[0] != self.frame_size:
            raise BatchShapeError(f"batch holds {frames.shape[0]} segments, expected frame_size={self.frame_size}")
        if frames.shape[1] != self.seg_length:
            raise BatchShapeError(
                f"segment length {frames.shape[1]} does not match seg_length={self.seg_length}"
            )
        return frames
