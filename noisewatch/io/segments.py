"""Cut a continuous sample stream into fixed-size segment batches."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import numpy as np
import numpy.typing as npt

from noisewatch.worker.types import Batch


FloatArray = npt.NDArray[np.float64]


class SegmentAccumulator:
    """Accumulate samples per channel and emit batches of ``frame_size`` segments.

    ``push`` takes either a 1-D block (one channel) or an
    ``(n_samples, n_channels)`` block. Whenever every channel holds
    ``seg_length`` samples one segment per channel is cut, in channel order.
    Segments never overlap and are never split across batches.
    """

    def __init__(self, seg_length: int, frame_size: int, start_sequence: int = 0):
        if seg_length < 2:
            raise ValueError("seg_length must be >= 2")
        if frame_size < 1:
            raise ValueError("frame_size must be >= 1")
        self.seg_length = int(seg_length)
        self.frame_size = int(frame_size)
        self.next_sequence = int(start_sequence)
        self._channels: Optional[int] = None
        self._remainder: FloatArray = np.empty((0, 0), dtype=np.float64)
        self._pending: List[FloatArray] = []

    def push(self, samples: npt.ArrayLike) -> List[Batch]:
        block = np.asarray(samples, dtype=np.float64)
        if block.ndim == 1:
            block = block[:, np.newaxis]
        if block.ndim != 2:
            raise ValueError(f"samples must be 1D or 2D [n_samples, n_channels], got shape {block.shape}")
        if not np.all(np.isfinite(block)):
            raise ValueError("samples must contain only finite values")

        if self._channels is None:
            self._channels = block.shape[1]
            self._remainder = np.empty((0, self._channels), dtype=np.float64)
        elif block.shape[1] != self._channels:
            raise ValueError(f"expected {self._channels} channel(s), got {block.shape[1]}")

        buf = np.concatenate((self._remainder, block), axis=0)
        n_full = buf.shape[0] // self.seg_length
        for idx in range(n_full):
            chunk = buf[idx * self.seg_length : (idx + 1) * self.seg_length]
            # chunk is [seg_length, n_channels]; one segment per channel
            self._pending.extend(chunk.T.copy())
        self._remainder = buf[n_full * self.seg_length :].copy()

        batches: List[Batch] = []
        while len(self._pending) >= self.frame_size:
            segments = np.stack(self._pending[: self.frame_size], axis=0)
            del self._pending[: self.frame_size]
            batches.append(Batch(sequence=self.next_sequence, segments=segments))
            self.next_sequence += 1
        return batches

    @property
    def buffered_samples(self) -> int:
        return int(self._remainder.shape[0])

    @property
    def pending_segments(self) -> int:
        return len(self._pending)


def load_samples(path: str) -> FloatArray:
    """Read samples from a .npy file or a comma/whitespace delimited text file."""
    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(f"Sample file not found: {path}")
    if p.suffix.lower() == ".npy":
        data = np.load(p, allow_pickle=False)
    else:
        delimiter = "," if p.suffix.lower() == ".csv" else None
        data = np.loadtxt(p, delimiter=delimiter, dtype=np.float64, ndmin=1)
    return np.asarray(data, dtype=np.float64)
