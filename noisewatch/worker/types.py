"""Dataclasses exchanged between the producer, workers and consumers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt


@dataclass
class Batch:
    sequence: int
    segments: npt.NDArray[np.float64]

    @property
    def frame_size(self) -> int:
        return int(self.segments.shape[0])

    @property
    def seg_length(self) -> int:
        return int(self.segments.shape[1])


@dataclass
class NoiseEstimate:
    sequence: int
    value: float
    worker: str
    ts: str

    def as_dict(self) -> dict:
        return {"sequence": self.sequence, "value": self.value, "worker": self.worker, "ts": self.ts}
