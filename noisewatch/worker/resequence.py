"""Restore batch order for estimates published by concurrent workers."""

from __future__ import annotations

from typing import Dict, List

from noisewatch.worker.types import NoiseEstimate


class EstimateResequencer:
    """Buffer out-of-order estimates and release them by sequence number."""

    def __init__(self, start: int = 0):
        self.next_sequence = int(start)
        self._held: Dict[int, NoiseEstimate] = {}

    def push(self, estimate: NoiseEstimate) -> List[NoiseEstimate]:
        if estimate.sequence < self.next_sequence or estimate.sequence in self._held:
            raise ValueError(f"duplicate or stale sequence {estimate.sequence}")
        self._held[estimate.sequence] = estimate
        ready: List[NoiseEstimate] = []
        while self.next_sequence in self._held:
            ready.append(self._held.pop(self.next_sequence))
            self.next_sequence += 1
        return ready

    @property
    def pending(self) -> int:
        return len(self._held)
