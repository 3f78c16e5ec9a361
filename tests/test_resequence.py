import pytest

from noisewatch.worker.resequence import EstimateResequencer
from noisewatch.worker.types import NoiseEstimate


def _est(seq: int) -> NoiseEstimate:
    return NoiseEstimate(sequence=seq, value=float(seq), worker="w", ts="")


def test_out_of_order_estimates_are_released_in_sequence() -> None:
    reseq = EstimateResequencer()
    assert reseq.push(_est(2)) == []
    assert reseq.pending == 1
    assert [e.sequence for e in reseq.push(_est(0))] == [0]
    assert [e.sequence for e in reseq.push(_est(1))] == [1, 2]
    assert reseq.pending == 0
    assert reseq.next_sequence == 3


def test_duplicate_or_stale_sequence_is_rejected() -> None:
    reseq = EstimateResequencer(start=5)
    with pytest.raises(ValueError):
        reseq.push(_est(4))
    reseq.push(_est(7))
    with pytest.raises(ValueError):
        reseq.push(_est(7))
