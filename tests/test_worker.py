import threading
import time

import numpy as np
import pytest

from noisewatch.config import EstimatorConfig
from noisewatch.dsp.noise_estimation import NoiseFloorExtractor
from noisewatch.dsp.periodogram import PeriodogramEstimator
from noisewatch.errors import BatchShapeError, OperationCancelled
from noisewatch.worker.cancellation import CancellationToken
from noisewatch.worker.estimation import EstimationWorker, WorkerState
from noisewatch.worker.pool import WorkerPool
from noisewatch.worker.queues import CancellableQueue
from noisewatch.worker.types import Batch, NoiseEstimate


POLL = 0.02


def _batch(sequence: int, seg_length: int = 32, frame_size: int = 4) -> Batch:
    rng = np.random.default_rng(sequence)
    return Batch(sequence=sequence, segments=rng.normal(size=(frame_size, seg_length)))


def _make_worker(batches, results, token, seg_length: int = 32) -> EstimationWorker:
    return EstimationWorker(
        name="estimator-test",
        batches=batches,
        results=results,
        token=token,
        estimator=PeriodogramEstimator(seg_length),
        extractor=NoiseFloorExtractor(0.1),
    )


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(POLL)
    return predicate()


class _ClosedSink:
    def publish(self, item: NoiseEstimate, token: CancellationToken) -> bool:
        raise OperationCancelled("downstream closed")


class _CancelledSource:
    def take(self, token: CancellationToken) -> Batch:
        raise OperationCancelled("input closed")


def test_token_is_monotonic_and_keeps_first_reason() -> None:
    token = CancellationToken()
    assert not token.cancelled
    assert token.cancel("first")
    assert not token.cancel("second")
    assert token.cancelled
    assert token.reason == "first"
    assert token.wait(0)


def test_take_returns_none_when_empty() -> None:
    q: CancellableQueue[int] = CancellableQueue(poll_interval=POLL)
    assert q.take(CancellationToken()) is None


def test_take_raises_once_cancelled_even_with_items_queued() -> None:
    q: CancellableQueue[int] = CancellableQueue(poll_interval=POLL)
    q.put_nowait(1)
    token = CancellationToken()
    token.cancel("stop")
    with pytest.raises(OperationCancelled):
        q.take(token)


def test_blocked_publish_unblocks_on_cancel() -> None:
    q: CancellableQueue[int] = CancellableQueue(maxsize=1, poll_interval=POLL)
    q.put_nowait(0)
    token = CancellationToken()
    outcome = {}

    def _publisher() -> None:
        try:
            q.publish(1, token)
        except OperationCancelled as exc:
            outcome["reason"] = exc.reason

    t = threading.Thread(target=_publisher)
    t.start()
    time.sleep(5 * POLL)
    assert t.is_alive()
    token.cancel("shutdown")
    t.join(timeout=1.0)
    assert not t.is_alive()
    assert outcome["reason"] == "shutdown"
    assert q.drain() == [0]


def test_worker_publishes_one_estimate_per_batch() -> None:
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    token = CancellationToken()
    for seq in range(3):
        batches.put_nowait(_batch(seq))
    worker = _make_worker(batches, results, token)

    t = threading.Thread(target=worker.run)
    t.start()
    assert _wait_for(lambda: results.qsize() == 3)
    token.cancel("done")
    t.join(timeout=1.0)
    assert not t.is_alive()

    published = sorted(results.drain(), key=lambda e: e.sequence)
    assert [e.sequence for e in published] == [0, 1, 2]
    est, ext = PeriodogramEstimator(32), NoiseFloorExtractor(0.1)
    for estimate in published:
        expected = ext.extract(est.estimate(_batch(estimate.sequence).segments))
        assert estimate.value == pytest.approx(expected)
        assert estimate.worker == "estimator-test"
    assert worker.published == 3


def test_shutdown_while_waiting_exits_without_publishing() -> None:
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    token = CancellationToken()
    worker = _make_worker(batches, results, token)

    t = threading.Thread(target=worker.run)
    t.start()
    time.sleep(5 * POLL)
    assert worker.state is WorkerState.WAITING_FOR_BATCH
    started = time.monotonic()
    token.cancel("operator stop")
    t.join(timeout=1.0)
    assert not t.is_alive()
    assert time.monotonic() - started < 1.0
    assert results.empty()
    assert worker.state is WorkerState.SHUTDOWN


def test_cancelled_publish_trips_shared_token() -> None:
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    batches.put_nowait(_batch(0))
    token = CancellationToken()
    worker = _make_worker(batches, _ClosedSink(), token)

    assert worker.run() == 0
    assert token.cancelled
    assert "downstream closed" in (token.reason or "")


def test_pipeline_failure_cancels_token_and_propagates() -> None:
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    batches.put_nowait(_batch(0, seg_length=31))
    token = CancellationToken()
    worker = _make_worker(batches, results, token, seg_length=32)

    with pytest.raises(BatchShapeError):
        worker.run()
    assert token.cancelled
    assert results.empty()


def test_pool_drains_batches_across_workers() -> None:
    config = EstimatorConfig(seg_length=32, frame_size=4)
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    for seq in range(12):
        batches.put_nowait(_batch(seq))

    pool = WorkerPool(3, batches, results, config.build_pipeline)
    estimators = {id(w.estimator) for w in pool.workers}
    assert len(estimators) == 3

    pool.start()
    assert _wait_for(lambda: results.qsize() == 12)
    pool.shutdown("test complete")
    published = pool.join(timeout=2.0)

    assert sum(published.values()) == 12
    assert sorted(e.sequence for e in results.drain()) == list(range(12))
    assert not pool.running


def test_pool_join_reraises_worker_failure() -> None:
    config = EstimatorConfig(seg_length=32, frame_size=4)
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    batches.put_nowait(_batch(0, seg_length=16))

    pool = WorkerPool(2, batches, results, config.build_pipeline)
    pool.start()
    assert _wait_for(lambda: pool.token.cancelled)
    with pytest.raises(BatchShapeError):
        pool.join(timeout=2.0)


def test_cancelled_take_trips_shared_token() -> None:
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    token = CancellationToken()
    worker = _make_worker(_CancelledSource(), results, token)

    assert worker.run() == 0
    assert token.cancelled
    assert "input closed" in (token.reason or "")
    assert results.empty()
    assert worker.state is WorkerState.SHUTDOWN


def test_pool_context_stops_workers_on_exit() -> None:
    config = EstimatorConfig(seg_length=32, frame_size=4)
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    for seq in range(4):
        batches.put_nowait(_batch(seq))

    with WorkerPool(2, batches, results, config.build_pipeline) as pool:
        assert _wait_for(lambda: results.qsize() == 4)
        assert pool.running

    assert pool.token.cancelled
    assert pool.token.reason == "pool context exited"
    assert not pool.running
    assert sorted(e.sequence for e in results.drain()) == list(range(4))


def test_pool_workers_reject_short_batches() -> None:
    config = EstimatorConfig(seg_length=32, frame_size=4)
    batches: CancellableQueue[Batch] = CancellableQueue(poll_interval=POLL)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(poll_interval=POLL)
    batches.put_nowait(_batch(0, frame_size=3))

    pool = WorkerPool(1, batches, results, config.build_pipeline)
    pool.start()
    assert _wait_for(lambda: pool.token.cancelled)
    with pytest.raises(BatchShapeError, match="frame_size=4"):
        pool.join(timeout=2.0)
    assert results.empty()
