"""Worker loop: take a batch, estimate its noise floor, publish the result."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol

from noisewatch.dsp.noise_estimation import NoiseFloorExtractor
from noisewatch.dsp.periodogram import PeriodogramEstimator
from noisewatch.errors import OperationCancelled
from noisewatch.util.logging import get_logger, log_exception
from noisewatch.worker.cancellation import CancellationToken
from noisewatch.worker.types import Batch, NoiseEstimate


logger = get_logger(__name__)


class BatchSource(Protocol):
    def take(self, token: CancellationToken) -> Optional[Batch]: ...


class EstimateSink(Protocol):
    def publish(self, item: NoiseEstimate, token: CancellationToken) -> bool: ...


class WorkerState(str, Enum):
    WAITING_FOR_BATCH = "waiting_for_batch"
    PROCESSING = "processing"
    PUBLISHING = "publishing"
    SHUTDOWN = "shutdown"


class EstimationWorker:
    """Sequential estimation pipeline driven by two shared queues.

    The worker owns its estimator and extractor. A cancelled queue operation
    makes the worker trip the shared token itself so that its siblings stop
    too, then it exits without publishing anything further.
    """

    def __init__(
        self,
        name: str,
        batches: BatchSource,
        results: EstimateSink,
        token: CancellationToken,
        estimator: PeriodogramEstimator,
        extractor: NoiseFloorExtractor,
    ):
        self.name = name
        self.batches = batches
        self.results = results
        self.token = token
        self.estimator = estimator
        self.extractor = extractor
        self.state = WorkerState.WAITING_FOR_BATCH
        self.published = 0

    def process(self, batch: Batch) -> NoiseEstimate:
        periodogram = self.estimator.estimate(batch.segments)
        value = self.extractor.extract(periodogram)
        return NoiseEstimate(
            sequence=batch.sequence,
            value=value,
            worker=self.name,
            ts=datetime.now(timezone.utc).isoformat(),
        )

    def run(self) -> int:
        """Loop until shutdown. Returns the number of estimates published."""
        logger.debug("Worker %s started", self.name)
        try:
            while not self.token.cancelled:
                self.state = WorkerState.WAITING_FOR_BATCH
                batch = self.batches.take(self.token)
                if batch is None:
                    continue

                self.state = WorkerState.PROCESSING
                t0 = time.perf_counter()
                estimate = self.process(batch)
                if self.token.cancelled:
                    break

                self.state = WorkerState.PUBLISHING
                self.results.publish(estimate, self.token)
                self.published += 1
                logger.debug(
                    "Worker %s published sequence=%d value=%.6g",
                    self.name,
                    estimate.sequence,
                    estimate.value,
                    extra={"duration_ms": round((time.perf_counter() - t0) * 1000.0, 3)},
                )
        except OperationCancelled as exc:
            if self.token.cancel(f"{self.name}: {exc.reason}"):
                logger.info("Worker %s propagated shutdown (%s)", self.name, exc.reason)
        except Exception:
            log_exception(logger, f"Worker {self.name} failed", error_type="worker_failure", worker=self.name)
            self.token.cancel(f"{self.name}: failure")
            raise
        finally:
            self.state = WorkerState.SHUTDOWN
        logger.debug("Worker %s stopped after %d estimates", self.name, self.published)
        return self.published
