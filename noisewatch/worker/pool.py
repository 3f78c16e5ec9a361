"""Run several estimation workers on an explicit thread pool."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Tuple

from noisewatch.dsp.noise_estimation import NoiseFloorExtractor
from noisewatch.dsp.periodogram import PeriodogramEstimator
from noisewatch.util.logging import get_logger
from noisewatch.worker.cancellation import CancellationToken
from noisewatch.worker.estimation import BatchSource, EstimateSink, EstimationWorker


logger = get_logger(__name__)

PipelineFactory = Callable[[], Tuple[PeriodogramEstimator, NoiseFloorExtractor]]


class WorkerPool:
    """Own N workers that share the batch and estimate queues and one token.

    ``pipeline_factory`` is called once per worker so that every worker gets
    its own window, scale and periodogram buffer.
    """

    def __init__(
        self,
        num_workers: int,
        batches: BatchSource,
        results: EstimateSink,
        pipeline_factory: PipelineFactory,
        token: Optional[CancellationToken] = None,
        name_prefix: str = "estimator",
    ):
        if num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        self.token = token or CancellationToken()
        self.workers: List[EstimationWorker] = []
        for idx in range(num_workers):
            estimator, extractor = pipeline_factory()
            self.workers.append(
                EstimationWorker(
                    name=f"{name_prefix}-{idx}",
                    batches=batches,
                    results=results,
                    token=self.token,
                    estimator=estimator,
                    extractor=extractor,
                )
            )
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: Dict[str, Future] = {}

    def start(self) -> None:
        if self._executor is not None:
            raise RuntimeError("pool already started")
        self._executor = ThreadPoolExecutor(max_workers=len(self.workers), thread_name_prefix="noisewatch")
        for worker in self.workers:
            self._futures[worker.name] = self._executor.submit(worker.run)
        logger.info("Started %d estimation workers", len(self.workers))

    def shutdown(self, reason: str = "shutdown requested") -> None:
        if self.token.cancel(reason):
            logger.info("Shutdown signalled: %s", reason)

    def join(self, timeout: Optional[float] = None) -> Dict[str, int]:
        """Wait for every worker and return estimates published per worker.

        Raises TimeoutError if a worker is still running after ``timeout`` and
        re-raises the first worker failure.
        """
        if self._executor is None:
            return {}
        _, not_done = wait(list(self._futures.values()), timeout=timeout)
        if not_done:
            raise TimeoutError(f"{len(not_done)} worker(s) still running after {timeout}s")
        self._executor.shutdown(wait=True)
        published: Dict[str, int] = {}
        for name, future in self._futures.items():
            published[name] = future.result()
        return published

    @property
    def running(self) -> bool:
        return any(not f.done() for f in self._futures.values())

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown("pool context exited")
        self.join()
