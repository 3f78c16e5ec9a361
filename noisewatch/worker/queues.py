"""Bounded queues whose blocking operations observe a cancellation token."""

from __future__ import annotations

import queue
from typing import Generic, List, Optional, TypeVar

from noisewatch.errors import OperationCancelled
from noisewatch.worker.cancellation import CancellationToken


T = TypeVar("T")


class CancellableQueue(Generic[T]):
    """Thread-safe FIFO used for both the batch and the estimate side.

    Blocking calls wait at most ``poll_interval`` seconds between token checks,
    so a cancelled token unblocks every caller within that bound.
    """

    def __init__(self, maxsize: int = 0, poll_interval: float = 0.1):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self._queue: "queue.Queue[T]" = queue.Queue(maxsize=max(0, int(maxsize)))
        self.poll_interval = float(poll_interval)

    def take(self, token: CancellationToken) -> Optional[T]:
        """Return the next item, or None if nothing arrived within one poll."""
        if token.cancelled:
            raise OperationCancelled(token.reason or "cancelled")
        try:
            item = self._queue.get(timeout=self.poll_interval)
        except queue.Empty:
            item = None
        if token.cancelled:
            # shutdown won the race, the item is dropped unprocessed
            raise OperationCancelled(token.reason or "cancelled")
        return item

    def publish(self, item: T, token: CancellationToken) -> bool:
        """Block until ``item`` is queued. Raises OperationCancelled on shutdown."""
        while True:
            if token.cancelled:
                raise OperationCancelled(token.reason or "cancelled")
            try:
                self._queue.put(item, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue

    def put_nowait(self, item: T) -> None:
        self._queue.put_nowait(item)

    def drain(self) -> List[T]:
        items: List[T] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()
