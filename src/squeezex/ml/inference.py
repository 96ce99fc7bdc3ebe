"""Inference concurrency layer for the HTTP host.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> InferenceBridge.classify

A request waits at most 5s for a slot, then gets 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from squeezex.ml.bridge import InferenceBridge
    from squeezex.ml.classifier import ClassificationResult
    from squeezex.ml.engine import Backend
    from squeezex.ml.preprocessing import PixelBuffer

logger = logging.getLogger(__name__)

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Bounds concurrent classifications and runs them off the event loop."""

    def __init__(self, max_concurrent: int) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="squeezex-inference",
        )
        self._active_count = 0
        self._queue_depth = 0
        self._counter_lock = threading.Lock()

    async def classify(self, bridge: InferenceBridge, buffer: PixelBuffer, backend: Backend) -> ClassificationResult:
        """Run ``bridge.classify`` in the thread pool.

        Raises:
            TimeoutError: If no slot frees up within the timeout.
            ClassificationError: Whatever the bridge raises for this call.
        """
        await self._acquire()
        self._adjust(active=1)
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, bridge.classify, buffer, backend)
        finally:
            self._semaphore.release()
            self._adjust(active=-1)

    async def _acquire(self) -> None:
        self._adjust(queued=1)
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=SEMAPHORE_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("No inference slot within %.1fs", SEMAPHORE_TIMEOUT_SECONDS)
            raise
        finally:
            self._adjust(queued=-1)

    def _adjust(self, *, active: int = 0, queued: int = 0) -> None:
        with self._counter_lock:
            self._active_count += active
            self._queue_depth += queued

    @property
    def active_count(self) -> int:
        """Number of classifications currently running."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Wait for running classifications and stop the thread pool."""
        self._executor.shutdown(wait=True)
