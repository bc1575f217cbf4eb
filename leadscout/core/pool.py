"""Bounded-concurrency processing of listing references."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Iterable, List, Optional

from leadscout.core.cancel import CancelToken
from leadscout.core.models import ListingRecord, ListingReference

logger = logging.getLogger(__name__)

FetchFn = Callable[[ListingReference], Awaitable[Optional[ListingRecord]]]
ResultSink = Callable[[ListingRecord], None]
ProgressSink = Callable[[str], None]


class WorkerPool:
    """Drain a shared queue with at most ``concurrency`` workers.

    Each non-None result is appended to the pool's result list and handed to
    ``on_result`` before the worker picks its next reference, so callers can
    persist leads while the batch is still running.
    """

    def __init__(
        self,
        fetch: FetchFn,
        concurrency: int,
        *,
        on_result: Optional[ResultSink] = None,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetch = fetch
        self.concurrency = concurrency
        self.on_result = on_result or (lambda record: None)
        self.on_progress = on_progress or (lambda message: None)
        self.cancel_token = cancel_token or CancelToken()

    async def process(self, references: Iterable[ListingReference]) -> List[ListingRecord]:
        queue: Deque[ListingReference] = deque(references)
        total = len(queue)
        results: List[ListingRecord] = []
        processed = 0

        if not queue:
            return results

        async def worker(worker_id: int) -> None:
            nonlocal processed
            while queue and not self.cancel_token.cancelled:
                reference = queue.popleft()
                record = await self.fetch(reference)
                processed += 1

                if record is not None:
                    results.append(record)
                    try:
                        self.on_result(record)
                    except Exception as exc:  # noqa: BLE001
                        logger.error("Result callback failed for %s: %s", record.name, exc)

                self.on_progress(f"Processing: {processed}/{total} (found {len(results)} without websites)")
            logger.debug("Worker %d finished", worker_id)

        workers = [worker(index) for index in range(min(self.concurrency, total))]
        await asyncio.gather(*workers)

        if self.cancel_token.cancelled and queue:
            logger.info("Pool cancelled with %d reference(s) left unprocessed", len(queue))
        return results
