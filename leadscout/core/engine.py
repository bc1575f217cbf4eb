"""Discovery orchestration: single queries and multi-region sweeps over one browser session."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from leadscout.core.cancel import CancelToken
from leadscout.core.config import Settings, get_settings
from leadscout.core.detail_fetcher import DetailFetcher, EmailFinder, ListingRegistry
from leadscout.core.link_collector import LinkCollector
from leadscout.core.models import DedupKey, ListingRecord, ListingReference, SearchTask, record_key
from leadscout.core.pool import ProgressSink, ResultSink, WorkerPool
from leadscout.core.session import SessionManager
from leadscout.etl.subdivide import build_search_query

logger = logging.getLogger(__name__)


def _log_progress(message: str) -> None:
    logger.info(message)


class DiscoveryEngine:
    """Turns queries into a deduplicated stream of listings without a website.

    ``on_result`` receives every qualifying record as soon as a worker finds
    it; ``on_progress`` receives human readable status lines.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        session: Optional[SessionManager] = None,
        on_progress: Optional[ProgressSink] = None,
        on_result: Optional[ResultSink] = None,
        cancel_token: Optional[CancelToken] = None,
        email_finder: Optional[EmailFinder] = None,
        concurrency: Optional[int] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session or SessionManager(self.settings)
        self.on_progress = on_progress or _log_progress
        self.on_result = on_result or (lambda record: None)
        self.cancel_token = cancel_token or CancelToken()
        self.concurrency = concurrency or self.settings.concurrency

        self.registry = ListingRegistry()
        self.collector = LinkCollector(
            self.session,
            self.settings,
            cancel_token=self.cancel_token,
            on_progress=self.on_progress,
        )
        self.fetcher = DetailFetcher(self.session, self.settings, self.registry, email_finder=email_finder)

    def cancel(self) -> None:
        self.cancel_token.cancel()

    def _reset_run_state(self) -> None:
        self.registry = ListingRegistry()
        self.fetcher.registry = self.registry

    async def _process(self, links: Sequence[ListingReference]) -> List[ListingRecord]:
        pool = WorkerPool(
            self.fetcher.fetch,
            self.concurrency,
            on_result=self.on_result,
            on_progress=self.on_progress,
            cancel_token=self.cancel_token,
        )
        return await pool.process(links)

    async def scrape(self, query: Optional[str], location: str) -> List[ListingRecord]:
        """Single-query mode; search-surface errors propagate to the caller."""
        search_query = build_search_query(query, location)
        self._reset_run_state()
        await self.session.launch()
        try:
            if query and query.strip():
                self.on_progress(f'Searching for "{search_query}"...')
            else:
                self.on_progress(f'Searching for "all establishments in {location}"...')

            links = await self.collector.collect(search_query)
            if not links:
                self.on_progress("No places found for this search")
                return []
            return await self._process(links)
        finally:
            await self.session.close()

    async def sweep(self, tasks: Sequence[SearchTask]) -> List[ListingRecord]:
        """Run every task on one session; a failing task is reported and skipped."""
        unique: Dict[DedupKey, ListingRecord] = {}
        total = len(tasks)

        self._reset_run_state()
        await self.session.launch()
        try:
            for index, task in enumerate(tasks, start=1):
                if self.cancel_token.cancelled:
                    self.on_progress(f"Sweep cancelled before task {index}/{total}")
                    break

                prefix = f"[{index}/{total}]"
                self.on_progress(f"{prefix} {task}")
                try:
                    links = await self.collector.collect(task)
                    if links:
                        self.on_progress(f"{prefix} Found {len(links)} places")
                        for record in await self._process(links):
                            # qualifying records always carry a name, so the key is never None
                            key = record_key(record)
                            if key is not None and key not in unique:
                                unique[key] = record
                        self.on_progress(f"{prefix} Total unique: {len(unique)}")
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Sweep task %r failed: %s", task, exc)
                    self.on_progress(f"{prefix} Error: {exc}")

                if index < total:
                    await self.cancel_token.sleep(self.settings.task_delay_seconds)
        finally:
            await self.session.close()

        return list(unique.values())
