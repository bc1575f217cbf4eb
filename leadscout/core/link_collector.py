"""Search-results collection: run a query, scroll until the feed stops growing, harvest links."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from leadscout.core.cancel import CancelToken
from leadscout.core.config import Settings
from leadscout.core.models import ListingReference
from leadscout.core.session import SessionManager

logger = logging.getLogger(__name__)

GOOGLE_MAPS_URL = "https://www.google.com/maps"
NAVIGATION_TIMEOUT_MS = 30000
CONTAINER_WAIT_MS = 5000
STABILIZE_MS = 2000
NO_CONTAINER_GRACE_MS = 3000
STALL_LIMIT = 3
PLACE_PATH = "/maps/place/"

_SCROLL_SCRIPT = """
(selector) => {
    const el = document.querySelector(selector);
    if (el) {
        el.scrollTop = el.scrollHeight;
        return el.scrollHeight;
    }
    return 0;
}
"""

_HREFS_SCRIPT = """
(selector) => Array.from(document.querySelectorAll(selector))
    .map((el) => el.getAttribute('href'))
    .filter((href) => !!href)
"""


class SearchSurfaceError(RuntimeError):
    """Raised when the search input or the results surface never shows up."""


class LinkCollector:
    def __init__(
        self,
        session: SessionManager,
        settings: Settings,
        *,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.selectors = session.selectors
        self.cancel_token = cancel_token or CancelToken()
        self.on_progress = on_progress or (lambda message: None)

    async def collect(self, query: str) -> List[ListingReference]:
        """Return the unique listing hrefs a query produces (possibly none)."""
        async with self.session.page() as page:
            container = await self.open_search(page, query)
            if container:
                self.on_progress("Loading all results...")
                await self.scroll_until_stable(page, container)
            links = await self.extract_links(page)

        if not container and not links:
            raise SearchSurfaceError(f"Results never appeared for query={query!r}")
        self.on_progress(f"Found {len(links)} places to check")
        return links

    async def open_search(self, page: Page, query: str) -> Optional[str]:
        """Submit ``query`` and return the selector of the results container, if any."""
        await page.goto(GOOGLE_MAPS_URL, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
        await self.session.dismiss_consent(page)
        await page.wait_for_timeout(STABILIZE_MS)

        if "consent.google" in page.url:
            logger.debug("Still on consent page, navigating to maps again")
            await page.goto(GOOGLE_MAPS_URL, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
            await page.wait_for_timeout(STABILIZE_MS)

        search_box = None
        for selector in self.selectors.search_input:
            search_box = await page.query_selector(selector)
            if search_box:
                break
        if not search_box:
            raise SearchSurfaceError(
                "Could not find search box. The page may have changed or consent was not accepted."
            )

        await search_box.fill(query)
        await search_box.press("Enter")

        active: Optional[str] = None
        for selector in self.selectors.results_container:
            try:
                await page.wait_for_selector(selector, timeout=CONTAINER_WAIT_MS)
            except PlaywrightTimeoutError:
                continue
            active = selector
            break

        if not active:
            logger.warning("No results container matched for query=%s", query)
            await page.wait_for_timeout(NO_CONTAINER_GRACE_MS)

        await page.wait_for_timeout(STABILIZE_MS)
        return active

    async def scroll_until_stable(self, page: Page, selector: str) -> int:
        """Scroll the container until its height stalls three times in a row.

        Returns the number of scroll attempts made.
        """
        settle_seconds = self.settings.scroll_settle_ms / 1000
        previous_height = 0
        stalls = 0
        attempts = 0

        while attempts < self.settings.max_scrolls and stalls < STALL_LIMIT:
            if self.cancel_token.cancelled:
                logger.info("Scrolling interrupted by cancellation after %d attempts", attempts)
                break

            height = await page.evaluate(_SCROLL_SCRIPT, selector)
            attempts += 1
            await self.cancel_token.sleep(settle_seconds)

            if height == previous_height:
                stalls += 1
            else:
                stalls = 0
            previous_height = height

        if attempts >= self.settings.max_scrolls:
            logger.warning("Scroll safety bound of %d attempts reached", self.settings.max_scrolls)
        logger.debug("Scrolling finished after %d attempts (height=%s)", attempts, previous_height)
        return attempts

    async def extract_links(self, page: Page) -> List[ListingReference]:
        for selector in self.selectors.result_link:
            hrefs = await page.evaluate(_HREFS_SCRIPT, selector)
            links: List[ListingReference] = []
            seen = set()
            for href in hrefs or []:
                if PLACE_PATH in href and href not in seen:
                    seen.add(href)
                    links.append(href)
            if links:
                return links
        return []
