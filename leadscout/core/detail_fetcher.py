"""Open one listing, read its facts and decide whether it is a lead."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional, Set

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from leadscout.core.config import Settings
from leadscout.core.extractor import PageSnapshot, extract_phone, parse_snapshot
from leadscout.core.models import ListingRecord, ListingReference
from leadscout.core.session import SessionManager
from leadscout.vendors.duckduckgo import find_business_email

logger = logging.getLogger(__name__)

GOOGLE_BASE_URL = "https://www.google.com"
DETAIL_TIMEOUT_MS = 15000
HEADING_WAIT_MS = 5000

EmailFinder = Callable[[str, Optional[str]], Optional[str]]

_BODY_TEXT_SCRIPT = "() => (document.body ? document.body.innerText : '')"
_PANEL_TEXT_SCRIPT = """
(selector) => {
    const panel = document.querySelector(selector);
    return panel ? panel.textContent : '';
}
"""


class ListingRegistry:
    """Names already handled during the current run (case-insensitive).

    ``claim`` is a single check-and-add with no await inside, so workers on the
    same event loop can never both claim one name.
    """

    def __init__(self) -> None:
        self._names: Set[str] = set()

    @staticmethod
    def _normalize(name: str) -> str:
        return name.strip().lower()

    def claim(self, name: str) -> bool:
        key = self._normalize(name)
        if key in self._names:
            return False
        self._names.add(key)
        return True

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._normalize(name) in self._names

    def __len__(self) -> int:
        return len(self._names)


def absolute_url(reference: ListingReference) -> str:
    if reference.startswith("http"):
        return reference
    return f"{GOOGLE_BASE_URL}{reference}"


class DetailFetcher:
    def __init__(
        self,
        session: SessionManager,
        settings: Settings,
        registry: Optional[ListingRegistry] = None,
        *,
        email_finder: Optional[EmailFinder] = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.selectors = session.selectors
        self.registry = registry if registry is not None else ListingRegistry()
        self.email_finder = email_finder or find_business_email

    async def fetch(self, reference: ListingReference) -> Optional[ListingRecord]:
        """Return the listing as a record if it qualifies as a lead, else None."""
        try:
            async with self.session.page() as page:
                snapshot = await self.snapshot(page, reference)
            return await self.gate(parse_snapshot(snapshot))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error getting place details for %s: %s", reference, exc)
            return None

    async def gate(self, record: ListingRecord) -> Optional[ListingRecord]:
        # Dedup runs before the qualifying check so repeats never cost a second email lookup.
        if record.name and not self.registry.claim(record.name):
            logger.debug("Skipping already processed listing %s", record.name)
            return None

        if not record.qualifies:
            return None

        if not record.emails and self.settings.email_lookup:
            email = await self.lookup_email(record)
            if email:
                record = record.with_emails([email])
        return record

    async def lookup_email(self, record: ListingRecord) -> Optional[str]:
        try:
            return await asyncio.to_thread(self.email_finder, record.name, record.address)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Email lookup for %s failed: %s", record.name, exc)
            return None

    async def snapshot(self, page: Page, reference: ListingReference) -> PageSnapshot:
        await page.goto(absolute_url(reference), wait_until="domcontentloaded", timeout=DETAIL_TIMEOUT_MS)
        await page.wait_for_timeout(self.settings.detail_settle_ms)
        try:
            await page.wait_for_selector(self.selectors.place_name[0], timeout=HEADING_WAIT_MS)
        except PlaywrightTimeoutError:
            logger.debug("Heading did not appear for %s", reference)

        heading = await self._first_text(page, self.selectors.place_name)
        body_text = await page.evaluate(_BODY_TEXT_SCRIPT) or ""
        phone_text = await self._first_text(page, self.selectors.place_phone)
        panel_text = ""
        if not extract_phone(phone_text):
            panel_text = await self._panel_text(page)
        address_text = await self._first_text(page, self.selectors.place_address)
        has_website = await self._any_present(page, self.selectors.place_website)

        return PageSnapshot(
            url=page.url,
            heading=heading,
            body_text=body_text,
            panel_text=panel_text,
            phone_text=phone_text,
            address_text=address_text,
            has_website_element=has_website,
        )

    async def _first_text(self, page: Page, selectors: Iterable[str]) -> Optional[str]:
        for selector in selectors:
            element = await page.query_selector(selector)
            if element:
                text = await element.text_content()
                if text and text.strip():
                    return text
        return None

    async def _any_present(self, page: Page, selectors: Iterable[str]) -> bool:
        for selector in selectors:
            if await page.query_selector(selector):
                return True
        return False

    async def _panel_text(self, page: Page) -> str:
        for selector in self.selectors.detail_panel:
            text = await page.evaluate(_PANEL_TEXT_SCRIPT, selector)
            if text:
                return text
        return ""
