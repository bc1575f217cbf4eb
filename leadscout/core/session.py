"""Browser session ownership: one Chromium process, one isolated context."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright

from leadscout.core.config import Settings, get_settings
from leadscout.core.selectors import SelectorConfig, load_selectors

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet"})
CONSENT_APPEAR_MS = 2000
CONSENT_CLICK_SETTLE_MS = 2000


class SessionError(RuntimeError):
    """Raised when the browser session cannot be launched or used."""


async def _filter_route(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class SessionManager:
    """Owns the Playwright browser/context lifecycle for one discovery run."""

    def __init__(self, settings: Optional[Settings] = None, selectors: Optional[SelectorConfig] = None) -> None:
        self.settings = settings or get_settings()
        self.selectors = selectors or load_selectors(self.settings.selectors_file)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    @property
    def launched(self) -> bool:
        return self._context is not None

    async def launch(self) -> None:
        if self.launched:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.settings.headless)
            self._context = await self._browser.new_context(
                viewport={"width": self.settings.viewport_width, "height": self.settings.viewport_height},
                locale=self.settings.locale,
                user_agent=self.settings.user_agent,
            )
            await self._context.route("**/*", _filter_route)
        except Exception as exc:
            await self.close()
            raise SessionError(f"Unable to launch browser session: {exc}") from exc
        logger.info("Browser session launched (headless=%s)", self.settings.headless)

    async def close(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Ignoring error while closing context: %s", exc)
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Ignoring error while closing browser: %s", exc)
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Ignoring error while stopping playwright: %s", exc)
            self._playwright = None

    async def new_page(self) -> Page:
        if self._context is None:
            raise SessionError("Session is not launched")
        return await self._context.new_page()

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Yield a fresh page that is closed on every exit path."""
        page = await self.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Ignoring error while closing page: %s", exc)

    async def dismiss_consent(self, page: Page) -> bool:
        """Click the first consent button found; absence of a dialog is not an error."""
        try:
            await page.wait_for_timeout(CONSENT_APPEAR_MS)
            for selector in self.selectors.consent_buttons:
                button = await page.query_selector(selector)
                if button:
                    await button.click()
                    await page.wait_for_timeout(CONSENT_CLICK_SETTLE_MS)
                    logger.debug("Dismissed consent dialog via %s", selector)
                    return True
        except Exception as exc:  # noqa: BLE001
            logger.debug("Consent dialog handling skipped: %s", exc)
        return False

    async def __aenter__(self) -> "SessionManager":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()
