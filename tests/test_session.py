import types
from unittest.mock import AsyncMock, MagicMock

import pytest

from leadscout.core import session as session_module
from leadscout.core.cancel import CancelToken
from leadscout.core.config import Settings
from leadscout.core.selectors import DEFAULT_SELECTORS
from leadscout.core.session import SessionError, SessionManager


def fake_playwright(launch_error=None):
    context = MagicMock()
    context.route = AsyncMock()
    context.close = AsyncMock()
    context.new_page = AsyncMock(return_value=MagicMock(close=AsyncMock()))

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_error)
    playwright.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    return starter, playwright, browser, context


def make_manager():
    return SessionManager(Settings(headless=False, locale="es-ES"), DEFAULT_SELECTORS)


@pytest.mark.asyncio
async def test_launch_configures_context_and_close_is_idempotent(monkeypatch):
    starter, playwright, browser, context = fake_playwright()
    monkeypatch.setattr(session_module, "async_playwright", lambda: starter)
    manager = make_manager()

    async with manager:
        assert manager.launched
        await manager.launch()
        async with manager.page() as page:
            assert page is context.new_page.return_value

    playwright.chromium.launch.assert_awaited_once_with(headless=False)
    kwargs = browser.new_context.await_args.kwargs
    assert kwargs["locale"] == "es-ES"
    assert kwargs["viewport"] == {"width": 1280, "height": 720}
    context.route.assert_awaited_once()
    page.close.assert_awaited_once()
    assert not manager.launched

    await manager.close()
    context.close.assert_awaited_once()
    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_launch_failure_raises_session_error_and_cleans_up(monkeypatch):
    starter, playwright, _, _ = fake_playwright(launch_error=RuntimeError("Executable doesn't exist"))
    monkeypatch.setattr(session_module, "async_playwright", lambda: starter)
    manager = make_manager()

    with pytest.raises(SessionError, match="Executable"):
        await manager.launch()

    playwright.stop.assert_awaited_once()
    assert not manager.launched


@pytest.mark.asyncio
async def test_new_page_requires_launch():
    with pytest.raises(SessionError):
        await make_manager().new_page()


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_type,blocked", [("image", True), ("font", True), ("document", False), ("xhr", False)])
async def test_filter_route_blocks_heavy_resources(resource_type, blocked):
    route = MagicMock(abort=AsyncMock(), continue_=AsyncMock())
    route.request = types.SimpleNamespace(resource_type=resource_type)

    await session_module._filter_route(route)

    assert route.abort.await_count == int(blocked)
    assert route.continue_.await_count == int(not blocked)


@pytest.mark.asyncio
async def test_dismiss_consent_clicks_first_match():
    button = MagicMock(click=AsyncMock())
    page = MagicMock(wait_for_timeout=AsyncMock())
    page.query_selector = AsyncMock(side_effect=lambda selector: button if "Aceptar todo" in selector else None)

    assert await make_manager().dismiss_consent(page) is True
    button.click.assert_awaited_once()


@pytest.mark.asyncio
async def test_dismiss_consent_without_dialog():
    page = MagicMock(wait_for_timeout=AsyncMock(), query_selector=AsyncMock(return_value=None))

    assert await make_manager().dismiss_consent(page) is False


@pytest.mark.asyncio
async def test_dismiss_consent_ignores_page_errors():
    page = MagicMock(wait_for_timeout=AsyncMock(side_effect=RuntimeError("page closed")))

    assert await make_manager().dismiss_consent(page) is False


@pytest.mark.asyncio
async def test_cancel_token_sleep():
    token = CancelToken()
    assert await token.sleep(0) is True
    assert await token.sleep(0.01) is True

    token.cancel()
    assert token.cancelled is True
    assert await token.sleep(5) is False
