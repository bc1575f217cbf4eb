from contextlib import asynccontextmanager

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from leadscout.core import detail_fetcher
from leadscout.core.config import Settings
from leadscout.core.detail_fetcher import DetailFetcher, ListingRegistry, absolute_url
from leadscout.core.models import ListingRecord
from leadscout.core.selectors import DEFAULT_SELECTORS

PLACE_URL = "https://www.google.com/maps/place/Cafe+A/data=!4m7!3m6!1s0x1:0x2!19sChIJcafeA"


class DummyElement:
    def __init__(self, text):
        self.text = text

    async def text_content(self):
        return self.text


class DummyPage:
    def __init__(self, *, elements=None, body_text="", panel_text=""):
        self.elements = elements or {}
        self.body_text = body_text
        self.panel_text = panel_text
        self.url = "about:blank"

    async def goto(self, url, **kwargs):
        self.url = PLACE_URL if url.endswith("/maps/place/Cafe+A/") else url

    async def wait_for_timeout(self, ms):
        return None

    async def wait_for_selector(self, selector, timeout=None):
        if selector not in self.elements:
            raise PlaywrightTimeoutError(f"Timeout waiting for {selector}")

    async def query_selector(self, selector):
        return self.elements.get(selector)

    async def evaluate(self, script, arg=None):
        if script is detail_fetcher._BODY_TEXT_SCRIPT:
            return self.body_text
        return self.panel_text


class DummySession:
    selectors = DEFAULT_SELECTORS

    def __init__(self, page=None, error=None):
        self._page = page
        self._error = error

    @asynccontextmanager
    async def page(self):
        if self._error:
            raise self._error
        yield self._page


class RecordingFinder:
    def __init__(self, result="owner@gmail.com", error=None):
        self.result = result
        self.error = error
        self.calls = []

    def __call__(self, name, address):
        self.calls.append((name, address))
        if self.error:
            raise self.error
        return self.result


def make_fetcher(session=None, *, email_lookup=True, finder=None):
    return DetailFetcher(
        session or DummySession(),
        Settings(detail_settle_ms=0, email_lookup=email_lookup),
        email_finder=finder or RecordingFinder(),
    )


def test_registry_claims_names_case_insensitively():
    registry = ListingRegistry()

    assert registry.claim("Cafe A") is True
    assert registry.claim("  cafe a ") is False
    assert "CAFE A" in registry
    assert len(registry) == 1


def test_absolute_url():
    assert absolute_url("/maps/place/Cafe+A/") == "https://www.google.com/maps/place/Cafe+A/"
    assert absolute_url("https://www.google.com/maps/place/X/") == "https://www.google.com/maps/place/X/"


@pytest.mark.asyncio
async def test_gate_emits_duplicate_name_once():
    fetcher = make_fetcher(email_lookup=False)

    first = await fetcher.gate(ListingRecord(name="Cafe A", address="Gran Via 1, Madrid, Spain"))
    second = await fetcher.gate(ListingRecord(name="Cafe A", address="Gran Via 1, Madrid, Spain"))

    assert first is not None
    assert second is None


@pytest.mark.asyncio
async def test_gate_registers_names_of_rejected_listings():
    finder = RecordingFinder()
    fetcher = make_fetcher(finder=finder)

    assert await fetcher.gate(ListingRecord(name="Bar B", has_website=True)) is None
    assert await fetcher.gate(ListingRecord(name="Bar B")) is None
    assert "bar b" in fetcher.registry
    assert finder.calls == []


@pytest.mark.asyncio
async def test_gate_looks_up_email_only_for_qualifying_records_without_one():
    finder = RecordingFinder()
    fetcher = make_fetcher(finder=finder)

    enriched = await fetcher.gate(ListingRecord(name="Cafe A", address="Gran Via 1, Madrid, Spain"))
    has_email = await fetcher.gate(ListingRecord(name="Bar B", emails=("hola@bar-b.es",)))
    closed = await fetcher.gate(ListingRecord(name="Taberna C", is_active=False))

    assert enriched.emails == ("owner@gmail.com",)
    assert has_email.emails == ("hola@bar-b.es",)
    assert closed is None
    assert finder.calls == [("Cafe A", "Gran Via 1, Madrid, Spain")]


@pytest.mark.asyncio
async def test_gate_skips_lookup_when_disabled():
    finder = RecordingFinder()
    fetcher = make_fetcher(email_lookup=False, finder=finder)

    record = await fetcher.gate(ListingRecord(name="Cafe A"))

    assert record.emails == ()
    assert finder.calls == []


@pytest.mark.asyncio
async def test_gate_survives_failing_lookup():
    fetcher = make_fetcher(finder=RecordingFinder(error=RuntimeError("blocked")))

    record = await fetcher.gate(ListingRecord(name="Cafe A"))

    assert record == ListingRecord(name="Cafe A")


@pytest.mark.asyncio
async def test_fetch_reads_listing_page():
    page = DummyPage(
        elements={
            "h1": DummyElement("Cafe A"),
            'button[data-item-id^="phone:"]': DummyElement("+34 600 111 222"),
            'button[data-item-id="address"]': DummyElement("Gran Via 1, 28013 Madrid, Spain"),
        },
        body_text="Cafe A\n4.6 stars\nCoffee shop",
    )
    finder = RecordingFinder(result=None)
    fetcher = make_fetcher(DummySession(page), finder=finder)

    record = await fetcher.fetch("/maps/place/Cafe+A/")

    assert record == ListingRecord(
        name="Cafe A",
        address="Gran Via 1, 28013 Madrid, Spain",
        phone="+34 600 111 222",
        has_website=False,
        is_active=True,
        place_id="ChIJcafeA",
    )
    assert finder.calls == [("Cafe A", "Gran Via 1, 28013 Madrid, Spain")]


@pytest.mark.asyncio
async def test_fetch_falls_back_to_panel_phone():
    page = DummyPage(
        elements={"h1": DummyElement("Cafe A")},
        panel_text="Cafe A · Coffee shop · 555-123-4567 · Open now",
    )
    fetcher = make_fetcher(DummySession(page), email_lookup=False)

    record = await fetcher.fetch("/maps/place/Cafe+A/")

    assert record.phone == "555-123-4567"


@pytest.mark.asyncio
async def test_fetch_rejects_listing_with_website():
    page = DummyPage(
        elements={
            "h1": DummyElement("Cafe A"),
            'a[data-item-id="authority"]': DummyElement("cafe-a.es"),
        }
    )
    fetcher = make_fetcher(DummySession(page))

    assert await fetcher.fetch("/maps/place/Cafe+A/") is None


@pytest.mark.asyncio
async def test_fetch_rejects_closed_listing():
    page = DummyPage(elements={"h1": DummyElement("Cafe A")}, body_text="Cafe A\nPermanently closed")
    fetcher = make_fetcher(DummySession(page))

    assert await fetcher.fetch("/maps/place/Cafe+A/") is None
    assert "Cafe A" in fetcher.registry


@pytest.mark.asyncio
async def test_fetch_returns_none_on_page_failure(caplog):
    fetcher = make_fetcher(DummySession(error=RuntimeError("Target closed")))

    with caplog.at_level("WARNING"):
        assert await fetcher.fetch("/maps/place/Cafe+A/") is None

    assert "Target closed" in caplog.text
