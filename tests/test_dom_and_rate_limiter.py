"""
Page driver primitives and the local token bucket.
"""

import pytest

from core.dom import PageDriver
from core.exceptions import ElementNotFoundError, ElementTimeoutError
from core.rate_limiter import RateLimiter

from fake_page import FakeElement, FakePage


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestPageDriver:
    @pytest.mark.asyncio
    async def test_query_tries_selectors_in_order(self):
        page = FakePage(children={".second": [FakeElement(text="found")]})
        driver = PageDriver(page)
        element = await driver.query([".first", ".second"])
        assert await driver.text(element) == "found"
        assert await driver.query(".missing") is None

    @pytest.mark.asyncio
    async def test_query_all_uses_first_selector_with_matches(self):
        page = FakePage(children={
            ".a": [],
            ".b": [FakeElement(), FakeElement()],
            ".c": [FakeElement()],
        })
        assert len(await PageDriver(page).query_all([".a", ".b", ".c"])) == 2

    @pytest.mark.asyncio
    async def test_get_visible_skips_hidden_elements(self):
        hidden, shown = FakeElement(text="hidden", visible=False), FakeElement(text="shown")
        driver = PageDriver(FakePage(children={"button": [hidden, shown]}))
        assert await driver.get_visible("button") is shown

    @pytest.mark.asyncio
    async def test_find_by_text(self):
        buttons = [FakeElement(text="Cancel"), FakeElement(text="  Discard ")]
        driver = PageDriver(FakePage(children={"button": buttons}))
        assert await driver.find_by_text("button", "Discard") is buttons[1]
        assert await driver.find_by_text("button", "disc") is None
        assert await driver.find_by_text("button", "disc", exact=False) is buttons[1]

    @pytest.mark.asyncio
    async def test_text_normalizes_whitespace(self):
        driver = PageDriver(FakePage())
        assert await driver.text(FakeElement(text="  Senior\n   Engineer ")) == "Senior Engineer"
        assert await driver.text(None) == ""

    @pytest.mark.asyncio
    async def test_state_checks_on_missing_elements(self):
        driver = PageDriver(FakePage())
        assert not await driver.is_visible(None)
        assert not await driver.is_enabled(None)
        assert await driver.attribute(None, "href") is None

    @pytest.mark.asyncio
    async def test_wait_for_element_times_out(self):
        driver = PageDriver(FakePage(), default_timeout_ms=50)
        with pytest.raises(ElementTimeoutError) as exc_info:
            await driver.wait_for_element([".modal", ".dialog"])
        assert exc_info.value.timeout_ms == 50
        assert isinstance(exc_info.value, ElementNotFoundError)

    @pytest.mark.asyncio
    async def test_wait_for_element_accepts_any_selector(self):
        dialog = FakeElement()
        driver = PageDriver(FakePage(children={".dialog": [dialog]}))
        assert await driver.wait_for_element([".modal", ".dialog"]) is dialog

    @pytest.mark.asyncio
    async def test_scroll_reports_growth(self):
        page = FakePage(heights=[1000, 1800, 1800, 1800])
        driver = PageDriver(page)
        assert await driver.scroll_to_bottom(".results", settle_ms=0)
        assert not await driver.scroll_to_bottom(".results", settle_ms=0)
        assert page.scrolls == 2


class TestRateLimiter:
    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(capacity=0)
        with pytest.raises(ValueError):
            RateLimiter(capacity=1, window_seconds=0)

    def test_burst_then_throttle(self):
        clock = FakeClock()
        limiter = RateLimiter(capacity=3, window_seconds=60, clock=clock)

        for _ in range(3):
            assert limiter.can_perform_action()
            limiter.record_action()

        assert not limiter.can_perform_action()
        assert limiter.remaining_actions() == 0
        assert limiter.time_until_next_action() == pytest.approx(20.0)

    def test_refills_over_time(self):
        clock = FakeClock()
        limiter = RateLimiter(capacity=2, window_seconds=60, clock=clock)
        limiter.record_action()
        limiter.record_action()

        clock.advance(30)
        assert limiter.can_perform_action()
        assert limiter.remaining_actions() == 1
        assert limiter.time_until_next_action() == 0.0

    def test_refill_is_capped_at_capacity(self):
        clock = FakeClock()
        limiter = RateLimiter(capacity=2, window_seconds=60, clock=clock)
        clock.advance(3600)
        assert limiter.remaining_actions() == 2

    def test_recording_past_empty_goes_into_debt(self):
        clock = FakeClock()
        limiter = RateLimiter(capacity=1, window_seconds=60, clock=clock)
        limiter.record_action()
        limiter.record_action()
        assert limiter.time_until_next_action() == pytest.approx(120.0)
        assert limiter.get_stats()["total_actions"] == 2

    def test_reset(self):
        limiter = RateLimiter(capacity=2, window_seconds=60, clock=FakeClock())
        limiter.record_action()
        limiter.record_action()
        limiter.reset()
        assert limiter.remaining_actions() == 2

    def test_from_settings_uses_hourly_limit(self, fast_settings):
        limiter = RateLimiter.from_settings(fast_settings)
        assert limiter.capacity == 30
        assert limiter.window_seconds == 3600.0
