"""
Page driver: the scraping primitives adapters and the form filler call into.

Wraps a Playwright async Page. Lookups return None or an empty list instead of
raising, visibility checks never raise, and every wait is bounded by a timeout
that fails with ElementTimeoutError.
"""

import asyncio
import logging
from typing import Any, List, Optional, Sequence, Union

from playwright.async_api import Page, ElementHandle
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import Error as PlaywrightError

from .exceptions import ElementTimeoutError

logger = logging.getLogger(__name__)

Selector = Union[str, Sequence[str]]

# Height of the scroll container (document when no selector is given).
_SCROLL_HEIGHT_JS = """(selector) => {
    const el = selector ? document.querySelector(selector) : document.scrollingElement;
    return el ? el.scrollHeight : 0;
}"""

_SCROLL_TO_BOTTOM_JS = """(selector) => {
    const el = selector ? document.querySelector(selector) : document.scrollingElement;
    if (el) { el.scrollTop = el.scrollHeight; }
    window.scrollTo(0, document.body.scrollHeight);
}"""


def _as_list(selector: Selector) -> List[str]:
    if isinstance(selector, str):
        return [selector]
    return list(selector)


class PageDriver:
    """Thin helper layer over one Playwright page."""

    def __init__(self, page: Page, default_timeout_ms: int = 10000):
        self.page = page
        self.default_timeout_ms = default_timeout_ms

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, timeout_ms: int = 30000):
        await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    # ========================================================================
    # Lookup
    # ========================================================================

    async def query(self, selector: Selector, root: Any = None) -> Optional[ElementHandle]:
        """First element matching any of the selectors, in order."""
        scope = self.page if root is None else root
        for sel in _as_list(selector):
            try:
                element = await scope.query_selector(sel)
            except PlaywrightError as e:
                logger.debug(f"Query failed for {sel}: {e}")
                continue
            if element:
                return element
        return None

    async def query_all(self, selector: Selector, root: Any = None) -> List[ElementHandle]:
        """All elements for the first selector that matches anything."""
        scope = self.page if root is None else root
        for sel in _as_list(selector):
            try:
                elements = await scope.query_selector_all(sel)
            except PlaywrightError as e:
                logger.debug(f"Query failed for {sel}: {e}")
                continue
            if elements:
                return list(elements)
        return []

    async def get_visible(self, selector: Selector, root: Any = None) -> Optional[ElementHandle]:
        """First visible element matching the selectors."""
        scope = self.page if root is None else root
        for sel in _as_list(selector):
            try:
                elements = await scope.query_selector_all(sel)
            except PlaywrightError:
                continue
            for element in elements:
                if await self.is_visible(element):
                    return element
        return None

    async def find_by_text(
        self,
        selector: Selector,
        text: str,
        root: Any = None,
        exact: bool = True,
    ) -> Optional[ElementHandle]:
        """First element matching the selectors whose text equals (or contains) `text`."""
        wanted = text.strip().lower()
        for element in await self._all_matches(selector, root):
            content = (await self.text(element)).lower()
            if content == wanted or (not exact and wanted in content):
                return element
        return None

    async def _all_matches(self, selector: Selector, root: Any = None) -> List[ElementHandle]:
        scope = self.page if root is None else root
        matches = []
        for sel in _as_list(selector):
            try:
                matches.extend(await scope.query_selector_all(sel))
            except PlaywrightError:
                continue
        return matches

    # ========================================================================
    # State
    # ========================================================================

    async def is_visible(self, element: Optional[ElementHandle]) -> bool:
        if element is None:
            return False
        try:
            return await element.is_visible()
        except PlaywrightError:
            return False

    async def is_enabled(self, element: Optional[ElementHandle]) -> bool:
        if element is None:
            return False
        try:
            return await element.is_enabled()
        except PlaywrightError:
            return False

    async def is_checked(self, element: ElementHandle) -> bool:
        try:
            return await element.is_checked()
        except PlaywrightError:
            return False

    async def text(self, element: Optional[ElementHandle]) -> str:
        """Whitespace-normalized text content, empty when missing."""
        if element is None:
            return ""
        try:
            content = await element.text_content()
        except PlaywrightError:
            return ""
        return " ".join((content or "").split())

    async def attribute(self, element: Optional[ElementHandle], name: str) -> Optional[str]:
        if element is None:
            return None
        try:
            return await element.get_attribute(name)
        except PlaywrightError:
            return None

    async def input_value(self, element: ElementHandle) -> str:
        try:
            return await element.input_value()
        except PlaywrightError:
            return ""

    # ========================================================================
    # Interaction
    # ========================================================================

    async def click(self, element: ElementHandle):
        await element.click()

    async def fill(self, element: ElementHandle, value: str):
        """Set the value and fire the events client-side validation listens for."""
        await element.fill(value)
        for event in ("input", "change", "blur"):
            await element.dispatch_event(event)

    async def check(self, element: ElementHandle):
        # Radio inputs are often visually hidden behind a styled label.
        await element.check(force=True)
        await element.dispatch_event("change")

    async def uncheck(self, element: ElementHandle):
        await element.uncheck(force=True)
        await element.dispatch_event("change")

    async def select_option(self, element: ElementHandle, label: str):
        await element.select_option(label=label)
        await element.dispatch_event("change")

    async def option_labels(self, select: ElementHandle) -> List[str]:
        return [await self.text(option) for option in await select.query_selector_all("option")]

    # ========================================================================
    # Waiting
    # ========================================================================

    async def wait(self, ms: float):
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    async def wait_for_element(
        self,
        selector: Selector,
        timeout_ms: Optional[int] = None,
    ) -> ElementHandle:
        """Wait until an element matching the selectors is attached, or raise ElementTimeoutError."""
        timeout_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        combined = ", ".join(_as_list(selector))
        try:
            element = await self.page.wait_for_selector(combined, state="attached", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            raise ElementTimeoutError(combined, timeout_ms)
        if element is None:
            raise ElementTimeoutError(combined, timeout_ms)
        return element

    async def scroll_to_bottom(self, container: Optional[str] = None, settle_ms: int = 2000) -> bool:
        """Scroll the container (or document) to the bottom; True when it grew."""
        before = await self.page.evaluate(_SCROLL_HEIGHT_JS, container)
        await self.page.evaluate(_SCROLL_TO_BOTTOM_JS, container)
        await self.wait(settle_ms)
        after = await self.page.evaluate(_SCROLL_HEIGHT_JS, container)
        return (after or 0) > (before or 0)
