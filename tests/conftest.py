"""Shared fixtures: an in-memory page driver and journey targets."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from storefront_probe.config import CART_URL_PATTERN, JourneyTargets, JourneyTimeouts
from storefront_probe.exceptions import DriverError, DriverTimeoutError

STORE_URL = "https://shop.test"
PRODUCT_URL = "https://shop.test/products/mug"
CART_URL = "https://shop.test/cart"
ADD_SELECTOR = 'button[name="add"]'
DRAWER_SELECTOR = "cart-drawer"
CART_PAGE_SELECTOR = 'form[action="/cart"]'

NEVER = None


class FakePageDriver:
    """Scripted ``PageDriver``.

    ``selector_delays`` maps a selector to the seconds until it appears
    (``NEVER`` for never); unlisted selectors appear immediately.
    ``cart_url_after`` is the delay before the page navigates to the cart.
    ``failures`` maps ``(operation, argument)`` to an exception to raise.
    ``screenshot_failures`` holds selectors whose capture raises; ``None``
    stands for the full page.
    """

    def __init__(
        self,
        nav_delays=None,
        selector_delays=None,
        cart_url_after=NEVER,
        visible=(),
        visible_on_cart=(),
        failures=None,
        screenshot_failures=(),
    ):
        self.nav_delays = nav_delays or {}
        self.selector_delays = selector_delays or {}
        self.cart_url_after = cart_url_after
        self.visible = set(visible)
        self.visible_on_cart = set(visible_on_cart)
        self.failures = failures or {}
        self.screenshot_failures = set(screenshot_failures)
        self.url = "about:blank"
        self.calls = []
        self.screenshots = []
        self.closed = False

    def _maybe_fail(self, operation, argument):
        exc = self.failures.get((operation, argument))
        if exc is not None:
            raise exc

    async def _time_out(self, what, timeout_ms):
        await asyncio.sleep(timeout_ms / 1000)
        raise DriverTimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for {what}", timeout_ms=timeout_ms)

    async def navigate(self, url, wait_until="load", timeout_ms=60_000):
        self.calls.append(("navigate", url, wait_until))
        self._maybe_fail("navigate", url)
        delay = self.nav_delays.get(url, 0)
        if delay * 1000 > timeout_ms:
            await self._time_out(url, timeout_ms)
        await asyncio.sleep(delay)
        self.url = url

    async def wait_for_selector(self, selector, timeout_ms, state="visible"):
        self.calls.append(("wait_for_selector", selector))
        self._maybe_fail("wait_for_selector", selector)
        if selector in self.visible:
            return
        delay = self.selector_delays.get(selector, 0)
        if delay is NEVER or delay * 1000 > timeout_ms:
            await self._time_out(selector, timeout_ms)
        await asyncio.sleep(delay)
        self.visible.add(selector)

    async def wait_for_url(self, pattern, timeout_ms):
        self.calls.append(("wait_for_url", pattern.pattern))
        self._maybe_fail("wait_for_url", pattern.pattern)
        if pattern.search(self.url):
            return
        if self.cart_url_after is NEVER or self.cart_url_after * 1000 > timeout_ms:
            await self._time_out(pattern.pattern, timeout_ms)
        await asyncio.sleep(self.cart_url_after)
        self.url = CART_URL
        self.visible.update(self.visible_on_cart)

    async def click(self, selector, timeout_ms):
        self.calls.append(("click", selector))
        self._maybe_fail("click", selector)

    async def is_visible(self, selector):
        self.calls.append(("is_visible", selector))
        return selector in self.visible

    async def current_url(self):
        return self.url

    async def screenshot(self, path, selector=None, timeout_ms=30_000):
        self.calls.append(("screenshot", selector))
        if selector in self.screenshot_failures:
            raise DriverError(f"screenshot {selector or 'page'}: element detached")
        with open(path, "wb") as f:
            f.write(b"\x89PNG")
        self.screenshots.append((path, selector))

    async def close(self):
        self.calls.append(("close", None))
        self.closed = True


def opener(driver):
    """``open_page`` factory yielding ``driver`` and closing it on exit."""

    @asynccontextmanager
    async def open_page():
        try:
            yield driver
        finally:
            await driver.close()

    return open_page


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def targets():
    return JourneyTargets(
        store_url=STORE_URL,
        product_url=PRODUCT_URL,
        add_to_cart_selector=ADD_SELECTOR,
        cart_drawer_selector=DRAWER_SELECTOR,
        cart_page_selector=CART_PAGE_SELECTOR,
        cart_url_pattern=CART_URL_PATTERN,
    )


@pytest.fixture
def timeouts():
    return JourneyTimeouts(
        navigation_ms=2_000,
        selector_ms=1_000,
        click_ms=1_000,
        drawer_ms=300,
        cart_url_ms=600,
        drawer_capture_ms=200,
        screenshot_ms=1_000,
    )
