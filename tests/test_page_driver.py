"""Tests for the Playwright page driver adapter."""

import re
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from conftest import run
from storefront_probe.exceptions import DriverError, DriverTimeoutError
from storefront_probe.page_driver import PlaywrightPageDriver, open_playwright_page


def _page():
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_url = AsyncMock()
    page.click = AsyncMock()
    page.screenshot = AsyncMock()
    page.close = AsyncMock()
    page.locator.return_value.first.is_visible = AsyncMock(return_value=True)
    page.locator.return_value.first.screenshot = AsyncMock()
    page.url = "https://shop.test/cart"
    return page


class TestPlaywrightPageDriver:
    def test_navigate_waits_for_load_state(self):
        page = _page()
        run(PlaywrightPageDriver(page).navigate("https://shop.test", wait_until="networkidle", timeout_ms=5000))
        page.goto.assert_awaited_once_with("https://shop.test", wait_until="domcontentloaded", timeout=5000)
        page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=5000)

    def test_navigate_domcontentloaded_skips_extra_wait(self):
        page = _page()
        run(PlaywrightPageDriver(page).navigate("https://shop.test", wait_until="domcontentloaded"))
        page.wait_for_load_state.assert_not_awaited()

    def test_timeouts_are_translated(self):
        page = _page()
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 2000ms exceeded.")
        with pytest.raises(DriverTimeoutError) as excinfo:
            run(PlaywrightPageDriver(page).wait_for_selector("cart-drawer", timeout_ms=2000))
        assert excinfo.value.timeout_ms == 2000
        assert "cart-drawer" in str(excinfo.value)

    def test_other_errors_are_driver_errors(self):
        page = _page()
        page.click.side_effect = PlaywrightError("Target page, context or browser has been closed")
        with pytest.raises(DriverError) as excinfo:
            run(PlaywrightPageDriver(page).click("button", timeout_ms=1000))
        assert not isinstance(excinfo.value, DriverTimeoutError)

    def test_wait_for_url_passes_pattern(self):
        page = _page()
        pattern = re.compile(r"/cart")
        run(PlaywrightPageDriver(page).wait_for_url(pattern, timeout_ms=10000))
        page.wait_for_url.assert_awaited_once_with(pattern, timeout=10000)

    def test_is_visible_never_raises(self):
        page = _page()
        page.locator.return_value.first.is_visible.side_effect = PlaywrightError("detached")
        assert run(PlaywrightPageDriver(page).is_visible("cart-drawer")) is False

    def test_current_url(self):
        assert run(PlaywrightPageDriver(_page()).current_url()) == "https://shop.test/cart"

    def test_element_screenshot(self):
        page = _page()
        run(PlaywrightPageDriver(page).screenshot("shot.png", selector="cart-drawer", timeout_ms=1000))
        page.locator.assert_called_once_with("cart-drawer")
        page.locator.return_value.first.screenshot.assert_awaited_once_with(path="shot.png", timeout=1000)
        page.screenshot.assert_not_awaited()

    def test_full_page_screenshot(self):
        page = _page()
        run(PlaywrightPageDriver(page).screenshot("shot.png", timeout_ms=1000))
        page.screenshot.assert_awaited_once_with(path="shot.png", full_page=True, timeout=1000)


def _playwright(page):
    """Mock ``async_playwright()`` whose browser hands out ``page``."""
    events = []
    page.close.side_effect = lambda: events.append("page")
    ctx = MagicMock()
    ctx.new_page = AsyncMock(return_value=page)
    ctx.close = AsyncMock(side_effect=lambda: events.append("context"))
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=ctx)
    browser.close = AsyncMock(side_effect=lambda: events.append("browser"))
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=playwright)
    manager.__aexit__ = AsyncMock(return_value=False)
    return manager, browser, events


class TestOpenPlaywrightPage:
    def test_releases_page_context_and_browser_in_order(self):
        page = _page()
        manager, browser, events = _playwright(page)

        async def use():
            async with open_playwright_page(headless=True) as driver:
                assert isinstance(driver, PlaywrightPageDriver)
                await driver.current_url()

        with patch("storefront_probe.page_driver.async_playwright", return_value=manager):
            run(use())

        assert events == ["page", "context", "browser"]
        page.close.assert_awaited_once()
        manager.__aexit__.assert_awaited_once()

    def test_releases_everything_when_the_journey_raises(self):
        page = _page()
        manager, browser, events = _playwright(page)

        async def use():
            async with open_playwright_page() as driver:
                await driver.click("button", timeout_ms=1000)
                raise RuntimeError("stage blew up")

        with patch("storefront_probe.page_driver.async_playwright", return_value=manager):
            with pytest.raises(RuntimeError, match="stage blew up"):
                run(use())

        assert events == ["page", "context", "browser"]
