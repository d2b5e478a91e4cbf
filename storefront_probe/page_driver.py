"""Page driver capability used by the journey engine, and its Playwright adapter."""

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .exceptions import DriverError, DriverTimeoutError

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 800}


class PageDriver(Protocol):
    """Asynchronous page operations the journey engine relies on.

    Every waiting operation is bounded by its own timeout and raises
    ``DriverTimeoutError`` when it expires. ``is_visible`` never raises.
    """

    async def navigate(self, url: str, wait_until: str = "load", timeout_ms: int = 60_000) -> None: ...

    async def wait_for_selector(self, selector: str, timeout_ms: int, state: str = "visible") -> None: ...

    async def wait_for_url(self, pattern, timeout_ms: int) -> None: ...

    async def click(self, selector: str, timeout_ms: int) -> None: ...

    async def is_visible(self, selector: str) -> bool: ...

    async def current_url(self) -> str: ...

    async def screenshot(self, path: str, selector: Optional[str] = None, timeout_ms: int = 30_000) -> None: ...

    async def close(self) -> None: ...


@contextmanager
def _translate_errors(operation, timeout_ms=None):
    try:
        yield
    except PlaywrightTimeoutError as exc:
        raise DriverTimeoutError(f"{operation}: {exc}", timeout_ms=timeout_ms) from exc
    except PlaywrightError as exc:
        raise DriverError(f"{operation}: {exc}") from exc


class PlaywrightPageDriver:
    """``PageDriver`` backed by a ``playwright.async_api.Page``."""

    def __init__(self, page):
        self._page = page

    async def navigate(self, url, wait_until="load", timeout_ms=60_000):
        with _translate_errors(f"goto {url}", timeout_ms):
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            if wait_until != "domcontentloaded":
                await self._page.wait_for_load_state(wait_until, timeout=timeout_ms)

    async def wait_for_selector(self, selector, timeout_ms, state="visible"):
        with _translate_errors(f"wait for {selector}", timeout_ms):
            await self._page.wait_for_selector(selector, state=state, timeout=timeout_ms)

    async def wait_for_url(self, pattern, timeout_ms):
        with _translate_errors(f"wait for url {getattr(pattern, 'pattern', pattern)}", timeout_ms):
            await self._page.wait_for_url(pattern, timeout=timeout_ms)

    async def click(self, selector, timeout_ms):
        with _translate_errors(f"click {selector}", timeout_ms):
            await self._page.click(selector, timeout=timeout_ms)

    async def is_visible(self, selector):
        try:
            return await self._page.locator(selector).first.is_visible()
        except PlaywrightError as exc:
            logger.debug("Visibility check failed selector=%s error=%s", selector, exc)
            return False

    async def current_url(self):
        return self._page.url

    async def screenshot(self, path, selector=None, timeout_ms=30_000):
        if selector:
            with _translate_errors(f"screenshot {selector}", timeout_ms):
                await self._page.locator(selector).first.screenshot(path=path, timeout=timeout_ms)
            return
        with _translate_errors("screenshot page", timeout_ms):
            await self._page.screenshot(path=path, full_page=True, timeout=timeout_ms)

    async def close(self):
        await self._page.close()


@asynccontextmanager
async def open_playwright_page(headless=True):
    """Launch Chromium and yield a driver for a fresh page.

    The page, context and browser are closed on every exit path, in that
    order.
    """
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless)
        try:
            ctx = await browser.new_context(viewport=VIEWPORT)
            try:
                driver = PlaywrightPageDriver(await ctx.new_page())
                try:
                    yield driver
                finally:
                    await driver.close()
            finally:
                await ctx.close()
        finally:
            await browser.close()
