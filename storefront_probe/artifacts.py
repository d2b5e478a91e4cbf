"""Screenshot capture for finished journeys."""

import logging
import os
import uuid
from datetime import datetime, timezone
from urllib.parse import urlparse

from .models import CartMode

logger = logging.getLogger(__name__)

LABEL_DRAWER = "cart-drawer"
LABEL_CART_PAGE = "cart-page"
LABEL_FAILURE = "failure"


def safe(name):
    invalid = "<>:\"/\\|?*"
    table = str.maketrans({ch: "_" for ch in invalid})
    return name.translate(table).replace(" ", "_").replace("{", "").replace("}", "")


def safe_url_name(url):
    host = urlparse(url).netloc or url.replace("https://", "").replace("http://", "")
    return safe(host)


def screenshot_filename(label, store_url, now=None):
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%dT%H%M%S%f")
    return f"{label}-{safe_url_name(store_url)}-{timestamp}-{uuid.uuid4().hex[:6]}.png"


class ArtifactCapturer:
    """Takes at most one screenshot per run, chosen by cart mode and outcome.

    Capture errors are logged and never raised: a run without a screenshot
    is still a complete run.
    """

    def __init__(self, screenshot_dir, targets, timeouts):
        self.screenshot_dir = screenshot_dir
        self.targets = targets
        self.timeouts = timeouts

    def _target_path(self, label):
        os.makedirs(self.screenshot_dir, exist_ok=True)
        return os.path.join(self.screenshot_dir, screenshot_filename(label, self.targets.store_url))

    async def _full_page(self, driver, path):
        try:
            await driver.screenshot(path, timeout_ms=self.timeouts.screenshot_ms)
        except Exception as exc:
            logger.warning("Full page screenshot failed path=%s error=%s", path, exc)
            return None
        return path

    async def capture_success(self, driver, cart_mode):
        if cart_mode is CartMode.DRAWER:
            return await self._capture_drawer(driver)
        if cart_mode is CartMode.PAGE:
            return await self._capture_cart_page(driver)
        return await self.capture_failure(driver)

    async def _capture_drawer(self, driver):
        try:
            path = self._target_path(LABEL_DRAWER)
        except OSError as exc:
            logger.warning("Cannot prepare screenshot directory error=%s", exc)
            return None
        selector = self.targets.cart_drawer_selector
        try:
            await driver.wait_for_selector(selector, timeout_ms=self.timeouts.drawer_capture_ms)
            await driver.screenshot(path, selector=selector, timeout_ms=self.timeouts.screenshot_ms)
        except Exception as exc:
            logger.info("Drawer screenshot failed, capturing full page error=%s", exc)
            return await self._full_page(driver, path)
        return path

    async def _capture_cart_page(self, driver):
        try:
            path = self._target_path(LABEL_CART_PAGE)
        except OSError as exc:
            logger.warning("Cannot prepare screenshot directory error=%s", exc)
            return None
        selector = self.targets.cart_page_selector
        try:
            if await driver.is_visible(selector):
                await driver.screenshot(path, selector=selector, timeout_ms=self.timeouts.screenshot_ms)
            else:
                await driver.screenshot(path, timeout_ms=self.timeouts.screenshot_ms)
        except Exception as exc:
            logger.info("Cart page screenshot failed, capturing full page error=%s", exc)
            return await self._full_page(driver, path)
        return path

    async def capture_failure(self, driver):
        try:
            path = self._target_path(LABEL_FAILURE)
        except OSError as exc:
            logger.warning("Cannot prepare screenshot directory error=%s", exc)
            return None
        return await self._full_page(driver, path)
