"""Buyer journey engine: timed steps, cart detection race and the journey runner."""

import asyncio
import functools
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .artifacts import ArtifactCapturer
from .config import JourneyTimeouts
from .exceptions import CartNotDetectedError, CartVerificationError
from .models import CartMode, JourneyLog, RunRecord, Severity, StepResult
from .records import build_run_record, classify_severity
from .summary import diagnose

logger = logging.getLogger(__name__)

STEP_HOMEPAGE = "homepage"
STEP_PRODUCT_PAGE = "product_page"
STEP_ADD_TO_CART = "add_to_cart"
STEP_CART_LOADED = "cart_loaded"
STEP_FATAL = "fatal"

# ================= ERRORS =================


def clean_error_message(exc):
    """First line of an exception message, without Playwright's call log."""
    text = str(exc).strip()
    marker = "==========="
    if marker in text:
        text = text.split(marker, 1)[0].strip()
    if "Call log:" in text:
        text = text.split("Call log:", 1)[0].strip()
    if "\n" in text:
        text = text.splitlines()[0].strip()
    return text or type(exc).__name__


# ================= STEP TIMER =================


class StepTimer:
    """Runs journey steps and records exactly one ``StepResult`` per step."""

    def __init__(self, log: JourneyLog, clock=time.monotonic):
        self._log = log
        self._clock = clock

    def _elapsed_ms(self, start):
        return int(round((self._clock() - start) * 1000))

    async def run(self, name, action):
        """Await ``action()`` once and record how long it took.

        The action's return value is passed through. A failing action is
        recorded with ``ok=False`` and its error message, then re-raised.
        """
        start = self._clock()
        try:
            result = await action()
        except BaseException as exc:
            elapsed = self._elapsed_ms(start)
            error = clean_error_message(exc)
            self._log.append(StepResult(name=name, ok=False, elapsed_ms=elapsed, error=error))
            logger.warning(
                "Step failed step=%s elapsed_ms=%d error=%s",
                name,
                elapsed,
                error,
                extra={"step": name, "elapsed_ms": elapsed},
            )
            raise
        elapsed = self._elapsed_ms(start)
        self._log.append(StepResult(name=name, ok=True, elapsed_ms=elapsed))
        logger.info("Step ok step=%s elapsed_ms=%d", name, elapsed, extra={"step": name, "elapsed_ms": elapsed})
        return result


# ================= CART DETECTION =================


async def _wait_for_drawer(driver, selector, timeout_ms):
    try:
        await driver.wait_for_selector(selector, timeout_ms=timeout_ms)
    except Exception as exc:
        logger.debug("No cart drawer selector=%s error=%s", selector, exc)
        return None
    return CartMode.DRAWER


async def _wait_for_cart_url(driver, pattern, timeout_ms):
    try:
        await driver.wait_for_url(pattern, timeout_ms=timeout_ms)
    except Exception as exc:
        logger.debug("No cart page navigation pattern=%s error=%s", pattern.pattern, exc)
        return None
    return CartMode.PAGE


async def detect_cart_mode(driver, targets, timeouts: JourneyTimeouts, branches=None):
    """Race the cart drawer against navigation to the cart page.

    Both waits start together. The first one to see its signal decides the
    mode; ``CartMode.UNDETECTED`` is returned only when both time out. The
    losing wait is not cancelled. When ``branches`` is given, both tasks
    are added to it so the caller can reap them later.
    """
    tasks = [
        asyncio.create_task(_wait_for_drawer(driver, targets.cart_drawer_selector, timeouts.drawer_ms)),
        asyncio.create_task(_wait_for_cart_url(driver, targets.cart_url_pattern, timeouts.cart_url_ms)),
    ]
    if branches is not None:
        branches.update(tasks)

    for next_done in asyncio.as_completed(tasks):
        mode = await next_done
        if mode is not None:
            return mode
    return CartMode.UNDETECTED


async def _reap_branches(branches):
    if branches:
        await asyncio.gather(*branches, return_exceptions=True)


# ================= JOURNEY RUNNER =================


@dataclass
class _RunState:
    log: JourneyLog
    cart_mode: Optional[CartMode] = None
    screenshot_ref: Optional[str] = None
    error: Optional[str] = None
    branches: set = field(default_factory=set)


class JourneyRunner:
    """Drives the homepage → product → add to cart → cart journey.

    ``open_page`` is a zero-argument callable returning an async context
    manager that yields a ``PageDriver``; it is entered once per run and
    always exited before ``run()`` returns. ``summarize`` turns a finished
    ``JourneyLog`` into the run summary text.
    """

    def __init__(
        self,
        targets,
        open_page,
        screenshot_dir="screenshots",
        timeouts: Optional[JourneyTimeouts] = None,
        summarize=diagnose,
        clock=time.monotonic,
    ):
        self.targets = targets.validate()
        self.timeouts = timeouts or JourneyTimeouts()
        self._open_page = open_page
        self._summarize = summarize
        self._clock = clock
        self._capturer = ArtifactCapturer(screenshot_dir, self.targets, self.timeouts)

    async def run(self) -> RunRecord:
        """Execute one journey and return its record.

        Stage failures never escape; only an error raised while releasing
        the page does.
        """
        state = _RunState(
            log=JourneyLog(started_at=datetime.now(timezone.utc), store_url=self.targets.store_url)
        )
        logger.info("Journey started store=%s product=%s", self.targets.store_url, self.targets.product_url)

        async with AsyncExitStack() as stack:
            stack.push_async_callback(_reap_branches, state.branches)
            try:
                driver = await stack.enter_async_context(self._open_page())
            except Exception as exc:
                self._record_failure(state, exc)
            else:
                await self._drive(driver, state)

        return await self._finish(state)

    async def _drive(self, driver, state):
        try:
            await self._run_stages(driver, state)
        except Exception as exc:
            self._record_failure(state, exc)
            state.screenshot_ref = await self._capturer.capture_failure(driver)
        else:
            state.screenshot_ref = await self._capturer.capture_success(driver, state.cart_mode)

    async def _run_stages(self, driver, state):
        timer = StepTimer(state.log, clock=self._clock)
        await timer.run(STEP_HOMEPAGE, functools.partial(self._homepage, driver))
        await timer.run(STEP_PRODUCT_PAGE, functools.partial(self._product_page, driver))
        await timer.run(STEP_ADD_TO_CART, functools.partial(self._add_to_cart, driver, state))
        await timer.run(STEP_CART_LOADED, functools.partial(self._cart_loaded, driver, state))

    def _record_failure(self, state, exc):
        state.error = clean_error_message(exc)
        if not state.log.failed_steps:
            state.log.append(StepResult(name=STEP_FATAL, ok=False, elapsed_ms=0, error=state.error))
            logger.error("Journey aborted store=%s", self.targets.store_url, exc_info=exc)
        else:
            logger.error("Journey failed store=%s error=%s", self.targets.store_url, state.error)

    async def _finish(self, state):
        log = state.log.freeze()
        severity = Severity.FAIL if state.error else classify_severity(log)
        try:
            summary = await asyncio.to_thread(self._summarize, log)
        except Exception:
            logger.exception("Summarizer failed; using rule-based diagnosis")
            summary = diagnose(log)

        record = build_run_record(
            severity=severity,
            summary=summary,
            log=log,
            targets=self.targets,
            cart_mode=state.cart_mode,
            screenshot_ref=state.screenshot_ref,
            error=state.error,
        )
        logger.info(
            "Journey finished id=%s severity=%s cart_mode=%s steps=%d",
            record.id,
            record.severity.value,
            record.cart_mode.value if record.cart_mode else None,
            len(log.steps),
            extra={"store": self.targets.store_url, "run_id": record.id, "severity": record.severity.value},
        )
        return record

    # ================= STAGES =================

    async def _homepage(self, driver):
        await driver.navigate(
            self.targets.store_url, wait_until="networkidle", timeout_ms=self.timeouts.navigation_ms
        )

    async def _product_page(self, driver):
        await driver.navigate(
            self.targets.product_url, wait_until="domcontentloaded", timeout_ms=self.timeouts.navigation_ms
        )
        await driver.wait_for_selector(self.targets.add_to_cart_selector, timeout_ms=self.timeouts.selector_ms)

    async def _add_to_cart(self, driver, state):
        await driver.click(self.targets.add_to_cart_selector, timeout_ms=self.timeouts.click_ms)
        state.cart_mode = await detect_cart_mode(driver, self.targets, self.timeouts, state.branches)
        if state.cart_mode is CartMode.UNDETECTED:
            raise CartNotDetectedError(
                f"Cart not detected after add to cart: no drawer within {self.timeouts.drawer_ms} ms "
                f"and no cart page within {self.timeouts.cart_url_ms} ms."
            )
        logger.info("Cart detected mode=%s", state.cart_mode.value)

    async def _cart_loaded(self, driver, state):
        if state.cart_mode is CartMode.DRAWER:
            if not await driver.is_visible(self.targets.cart_drawer_selector):
                raise CartVerificationError("Cart drawer appeared but is not visible.")
        elif state.cart_mode is CartMode.PAGE:
            if await driver.is_visible(self.targets.cart_page_selector):
                return
            url = await driver.current_url()
            if not self.targets.cart_url_pattern.search(url):
                raise CartVerificationError(f"Cart page not detected at {url}.")
        else:
            raise CartVerificationError("Cart not detected after add to cart.")
