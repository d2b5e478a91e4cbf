"""Severity classification and run record assembly."""

import time

from .config import SLOW_STEP_THRESHOLD_MS
from .models import RunRecord, Severity, TargetUrls

_last_run_id = 0


def classify_severity(log, slow_threshold_ms=SLOW_STEP_THRESHOLD_MS):
    """FAIL if any step failed, else WARN if any step was slow, else OK."""
    if any(not step.ok for step in log.steps):
        return Severity.FAIL
    if any(step.elapsed_ms > slow_threshold_ms for step in log.steps):
        return Severity.WARN
    return Severity.OK


def new_run_id():
    """Epoch milliseconds, bumped when two runs start in the same millisecond."""
    global _last_run_id
    run_id = max(time.time_ns() // 1_000_000, _last_run_id + 1)
    _last_run_id = run_id
    return run_id


def build_run_record(severity, summary, log, targets, cart_mode=None, screenshot_ref=None, error=None):
    return RunRecord(
        id=new_run_id(),
        severity=severity,
        summary=summary,
        log=log.freeze(),
        target_urls=TargetUrls(store=targets.store_url, product=targets.product_url),
        cart_mode=cart_mode,
        screenshot_ref=screenshot_ref,
        error=error,
    )
