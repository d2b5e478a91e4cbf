"""Synthetic buyer-journey monitor for web storefronts."""

from .config import JourneyTargets, JourneyTimeouts, MonitorSettings
from .exceptions import (
    CartNotDetectedError,
    CartVerificationError,
    ConfigError,
    DriverError,
    DriverTimeoutError,
    JourneyStepError,
    MonitorError,
)
from .journeys import JourneyRunner, StepTimer, detect_cart_mode
from .models import CartMode, JourneyLog, RunRecord, Severity, StepResult, TargetUrls
from .records import build_run_record, classify_severity

__all__ = [
    "CartMode",
    "CartNotDetectedError",
    "CartVerificationError",
    "ConfigError",
    "DriverError",
    "DriverTimeoutError",
    "JourneyLog",
    "JourneyRunner",
    "JourneyStepError",
    "JourneyTargets",
    "JourneyTimeouts",
    "MonitorError",
    "MonitorSettings",
    "RunRecord",
    "Severity",
    "StepResult",
    "StepTimer",
    "TargetUrls",
    "build_run_record",
    "classify_severity",
    "detect_cart_mode",
]
