"""Monitor configuration read from the environment and target CSV files."""

import os
import re
from dataclasses import dataclass, field, replace
from typing import Optional

import pandas as pd

from .exceptions import ConfigError

DEFAULT_STORE_URL = "https://example.com"
DEFAULT_ADD_TO_CART_SELECTOR = 'button[name="add"]'
DEFAULT_CART_DRAWER_SELECTOR = "cart-drawer, #CartDrawer"
DEFAULT_CART_PAGE_SELECTOR = 'form[action="/cart"]'
# "/cart" as a whole path segment, so "/products/cart-organizer" does not match
CART_URL_PATTERN = re.compile(r"/cart(?:[/?#]|$)")

# steps slower than this turn an otherwise healthy run into WARN
SLOW_STEP_THRESHOLD_MS = 8000

TARGET_COLUMNS = (
    "store_url",
    "product_url",
    "add_to_cart_selector",
    "cart_drawer_selector",
    "cart_page_selector",
)


@dataclass(frozen=True)
class JourneyTargets:
    """URLs and selectors one journey runs against."""

    store_url: str
    product_url: str
    add_to_cart_selector: str
    cart_drawer_selector: str
    cart_page_selector: str
    cart_url_pattern: re.Pattern = CART_URL_PATTERN

    def validate(self) -> "JourneyTargets":
        for name in TARGET_COLUMNS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"{name} must be a non-empty string")
        return self


@dataclass(frozen=True)
class JourneyTimeouts:
    """Per-operation page driver timeouts in milliseconds."""

    navigation_ms: int = 60_000
    selector_ms: int = 15_000
    click_ms: int = 15_000
    drawer_ms: int = 2_000
    cart_url_ms: int = 10_000
    drawer_capture_ms: int = 3_000
    screenshot_ms: int = 30_000


def _env(name, default=None):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_flag(name, default):
    value = _env(name)
    if value is None:
        return default
    return value.lower() not in ("0", "false", "no", "off")


def targets_from_env() -> JourneyTargets:
    store_url = _env("STORE_URL", DEFAULT_STORE_URL)
    return JourneyTargets(
        store_url=store_url,
        product_url=_env("PRODUCT_URL", store_url.rstrip("/") + "/products/example"),
        add_to_cart_selector=_env("ADD_TO_CART_SELECTOR", DEFAULT_ADD_TO_CART_SELECTOR),
        cart_drawer_selector=_env("CART_DRAWER_SELECTOR", DEFAULT_CART_DRAWER_SELECTOR),
        cart_page_selector=_env(
            "CART_PAGE_SELECTOR",
            _env("CART_VERIFY_SELECTOR", DEFAULT_CART_PAGE_SELECTOR),
        ),
    )


def load_targets(path, defaults: JourneyTargets):
    """Read storefront targets from a CSV file.

    Each row may fill any of ``TARGET_COLUMNS``; blank cells fall back to
    ``defaults``. A row that sets ``store_url`` but no ``product_url`` gets
    ``<store_url>/products/example``.
    """
    df = pd.read_csv(path, dtype=str).fillna("")
    unknown = [c for c in df.columns if c not in TARGET_COLUMNS]
    if unknown:
        raise ConfigError(f"Unknown target columns in {path}: {', '.join(unknown)}")

    targets = []
    for row in df.to_dict(orient="records"):
        values = {k: v.strip() for k, v in row.items() if v and v.strip()}
        if "store_url" in values and "product_url" not in values:
            values["product_url"] = values["store_url"].rstrip("/") + "/products/example"
        targets.append(replace(defaults, **values).validate())

    if not targets:
        raise ConfigError(f"No targets found in {path}")
    return targets


@dataclass(frozen=True)
class MonitorSettings:
    """Settings for the collaborators around the journey engine."""

    slack_webhook_url: Optional[str] = None
    pushgateway_url: Optional[str] = None
    prom_job: str = "storefront_journey_monitor"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    runs_dir: str = "runs"
    screenshot_dir: str = "screenshots"
    headless: bool = True
    timeouts: JourneyTimeouts = field(default_factory=JourneyTimeouts)

    @classmethod
    def from_env(cls) -> "MonitorSettings":
        return cls(
            slack_webhook_url=_env("SLACK_WEBHOOK_URL"),
            pushgateway_url=_env("PUSHGATEWAY_URL"),
            prom_job=_env("PROM_JOB_JOURNEY", "storefront_journey_monitor"),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model=_env("OPENAI_MODEL", "gpt-4o-mini"),
            runs_dir=_env("RUNS_DIR", "runs"),
            screenshot_dir=_env("SCREENSHOT_DIR", "screenshots"),
            headless=_env_flag("HEADLESS", True),
        )
