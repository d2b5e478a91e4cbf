"""Data models for journey runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class CartMode(Enum):
    """How a storefront confirms that an item was added to the cart."""

    DRAWER = "drawer"
    PAGE = "page"
    UNDETECTED = "undetected"


class Severity(Enum):
    OK = "OK"
    WARN = "WARN"
    FAIL = "FAIL"


@dataclass(frozen=True)
class StepResult:
    """Outcome of a single timed journey step."""

    name: str
    ok: bool
    elapsed_ms: int
    error: Optional[str] = None

    def to_dict(self):
        data = {"name": self.name, "ok": self.ok, "ms": self.elapsed_ms}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class JourneyLog:
    """Ordered step results of one run.

    Steps are appended while the run is in progress. ``freeze()`` turns
    the step list into a tuple; appending afterwards raises ``RuntimeError``.
    """

    started_at: datetime
    store_url: str
    steps: list = field(default_factory=list)

    @property
    def frozen(self) -> bool:
        return isinstance(self.steps, tuple)

    def append(self, step: StepResult) -> None:
        if self.frozen:
            raise RuntimeError("journey log is frozen")
        self.steps.append(step)

    def freeze(self) -> "JourneyLog":
        if not self.frozen:
            self.steps = tuple(self.steps)
        return self

    @property
    def failed_steps(self):
        return [step for step in self.steps if not step.ok]

    def to_dict(self):
        return {
            "steps": [step.to_dict() for step in self.steps],
            "startedAt": self.started_at.isoformat(),
            "storeUrl": self.store_url,
        }


@dataclass(frozen=True)
class TargetUrls:
    store: str
    product: str

    def to_dict(self):
        return {"STORE_URL": self.store, "PRODUCT_URL": self.product}


@dataclass(frozen=True)
class RunRecord:
    """Complete, read-only description of one journey run."""

    id: int
    severity: Severity
    summary: str
    log: JourneyLog
    target_urls: TargetUrls
    cart_mode: Optional[CartMode] = None
    screenshot_ref: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.severity is not Severity.FAIL

    def to_dict(self):
        """Serialize in the shape the runs dashboard reads from index.json."""
        return {
            "id": self.id,
            "severity": self.severity.value,
            "summary": self.summary,
            "log": self.log.to_dict(),
            "url": self.target_urls.to_dict(),
            "screenshot": self.screenshot_ref,
            "cartMode": self.cart_mode.value if self.cart_mode else None,
            "error": self.error,
        }
