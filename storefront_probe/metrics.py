"""Prometheus metrics for journey runs, pushed to a Pushgateway."""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway

from .models import Severity

logger = logging.getLogger(__name__)

#  Production UX latency buckets (ms)
LATENCY_BUCKETS_MS = (
    100, 250, 500, 750,
    1000, 1500, 2000,
    3000, 4000, 5000,
    7000, 8000, 10000, 15000, 30000, 60000
)

SEVERITY_VALUES = {Severity.OK: 0, Severity.WARN: 1, Severity.FAIL: 2}


def build_journey_metrics(registry):
    return {
        "journey_duration": Histogram(
            "storefront_journey_duration_ms",
            "Journey duration distribution",
            ["env", "store"],
            buckets=LATENCY_BUCKETS_MS,
            registry=registry
        ),
        "step_duration": Histogram(
            "storefront_step_duration_ms",
            "Step duration distribution",
            ["env", "store", "step"],
            buckets=LATENCY_BUCKETS_MS,
            registry=registry
        ),
        "severity": Gauge(
            "storefront_journey_severity",
            "Last journey severity (0 OK, 1 WARN, 2 FAIL)",
            ["env", "store"],
            registry=registry
        ),
        "success": Counter("storefront_journey_success_total", "Journey success", ["env", "store"], registry=registry),
        "failure": Counter("storefront_journey_failure_total", "Journey failure", ["env", "store"], registry=registry),
    }


class JourneyMetrics:
    """Per-process registry of journey metrics."""

    def __init__(self, env, pushgateway_url=None, job="storefront_journey_monitor"):
        self.env = env
        self.pushgateway_url = pushgateway_url
        self.job = job
        self.registry = CollectorRegistry()
        self.metrics = build_journey_metrics(self.registry)

    def observe(self, record):
        store = record.target_urls.store
        total = 0
        for step in record.log.steps:
            total += step.elapsed_ms
            if step.ok and step.elapsed_ms > 0:
                self.metrics["step_duration"].labels(self.env, store, step.name).observe(step.elapsed_ms)
        if total > 0:
            self.metrics["journey_duration"].labels(self.env, store).observe(total)

        self.metrics["severity"].labels(self.env, store).set(SEVERITY_VALUES[record.severity])
        if record.severity is Severity.FAIL:
            self.metrics["failure"].labels(self.env, store).inc()
        else:
            self.metrics["success"].labels(self.env, store).inc()

    def push(self):
        if not self.pushgateway_url:
            return False
        try:
            push_to_gateway(
                self.pushgateway_url,
                job=self.job,
                registry=self.registry,
                grouping_key={"env": self.env},
            )
        except Exception as exc:
            logger.warning("Could not push metrics to %s: %s", self.pushgateway_url, exc)
            return False
        return True
