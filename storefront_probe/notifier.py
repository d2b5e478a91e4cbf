"""Slack notification sink for run records."""

import json
import logging
from typing import Optional

import httpx

from .models import Severity

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Storefront Journey Monitor"

SEVERITY_COLORS = {
    Severity.OK: "#2eb67d",
    Severity.WARN: "#f2c744",
    Severity.FAIL: "#e01e5a",
}


def build_notification(record, title=DEFAULT_TITLE):
    """Payload handed to the notification sink for one run."""
    payload = {
        "title": title,
        "severity": record.severity.value,
        "summary": record.summary,
        "log": record.log.to_dict(),
        "targetUrls": record.target_urls.to_dict(),
    }
    if record.error:
        payload["error"] = record.error
    if record.screenshot_ref:
        payload["screenshot"] = record.screenshot_ref
    return payload


def slack_message(payload):
    details = {k: v for k, v in payload.items() if k not in ("title", "severity")}
    color = SEVERITY_COLORS[Severity(payload["severity"])]
    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": f"{payload['severity']} · {payload['title']}"}},
        {"type": "section", "text": {"type": "mrkdwn", "text": "```" + json.dumps(details, indent=2) + "```"}},
    ]
    return {"attachments": [{"color": color, "blocks": blocks}]}


class SlackNotifier:
    """Posts run records to a Slack incoming webhook.

    Without a webhook URL the payload is logged instead.
    """

    def __init__(self, webhook_url: Optional[str] = None, title=DEFAULT_TITLE, timeout=10.0, transport=None):
        self.webhook_url = webhook_url
        self.title = title
        self.timeout = timeout
        self._transport = transport

    async def notify(self, record) -> bool:
        payload = build_notification(record, self.title)
        if not self.webhook_url:
            logger.info("No SLACK_WEBHOOK_URL set; notification payload=%s", json.dumps(payload))
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=slack_message(payload))
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Slack notification rejected run_id=%s status_code=%s", record.id, exc.response.status_code
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("Slack notification failed run_id=%s error=%s", record.id, exc)
            return False

        logger.info("Slack notification sent run_id=%s severity=%s", record.id, payload["severity"])
        return True
