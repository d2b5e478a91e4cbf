"""Run summaries: rule-based diagnosis with an optional OpenAI write-up."""

import json
import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from .config import SLOW_STEP_THRESHOLD_MS

logger = logging.getLogger(__name__)

HEALTHY_SUMMARY = "All steps healthy. No action needed."
NO_API_KEY_NOTE = "AI summary unavailable (OPENAI_API_KEY not set)."

SYSTEM_PROMPT = (
    "You are a storefront SRE assistant. Write a concise, actionable diagnosis "
    "based on the journey log."
)


def diagnose(log, slow_threshold_ms=SLOW_STEP_THRESHOLD_MS):
    failures = [s for s in log.steps if not s.ok]
    slow = [s for s in log.steps if s.elapsed_ms > slow_threshold_ms]
    if not failures and not slow:
        return HEALTHY_SUMMARY

    bullets = []
    if slow:
        bullets.append("Slow steps: " + ", ".join(f"{s.name}({s.elapsed_ms}ms)" for s in slow))
    if failures:
        bullets.append("Failures: " + " | ".join(f"{s.name}: {s.error}" for s in failures))
    return "\n".join(bullets)


class OpenAISummarizer:
    """Callable summarizer that adds a model-written diagnosis to unhealthy runs.

    Without an API key the rule-based bullets are returned with a note.
    API errors are logged and the rule-based bullets are returned alone.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, temperature: float = 0.2):
        self._api_key = api_key
        self._model = model or self.DEFAULT_MODEL
        self._temperature = temperature
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def __call__(self, log) -> str:
        bullets = diagnose(log)
        if bullets == HEALTHY_SUMMARY:
            return bullets
        if not self._api_key:
            return "\n".join([bullets, NO_API_KEY_NOTE])

        try:
            response = self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Journey log JSON:\n{json.dumps(log.to_dict())}"},
                ],
                temperature=self._temperature,
            )
        except OpenAIError as exc:
            logger.warning("OpenAI summary failed model=%s error=%s", self._model, exc)
            return bullets

        ai = ""
        if response.choices:
            ai = (response.choices[0].message.content or "").strip()
        return "\n\n".join(part for part in (bullets, ai) if part)
