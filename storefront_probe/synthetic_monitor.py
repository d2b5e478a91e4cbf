import argparse
import asyncio
import functools
import logging
import os
import sys
import time
from dataclasses import replace

from dotenv import load_dotenv

from .config import MonitorSettings, load_targets, targets_from_env
from .exceptions import ConfigError
from .history import STEP_SUMMARY_FILE, append_step_rows, load_history, persist_run, write_step_summary
from .journeys import JourneyRunner
from .logging_config import configure_logging
from .metrics import JourneyMetrics
from .models import Severity
from .notifier import SlackNotifier
from .page_driver import open_playwright_page
from .summary import OpenAISummarizer

logger = logging.getLogger(__name__)

# ================= CLI =================


def parse_args(argv=None):
    p = argparse.ArgumentParser("Storefront Journey Monitor")
    p.add_argument("--env", default="prod")
    p.add_argument("--targets", help="CSV of storefront targets (defaults to STORE_URL/PRODUCT_URL env)")
    p.add_argument("--duration", type=int, default=0, help="Minutes to keep running; 0 runs a single pass")
    p.add_argument("--delay", type=int, default=5, help="Seconds to wait between journeys")
    p.add_argument("--runs-dir", help="Directory for index.json and step results (overrides RUNS_DIR)")
    p.add_argument("--screenshot-dir", help="Directory for screenshots (overrides SCREENSHOT_DIR)")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default=None)
    p.add_argument("--no-notify", action="store_true", help="Do not send Slack notifications")
    p.add_argument("--report", action="store_true", help="Write the step summary report from history and exit")
    return p.parse_args(argv)


# ================= RUNS =================


def record_run(record, runs_dir):
    try:
        persist_run(record, runs_dir)
        append_step_rows(record, runs_dir)
    except OSError:
        logger.exception("Persist error run_id=%s", record.id)


async def run_target(targets, settings, summarizer, notifier, metrics, open_page=None):
    open_page = open_page or functools.partial(open_playwright_page, headless=settings.headless)
    runner = JourneyRunner(
        targets,
        open_page=open_page,
        screenshot_dir=settings.screenshot_dir,
        timeouts=settings.timeouts,
        summarize=summarizer,
    )
    record = await runner.run()

    record_run(record, settings.runs_dir)
    metrics.observe(record)
    metrics.push()
    if notifier is not None:
        await notifier.notify(record)
    return record


async def run_monitor(args, settings, targets_list, open_page=None):
    summarizer = OpenAISummarizer(api_key=settings.openai_api_key, model=settings.openai_model)
    notifier = None if args.no_notify else SlackNotifier(settings.slack_webhook_url)
    metrics = JourneyMetrics(args.env, settings.pushgateway_url, settings.prom_job)

    end_time = time.time() + args.duration * 60
    records = []
    while True:
        for index, targets in enumerate(targets_list):
            records.append(await run_target(targets, settings, summarizer, notifier, metrics, open_page))
            last_in_pass = index == len(targets_list) - 1
            if not (last_in_pass and time.time() >= end_time):
                await asyncio.sleep(args.delay)
        if time.time() >= end_time:
            break
    return records


def write_report(runs_dir):
    path = write_step_summary(load_history(runs_dir), os.path.join(runs_dir, STEP_SUMMARY_FILE))
    print(f"Step summary written to {path}")
    return path


# ================= MAIN =================


def main(argv=None):
    load_dotenv()
    args = parse_args(argv)
    configure_logging(level_override=args.log_level)

    settings = MonitorSettings.from_env()
    overrides = {}
    if args.runs_dir:
        overrides["runs_dir"] = args.runs_dir
    if args.screenshot_dir:
        overrides["screenshot_dir"] = args.screenshot_dir
    if overrides:
        settings = replace(settings, **overrides)

    if args.report:
        write_report(settings.runs_dir)
        return 0

    try:
        defaults = targets_from_env()
        targets_list = load_targets(args.targets, defaults) if args.targets else [defaults.validate()]
    except (ConfigError, OSError, ValueError) as exc:
        logger.error("Invalid targets: %s", exc)
        return 2

    records = asyncio.run(run_monitor(args, settings, targets_list))

    print("\n--- Journey Summary ---")
    for record in records:
        print(f"{record.severity.value:<5} {record.target_urls.store} (run {record.id})")
        for step in record.log.steps:
            status = "OK" if step.ok else "FAILED"
            print(f"  {step.name}: {status} ({step.elapsed_ms} ms)")
            if step.error:
                print(f"    error: {step.error}")
        if record.screenshot_ref:
            print(f"  screenshot: {record.screenshot_ref}")

    return 1 if any(r.severity is Severity.FAIL for r in records) else 0


if __name__ == "__main__":
    sys.exit(main())
