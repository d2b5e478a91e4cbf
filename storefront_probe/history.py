"""Run history files read by the dashboard."""

import csv
import json
import logging
import math
import os
import statistics
from collections import defaultdict

logger = logging.getLogger(__name__)

MAX_HISTORY = 500
INDEX_FILE = "index.json"
STEP_RESULTS_FILE = "step_results.csv"
STEP_SUMMARY_FILE = "step_summary_report.csv"

STEP_COLUMNS = ["run_id", "started_at", "store_url", "step", "ok", "duration_ms", "error", "severity"]


def percentile(data, pct):
    if not data:
        return -1
    data = sorted(data)
    k = (len(data) - 1) * (pct / 100)
    f, c = math.floor(k), math.ceil(k)
    return data[int(k)] if f == c else data[f] + (data[c] - data[f]) * (k - f)


def load_history(runs_dir):
    """Runs recorded in ``index.json``, newest first.

    A missing, unreadable or malformed index is treated as empty.
    """
    index_path = os.path.join(runs_dir, INDEX_FILE)
    try:
        with open(index_path, encoding="utf-8") as f:
            existing = json.load(f)
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable run index path=%s error=%s", index_path, exc)
        return []
    if not isinstance(existing, list):
        logger.warning("Ignoring run index that is not a list path=%s", index_path)
        return []
    return existing


def persist_run(record, runs_dir, max_history=MAX_HISTORY):
    """Prepend a run to ``index.json``, keeping the newest ``max_history``."""
    os.makedirs(runs_dir, exist_ok=True)
    runs = load_history(runs_dir)
    runs.insert(0, record.to_dict())
    del runs[max_history:]

    index_path = os.path.join(runs_dir, INDEX_FILE)
    tmp_path = index_path + ".tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(runs, f, indent=2)
    os.replace(tmp_path, index_path)
    logger.info("Run persisted run_id=%s path=%s kept=%d", record.id, index_path, len(runs))
    return index_path


def append_step_rows(record, runs_dir):
    """Append one row per step of ``record`` to ``step_results.csv``."""
    os.makedirs(runs_dir, exist_ok=True)
    path = os.path.join(runs_dir, STEP_RESULTS_FILE)
    new_file = not os.path.exists(path)
    with open(path, "a", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        if new_file:
            writer.writerow(STEP_COLUMNS)
        for step in record.log.steps:
            writer.writerow([
                record.id,
                record.log.started_at.isoformat(),
                record.log.store_url,
                step.name,
                step.ok,
                step.elapsed_ms,
                step.error or "",
                record.severity.value,
            ])
    return path


def write_step_summary(runs, path):
    """Write avg/p90/max/min duration per store and step over successful steps.

    ``runs`` are dictionaries in the ``index.json`` shape.
    """
    step_timings = defaultdict(list)
    for run in runs:
        log = run.get("log") or {}
        for step in log.get("steps", []):
            if step.get("ok") and step.get("ms", -1) >= 0:
                step_timings[(log.get("storeUrl", ""), step["name"])].append(step["ms"])

    with open(path, "w", newline="", encoding="utf-8") as summary_file:
        writer = csv.writer(summary_file)
        writer.writerow(["store_url", "step", "avg_ms", "p90_ms", "max_ms", "min_ms", "samples"])
        for (store_url, step_name), values in step_timings.items():
            writer.writerow([
                store_url,
                step_name,
                int(round(statistics.mean(values))),
                int(round(percentile(values, 90))),
                max(values),
                min(values),
                len(values),
            ])
    return path
