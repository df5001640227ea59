from __future__ import annotations

import re

from cache_harness.contracts import CachingReport

_METRIC_KEY_PATTERN = re.compile(r"[^A-Za-z0-9_\-./ ]")


def report_metrics(report: CachingReport) -> dict[str, float]:
    """
    Flatten a caching report into tracking metrics.

    Per-step counts land under `step.<name>.<reason>`; characters tracking
    backends reject in metric keys are replaced with `_`.
    """
    metrics: dict[str, float] = {
        "steps_total": float(len(report.observable_steps)),
        "steps_cached": float(
            sum(1 for step in report.observable_steps if step.is_cached_successfully)
        ),
        "sink_steps": float(len(report.sink_steps)),
        "forbidden_type_violations": float(len(report.forbidden_type_violations)),
        "produced_output": 1.0 if report.produced_output else 0.0,
    }
    for step in report.observable_steps:
        prefix = f"step.{metric_key(step.step_name)}"
        metrics[f"{prefix}.cached"] = float(step.cached)
        metrics[f"{prefix}.unchanged"] = float(step.unchanged)
        metrics[f"{prefix}.modified"] = float(step.modified)
        metrics[f"{prefix}.new"] = float(step.new)
        metrics[f"{prefix}.removed"] = float(step.removed)
    return metrics


def report_tags(report: CachingReport) -> dict[str, str]:
    failing = sorted(
        step.step_name for step in report.observable_steps if not step.is_cached_successfully
    )
    violating = sorted({violation.step_name for violation in report.forbidden_type_violations})
    return {
        "caching.verdict": "clean" if not failing and not violating else "issues",
        "caching.uncached_steps": ",".join(failing),
        "caching.violating_steps": ",".join(violating),
    }


def metric_key(name: str) -> str:
    return _METRIC_KEY_PATTERN.sub("_", name)
