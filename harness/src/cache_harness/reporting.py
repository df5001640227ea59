from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from itertools import groupby
from typing import Any

from cache_harness.contracts import (
    CachingConfig,
    CachingReport,
    ForbiddenTypeViolation,
    StepCachingAnalysis,
)


class CachingAssertionError(AssertionError):
    pass


@dataclass(frozen=True, slots=True)
class CachingValidation:
    report: CachingReport
    failed_steps: tuple[StepCachingAnalysis, ...]
    violations: tuple[ForbiddenTypeViolation, ...]
    required_steps: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.violations and not self.failed_steps

    @property
    def reasons(self) -> list[str]:
        reasons: list[str] = []
        if self.violations:
            reasons.append("Forbidden Types Detected")
        if self.failed_steps:
            reasons.append(f"Caching Failures ({len(self.failed_steps)} steps)")
        if not self.report.produced_output:
            reasons.append("No Meaningful Output")
        return reasons

    def summary(self) -> str:
        return f"Pipeline validation failed due to: {', '.join(self.reasons)}."


def format_breakdown(step: StepCachingAnalysis) -> str:
    return f"C:{step.cached} U:{step.unchanged} M:{step.modified} N:{step.new} R:{step.removed}"


def format_violations(violations: Iterable[ForbiddenTypeViolation]) -> str:
    lines: list[str] = []
    for step_name, group in _group_by_step(violations):
        lines.append(f"Step '{step_name}':")
        lines.extend(f"  - {v.type_name} at {v.path}" for v in group)
    return "\n".join(lines)


def format_overview(report: CachingReport) -> str:
    """Human-readable overview of every step, violation and sink in the report."""
    cached = sum(1 for step in report.observable_steps if step.is_cached_successfully)
    lines = [
        f"=== CACHING PIPELINE: {report.pipeline_name} ===",
        f"Steps: {cached}/{len(report.observable_steps)} cached | "
        f"Forbidden types: {len(report.forbidden_type_violations)} | "
        f"Output: {'yes' if report.produced_output else 'no'}",
        "",
    ]

    if report.forbidden_type_violations:
        lines.append("--- FORBIDDEN TYPE VIOLATIONS ---")
        for step_name, group in _group_by_step(report.forbidden_type_violations):
            lines.append(f"  Step '{step_name}':")
            lines.extend(f"    x {v.type_name} at {v.path}" for v in group)
        lines.append("")

    lines.append("--- OBSERVABLE STEPS ---")
    for step in report.observable_steps:
        mark = "ok" if step.is_cached_successfully else "x"
        forbidden = " [FORBIDDEN]" if step.has_forbidden_types else ""
        lines.append(f"  {mark} {step.step_name}: {format_breakdown(step)}{forbidden}")
        lines.append(f"      Time: {step.elapsed_s * 1000:.2f} ms")
    lines.append("")

    if report.sink_steps:
        lines.append("--- SINK STEPS (infrastructure) ---")
        lines.extend(f"  * {step.step_name}: {format_breakdown(step)}" for step in report.sink_steps)

    return "\n".join(lines).rstrip() + "\n"


def format_failure_report(
    report: CachingReport,
    failed_steps: Sequence[StepCachingAnalysis],
    required_steps: Sequence[str] | None = None,
    *,
    include_json: bool = False,
) -> str:
    lines: list[str] = []
    issue = 0

    for step_name, group in _group_by_step(report.forbidden_type_violations):
        issue += 1
        lines.append(f"Issue #{issue}: Forbidden types in step '{step_name}'")
        lines.extend(f"  x {v.type_name} at {v.path}" for v in group)

    for step in failed_steps:
        issue += 1
        lines.append(f"Issue #{issue}: Caching failed for step '{step.step_name}'")
        lines.append(f"  Breakdown: {format_breakdown(step)}")

    if not report.produced_output and issue == 0:
        lines.append("No meaningful output produced.")

    required = set(required_steps or ())
    lines.append("--- Pipeline Overview ---")
    for step in report.observable_steps:
        mark = "ok" if step.is_cached_successfully else "x"
        tag = " [required]" if step.step_name in required else ""
        lines.append(f"  {mark} {step.step_name}{tag} - {format_breakdown(step)}")

    if include_json:
        lines.append("")
        lines.append("--- JSON ---")
        payload = {
            "pipeline": report.pipeline_name,
            "produced_output": report.produced_output,
            "forbidden": [_violation_to_dict(v) for v in report.forbidden_type_violations],
            "failed": [_step_to_dict(step) for step in failed_steps],
        }
        lines.append(json.dumps(payload, indent=2, sort_keys=True))

    return "\n".join(lines) + "\n"


def report_to_dict(report: CachingReport) -> dict[str, Any]:
    return {
        "pipeline_name": report.pipeline_name,
        "produced_output": report.produced_output,
        "observable_steps": [_step_to_dict(step) for step in report.observable_steps],
        "sink_steps": [_step_to_dict(step) for step in report.sink_steps],
        "forbidden_type_violations": [
            _violation_to_dict(v) for v in report.forbidden_type_violations
        ],
    }


def report_to_json(report: CachingReport) -> str:
    return json.dumps(report_to_dict(report), indent=2, sort_keys=True)


def validate_report(
    report: CachingReport, required_steps: Sequence[str] | None = None
) -> CachingValidation:
    """
    Check a report for forbidden types and, when `required_steps` is given, for caching.

    Without required steps every violation counts and reuse is not checked. With them,
    only violations and caching failures of those steps count.
    """
    required = tuple(required_steps or ())
    if required:
        wanted = set(required)
        failed = tuple(
            step
            for step in report.observable_steps
            if step.step_name in wanted and not step.is_cached_successfully
        )
        violations = tuple(v for v in report.forbidden_type_violations if v.step_name in wanted)
    else:
        failed = ()
        violations = report.forbidden_type_violations
    return CachingValidation(
        report=report, failed_steps=failed, violations=violations, required_steps=required
    )


def assert_valid_and_cached(
    report: CachingReport,
    required_steps: Sequence[str] | None = None,
    *,
    config: CachingConfig | None = None,
) -> CachingValidation:
    validation = validate_report(report, required_steps)
    if validation.passed:
        return validation
    include_json = config.json_reporting if config is not None else False
    details = format_failure_report(
        report,
        validation.failed_steps,
        validation.required_steps,
        include_json=include_json,
    )
    raise CachingAssertionError(f"{validation.summary()}\n{details}")


def _group_by_step(
    violations: Iterable[ForbiddenTypeViolation],
) -> list[tuple[str, list[ForbiddenTypeViolation]]]:
    ordered = sorted(violations, key=lambda v: v.step_name)
    return [(name, list(group)) for name, group in groupby(ordered, key=lambda v: v.step_name)]


def _step_to_dict(step: StepCachingAnalysis) -> dict[str, Any]:
    return {
        "step_name": step.step_name,
        "cached": step.cached,
        "unchanged": step.unchanged,
        "modified": step.modified,
        "new": step.new,
        "removed": step.removed,
        "has_forbidden_types": step.has_forbidden_types,
        "is_cached_successfully": step.is_cached_successfully,
    }


def _violation_to_dict(violation: ForbiddenTypeViolation) -> dict[str, str]:
    return {
        "step_name": violation.step_name,
        "forbidden_type": violation.forbidden_type,
        "path": violation.path,
    }
