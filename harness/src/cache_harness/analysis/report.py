from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from cache_harness.analysis.classification import StepClassifier
from cache_harness.analysis.extraction import extract_steps
from cache_harness.analysis.scanner import ForbiddenTypeScanner, TrackingDisabledError
from cache_harness.contracts import (
    CachingConfig,
    CachingReport,
    PipelineRunResult,
    StepCachingAnalysis,
    StepExecutionRecord,
)

_logger = logging.getLogger("cache_harness.report")


class StepSetMismatchError(RuntimeError):
    """Two runs over equal input exposed different step names."""

    def __init__(self, *, missing: Iterable[str], unexpected: Iterable[str]) -> None:
        self.missing = tuple(sorted(missing))
        self.unexpected = tuple(sorted(unexpected))
        details: list[str] = []
        if self.missing:
            details.append(f"missing in second run: {list(self.missing)}")
        if self.unexpected:
            details.append(f"only in second run: {list(self.unexpected)}")
        super().__init__("Step names differ between runs; " + "; ".join(details))


def create_caching_report(
    first_run: PipelineRunResult,
    second_run: PipelineRunResult,
    pipeline_name: str | None = None,
    *,
    config: CachingConfig | None = None,
) -> CachingReport:
    """
    Build the caching report for a pair of runs over logically-equal input.

    Violations come from the first run (the one populating the cache); reuse counts
    come from the second.
    """
    config = config or CachingConfig()
    classifier = StepClassifier(config)

    violations = ForbiddenTypeScanner(config).analyze_run(first_run)
    if not second_run.tracking_enabled:
        raise TrackingDisabledError(
            f"Step tracking disabled in the second run of '{second_run.pipeline_name}'"
        )
    first_steps = extract_steps(first_run)
    second_steps = extract_steps(second_run)
    if first_steps.keys() != second_steps.keys():
        raise StepSetMismatchError(
            missing=first_steps.keys() - second_steps.keys(),
            unexpected=second_steps.keys() - first_steps.keys(),
        )

    violating_steps = {violation.step_name for violation in violations}
    observable: list[StepCachingAnalysis] = []
    sinks: list[StepCachingAnalysis] = []
    for step_name in sorted(second_steps):
        analysis = analyze_step(
            step_name,
            second_steps[step_name],
            has_forbidden_types=step_name in violating_steps,
        )
        if classifier.is_infrastructure_step(step_name):
            sinks.append(analysis)
        else:
            observable.append(analysis)

    produced_output = any(
        not classifier.is_infrastructure_file(artifact.name) for artifact in second_run.artifacts
    )

    report = CachingReport(
        pipeline_name=pipeline_name or second_run.pipeline_name,
        observable_steps=tuple(observable),
        sink_steps=tuple(sinks),
        forbidden_type_violations=violations,
        produced_output=produced_output,
    )
    _logger.info(
        "Caching report for '%s': %d/%d observable steps cached, %d violations, output=%s",
        report.pipeline_name,
        sum(1 for step in observable if step.is_cached_successfully),
        len(observable),
        len(violations),
        produced_output,
    )
    return report


def analyze_step(
    step_name: str,
    records: Iterable[StepExecutionRecord],
    *,
    has_forbidden_types: bool = False,
) -> StepCachingAnalysis:
    counts: Counter[str] = Counter()
    elapsed_s = 0.0
    for record in records:
        elapsed_s += record.elapsed_s
        for output in record.outputs:
            counts[output.reason] += 1
    return StepCachingAnalysis(
        step_name=step_name,
        cached=counts["cached"],
        unchanged=counts["unchanged"],
        modified=counts["modified"],
        new=counts["new"],
        removed=counts["removed"],
        elapsed_s=elapsed_s,
        has_forbidden_types=has_forbidden_types,
    )
