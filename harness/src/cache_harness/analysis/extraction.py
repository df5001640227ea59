from __future__ import annotations

from cache_harness.contracts import PipelineRunResult, StepExecutionRecord


def extract_steps(run: PipelineRunResult) -> dict[str, tuple[StepExecutionRecord, ...]]:
    """Flatten a run into step name -> records, concatenated across output groups in order."""
    steps: dict[str, list[StepExecutionRecord]] = {}
    for group in run.groups:
        for step_name, records in group.tracked_steps.items():
            steps.setdefault(step_name, []).extend(records)
    return {step_name: tuple(records) for step_name, records in steps.items()}
