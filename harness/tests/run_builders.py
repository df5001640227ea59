"""Helpers for building pipeline run snapshots directly in tests."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from cache_harness.contracts import (
    EmittedArtifact,
    OutputGroup,
    PipelineRunResult,
    StepExecutionRecord,
    StepOutput,
)


def make_group(
    steps: Mapping[str, Sequence[tuple[Any, str]]],
    *,
    artifacts: Iterable[str] = (),
    diagnostics: Iterable[str] = (),
) -> OutputGroup:
    tracked = {
        step_name: tuple(
            StepExecutionRecord(
                step_name=step_name,
                key=f"{step_name}/{index}",
                outputs=(StepOutput(value=value, reason=reason),),
            )
            for index, (value, reason) in enumerate(outputs)
        )
        for step_name, outputs in steps.items()
    }
    return OutputGroup(
        tracked_steps=tracked,
        diagnostics=tuple(diagnostics),
        artifacts=tuple(EmittedArtifact(name=name, content="") for name in artifacts),
    )


def make_run(
    steps: Mapping[str, Sequence[tuple[Any, str]]],
    *,
    artifacts: Iterable[str] = (),
    tracking_enabled: bool = True,
    name: str = "demo",
) -> PipelineRunResult:
    return PipelineRunResult(
        pipeline_name=name,
        groups=(make_group(steps, artifacts=artifacts),),
        tracking_enabled=tracking_enabled,
    )
