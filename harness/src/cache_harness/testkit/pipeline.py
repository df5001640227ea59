from __future__ import annotations

import operator
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from cache_harness.contracts import (
    EmittedArtifact,
    OutputGroup,
    PipelineRunResult,
    ReuseReason,
    StepExecutionRecord,
    StepInput,
    StepOutput,
)

INPUT_SOURCE = "<input>"

_REUSABLE: frozenset[ReuseReason] = frozenset({"cached", "unchanged"})


@dataclass(frozen=True, slots=True)
class StepDefinition:
    name: str
    transform: Callable[[Any], Any]
    source: str = INPUT_SOURCE
    sink: bool = False


class InMemoryPipelineEngine:
    """
    Small incremental pipeline engine with equality-based caching.

    Steps form a chain or tree rooted at the pipeline input. A step is skipped and
    reported `cached` when its upstream value was reused; otherwise it reruns and is
    `unchanged` or `modified` depending on whether its output equals the previous one.
    Sink steps return `(name, content)` pairs which become emitted artifacts.

    Example:
        engine = (
            InMemoryPipelineEngine("demo")
            .step("ParseInputs", parse)
            .sink("RegisterSourceOutput_Emit", emit, source="ParseInputs")
        )
        first = engine.run(inputs, track_steps=True)
    """

    def __init__(
        self,
        name: str,
        *,
        input_equal: Callable[[Any, Any], bool] = operator.eq,
    ) -> None:
        self._name = name
        self._input_equal = input_equal
        self._steps: list[StepDefinition] = []
        self._has_previous_input = False
        self._previous_input: Any = None
        self._previous_outputs: dict[str, Any] = {}
        self.run_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def step_names(self) -> list[str]:
        return [definition.name for definition in self._steps]

    def step(
        self, name: str, transform: Callable[[Any], Any], *, source: str = INPUT_SOURCE
    ) -> InMemoryPipelineEngine:
        self._add(StepDefinition(name=name, transform=transform, source=source))
        return self

    def sink(
        self,
        name: str,
        emit: Callable[[Any], Iterable[tuple[str, str]]],
        *,
        source: str = INPUT_SOURCE,
    ) -> InMemoryPipelineEngine:
        self._add(StepDefinition(name=name, transform=emit, source=source, sink=True))
        return self

    def run(self, inputs: Any, *, track_steps: bool) -> PipelineRunResult:
        input_reason = self._input_reason(inputs)
        self._has_previous_input = True
        self._previous_input = inputs

        values: dict[str, tuple[Any, ReuseReason]] = {INPUT_SOURCE: (inputs, input_reason)}
        tracked: dict[str, tuple[StepExecutionRecord, ...]] = {}
        artifacts: list[EmittedArtifact] = []

        for definition in self._steps:
            upstream, upstream_reason = values[definition.source]
            started = time.perf_counter()
            output, reason = self._execute(definition, upstream, upstream_reason)
            elapsed_s = time.perf_counter() - started

            self._previous_outputs[definition.name] = output
            values[definition.name] = (output, reason)
            if definition.sink:
                artifacts.extend(output)
            if track_steps:
                tracked[definition.name] = (
                    StepExecutionRecord(
                        step_name=definition.name,
                        key=f"{self._name}/{definition.name}/0",
                        outputs=(StepOutput(value=output, reason=reason),),
                        inputs=(StepInput(source=definition.source, reason=upstream_reason),),
                        elapsed_s=elapsed_s,
                    ),
                )

        self.run_count += 1
        return PipelineRunResult(
            pipeline_name=self._name,
            groups=(OutputGroup(tracked_steps=tracked, artifacts=tuple(artifacts)),),
            tracking_enabled=track_steps,
        )

    def _execute(
        self, definition: StepDefinition, upstream: Any, upstream_reason: ReuseReason
    ) -> tuple[Any, ReuseReason]:
        if definition.name not in self._previous_outputs:
            return self._compute(definition, upstream), "new"

        previous = self._previous_outputs[definition.name]
        if upstream_reason in _REUSABLE:
            return previous, "cached"

        output = self._compute(definition, upstream)
        return output, "unchanged" if output == previous else "modified"

    @staticmethod
    def _compute(definition: StepDefinition, upstream: Any) -> Any:
        result = definition.transform(upstream)
        if definition.sink:
            return tuple(EmittedArtifact(name=name, content=content) for name, content in result)
        return result

    def _input_reason(self, inputs: Any) -> ReuseReason:
        if not self._has_previous_input:
            return "new"
        if self._input_equal(self._previous_input, inputs):
            return "cached"
        return "modified"

    def _add(self, definition: StepDefinition) -> None:
        known = {INPUT_SOURCE, *self.step_names}
        if definition.name in known:
            raise ValueError(f"Duplicate step name: {definition.name}")
        if definition.source not in known:
            raise ValueError(
                f"Step '{definition.name}' reads from unknown source '{definition.source}'"
            )
        self._steps.append(definition)
