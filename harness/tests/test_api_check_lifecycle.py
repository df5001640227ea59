from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field

import pytest

import cache_harness.api as api
from cache_harness.api import check_from_yaml, check_pipeline_caching
from cache_harness.contracts import CachingConfig
from cache_harness.orchestration import InputSnapshotError, RunCancelledError
from cache_harness.testkit import InMemoryPipelineEngine, SessionHandle
from cache_harness.tracking.fakes import FakeTrackingClient


@dataclass(frozen=True)
class Sources:
    texts: tuple[str, ...]


@dataclass(frozen=True)
class Parsed:
    names: tuple[str, ...]
    handle: SessionHandle | None = None


@dataclass
class MutableSources:
    texts: list[str] = field(default_factory=list)


def _parse(sources) -> Parsed:
    return Parsed(names=tuple(sources.texts))


def _parse_leaky(sources) -> Parsed:
    return Parsed(names=tuple(sources.texts), handle=SessionHandle("compilation"))


def _emit(parsed: Parsed) -> list[tuple[str, str]]:
    return [(f"{name}.g.cs", "// generated") for name in parsed.names]


def _engine(parse=_parse) -> InMemoryPipelineEngine:
    return (
        InMemoryPipelineEngine("demo.pipeline")
        .step("Parse Inputs", parse)
        .sink("RegisterSourceOutput", _emit, source="Parse Inputs")
    )


def test_check_pipeline_caching_writes_artifacts_and_metrics(tmp_path):
    tracking = FakeTrackingClient()

    result = check_pipeline_caching(
        _engine(), Sources(texts=("Foo",)), tracking=tracking, artifact_root=tmp_path
    )

    assert result.check_id == "check_1"
    assert result.artifact_dir == tmp_path / "checks" / "check_1"
    assert (result.artifact_dir / "resolved" / "caching_config.yaml").exists()
    assert (result.artifact_dir / "summary" / "overview.txt").exists()
    saved = json.loads((result.artifact_dir / "summary" / "caching_report.json").read_text())
    assert saved["pipeline_name"] == "demo.pipeline"
    assert saved["observable_steps"][0]["is_cached_successfully"] is True

    start = tracking.calls_named("start_run")[0]
    assert start.kwargs["run_name"] == "caching:demo.pipeline"
    assert start.kwargs["tags"]["pipeline"] == "demo.pipeline"
    assert len(start.kwargs["tags"]["config_hash"]) == 12

    metrics = tracking.calls_named("log_metrics")[0].kwargs["metrics"]
    assert metrics["steps_total"] == 1.0
    assert metrics["steps_cached"] == 1.0
    assert metrics["sink_steps"] == 1.0
    assert metrics["forbidden_type_violations"] == 0.0
    assert metrics["produced_output"] == 1.0
    assert metrics["step.Parse Inputs.cached"] == 1.0

    artifacts = tracking.calls_named("log_artifacts")[0].kwargs
    assert artifacts == {"local_dir": str(result.artifact_dir), "artifact_path": "check"}
    assert tracking.calls[-1].kwargs == {"status": "ok"}


def test_check_reports_leaked_handles_without_failing_the_run(tmp_path):
    tracking = FakeTrackingClient()
    config = CachingConfig(forbidden_types=[SessionHandle])

    result = check_pipeline_caching(
        _engine(_parse_leaky),
        Sources(texts=("Foo",)),
        config=config,
        tracking=tracking,
        artifact_root=tmp_path,
    )

    assert [v.path for v in result.report.forbidden_type_violations] == ["Output.handle"]
    metrics = tracking.calls_named("log_metrics")[0].kwargs["metrics"]
    assert metrics["forbidden_type_violations"] == 1.0
    assert tracking.calls_named("set_tags")[0].kwargs["tags"]["caching.violating_steps"] == "Parse Inputs"
    assert tracking.calls[-1].kwargs == {"status": "ok"}


def test_errors_end_the_run_failed_and_propagate(tmp_path):
    tracking = FakeTrackingClient()

    def mutate(sources: MutableSources) -> Parsed:
        sources.texts.append("extra")
        return Parsed(names=tuple(sources.texts))

    with pytest.raises(InputSnapshotError):
        check_pipeline_caching(
            _engine(mutate), MutableSources(texts=["Foo"]), tracking=tracking, artifact_root=tmp_path
        )

    error_text = (tmp_path / "checks" / "check_1" / "errors" / "exception.txt").read_text()
    assert error_text.startswith("InputSnapshotError:")
    assert tracking.calls_named("log_metrics") == []
    assert tracking.calls_named("log_artifacts")
    assert tracking.calls[-1].kwargs == {"status": "failed"}
    assert tracking.active_run_id is None


def test_cancelled_check_ends_failed(tmp_path):
    tracking = FakeTrackingClient()
    cancel = threading.Event()
    cancel.set()
    engine = _engine()

    with pytest.raises(RunCancelledError):
        check_pipeline_caching(
            engine, Sources(texts=("Foo",)), tracking=tracking, cancel=cancel, artifact_root=tmp_path
        )

    assert engine.run_count == 0
    assert tracking.calls[-1].kwargs == {"status": "failed"}


def test_report_artifact_failures_are_logged_not_raised(tmp_path, monkeypatch, caplog):
    def boom(report):
        raise OSError("disk full")

    monkeypatch.setattr(api, "format_overview", boom)
    tracking = FakeTrackingClient()

    with caplog.at_level(logging.WARNING, logger="cache_harness.check_artifacts"):
        result = check_pipeline_caching(
            _engine(), Sources(texts=("Foo",)), tracking=tracking, artifact_root=tmp_path
        )

    assert result.report.produced_output is True
    assert "Failed to write caching report" in caplog.text
    assert tracking.calls[-1].kwargs == {"status": "ok"}


def test_check_from_yaml_loads_config(tmp_path, monkeypatch):
    monkeypatch.setenv("CACHE_HARNESS_ARTIFACT_ROOT", str(tmp_path / "artifacts"))
    config_path = tmp_path / "caching.yaml"
    config_path.write_text(
        "caching:\n  forbidden_types:\n    - cache_harness.testkit.handles.SessionHandle\n",
        encoding="utf-8",
    )
    tracking = FakeTrackingClient()

    result = check_from_yaml(config_path, _engine(_parse_leaky), Sources(texts=("Foo",)), tracking=tracking)

    assert result.artifact_dir == tmp_path / "artifacts" / "checks" / "check_1"
    assert len(result.report.forbidden_type_violations) == 1
    params = tracking.calls_named("log_params")[0].kwargs["params"]
    assert params["forbidden_type_count"] == 1
