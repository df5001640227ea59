from __future__ import annotations

import copy
import json
import logging
import threading
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cache_harness.analysis import create_caching_report
from cache_harness.configuration import dump_yaml, load_caching_config, stable_hash
from cache_harness.contracts import (
    CachingConfig,
    CachingReport,
    CheckStatus,
    PipelineEngine,
    TrackingClient,
)
from cache_harness.orchestration import run_twice
from cache_harness.reporting import format_overview, report_to_dict
from cache_harness.runtime.artifacts import CheckArtifactPaths, build_check_artifact_dir
from cache_harness.tracking import FakeTrackingClient


@dataclass(frozen=True, slots=True)
class CachingCheckResult:
    check_id: str
    report: CachingReport
    artifact_dir: Path


def check_pipeline_caching(
    engine: PipelineEngine,
    inputs: Any,
    *,
    config: CachingConfig | None = None,
    tracking: TrackingClient | None = None,
    snapshot: Callable[[Any], Any] = copy.deepcopy,
    cancel: threading.Event | None = None,
    artifact_root: Path | None = None,
) -> CachingCheckResult:
    """
    Run the full caching check lifecycle for one pipeline.

    Errors from the orchestrator or the report builder propagate after the tracking
    run is ended as failed; artifact writing is best-effort.
    """
    config = config or CachingConfig()
    tracking_client = tracking or FakeTrackingClient()
    tags = {"pipeline": engine.name, "config_hash": stable_hash(config.model_dump(mode="json"))}
    check_id = tracking_client.start_run(run_name=f"caching:{engine.name}", tags=tags)
    logger = logging.getLogger(f"cache_harness.check.{check_id}")

    end_status: CheckStatus = "failed"
    artifact_dir: Path | None = None

    try:
        artifact_dir = build_check_artifact_dir(check_id, artifact_root=artifact_root)
        paths = CheckArtifactPaths(artifact_dir)
        _write_resolved_config_best_effort(paths=paths, config=config)

        runs = run_twice(engine, inputs, snapshot=snapshot, cancel=cancel)
        report = create_caching_report(runs.first, runs.second, engine.name, config=config)

        _write_report_best_effort(paths=paths, report=report)
        tracking_client.log_params(_build_params(config))
        tracking_client.log_report(report)
        end_status = "ok"
        logger.info(
            "Caching check finished for '%s' with %d violations",
            engine.name,
            len(report.forbidden_type_violations),
        )
    except Exception as exc:
        if artifact_dir is not None:
            try:
                _write_exception_artifact(CheckArtifactPaths(artifact_dir), exc)
            except Exception:
                logging.getLogger("cache_harness.check_artifacts").warning(
                    "Failed to write exception artifact for %s",
                    check_id,
                    exc_info=True,
                )
        raise
    finally:
        if artifact_dir is not None and artifact_dir.exists():
            try:
                tracking_client.log_artifacts(str(artifact_dir), artifact_path="check")
            except Exception:
                logging.getLogger("cache_harness.check_artifacts").warning(
                    "Failed to bulk log artifacts for %s",
                    check_id,
                    exc_info=True,
                )
        tracking_client.end_run(status=end_status)

    return CachingCheckResult(check_id=check_id, report=report, artifact_dir=artifact_dir)


def check_from_yaml(
    config_yaml: str | Path,
    engine: PipelineEngine,
    inputs: Any,
    *,
    tracking: TrackingClient | None = None,
) -> CachingCheckResult:
    config = load_caching_config(config_yaml)
    return check_pipeline_caching(engine, inputs, config=config, tracking=tracking)


def _build_params(config: CachingConfig) -> dict[str, object]:
    return {
        "forbidden_type_count": len(config.forbidden_types),
        "safe_type_count": len(config.safe_types),
        "sink_step_patterns": ",".join(config.sink_step_patterns),
        "infrastructure_file_patterns": ",".join(config.infrastructure_file_patterns),
        "max_violations": config.max_violations,
        "max_depth": config.max_depth if config.max_depth is not None else "none",
    }


def _write_report_best_effort(*, paths: CheckArtifactPaths, report: CachingReport) -> None:
    try:
        paths.report_json.parent.mkdir(parents=True, exist_ok=True)
        with paths.report_json.open("w", encoding="utf-8") as handle:
            json.dump(report_to_dict(report), handle, indent=2, sort_keys=True)
        paths.overview.write_text(format_overview(report), encoding="utf-8")
    except Exception:
        logging.getLogger("cache_harness.check_artifacts").warning(
            "Failed to write caching report for %s",
            report.pipeline_name,
            exc_info=True,
        )


def _write_resolved_config_best_effort(*, paths: CheckArtifactPaths, config: CachingConfig) -> None:
    try:
        dump_yaml(paths.resolved_config, config.model_dump(mode="json"))
    except Exception:
        logging.getLogger("cache_harness.check_artifacts").warning(
            "Failed to write resolved config artifact in %s",
            paths.root,
            exc_info=True,
        )


def _write_exception_artifact(paths: CheckArtifactPaths, exc: Exception) -> None:
    error_path = paths.exception
    error_path.parent.mkdir(parents=True, exist_ok=True)
    with error_path.open("w", encoding="utf-8") as handle:
        handle.write(f"{type(exc).__name__}: {exc}")
        handle.write("\n")
        handle.write(traceback.format_exc())
