from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from cache_harness.api import check_pipeline_caching
from cache_harness.configuration import load_caching_config
from cache_harness.contracts import CachingConfig, TrackingClient
from cache_harness.reporting import CachingAssertionError, assert_valid_and_cached, format_overview
from cache_harness.testkit import InMemoryPipelineEngine, SessionHandle
from cache_harness.tracking import FakeTrackingClient, MlflowTrackingClient


@dataclass(frozen=True)
class DemoInputs:
    sources: tuple[str, ...]


@dataclass(frozen=True)
class ParsedModel:
    names: tuple[str, ...]


@dataclass(frozen=True)
class LeakyModel:
    names: tuple[str, ...]
    handle: SessionHandle


def _parse(inputs: DemoInputs) -> ParsedModel:
    return ParsedModel(names=tuple(source.split(":", 1)[0] for source in inputs.sources))


def _parse_leaky(inputs: DemoInputs) -> LeakyModel:
    return LeakyModel(names=_parse(inputs).names, handle=SessionHandle("compilation"))


def _emit(model: ParsedModel | LeakyModel) -> list[tuple[str, str]]:
    files = [("Demo.Attributes.g.cs", "// attribute scaffolding")]
    files.extend((f"{name}.g.cs", f"// generated for {name}") for name in model.names)
    return files


def build_engine(*, leaky: bool) -> InMemoryPipelineEngine:
    return (
        InMemoryPipelineEngine("demo.pipeline")
        .step("ParseInputs", _parse_leaky if leaky else _parse)
        .sink("RegisterSourceOutput_Emit", _emit, source="ParseInputs")
    )


def _resolve_tracking(use_mlflow: bool) -> TrackingClient:
    if not use_mlflow:
        return FakeTrackingClient()
    return MlflowTrackingClient(
        tracking_uri=os.environ.get("MLFLOW_TRACKING_URI") or "http://localhost:5000",
        experiment_name=os.environ.get("MLFLOW_EXPERIMENT", "cache-harness-dev"),
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a caching check against the demo pipeline.")
    parser.add_argument("--config", type=Path, default=None, help="Path to caching config YAML")
    parser.add_argument(
        "--leaky",
        action="store_true",
        help="Retain a session handle in ParseInputs to demonstrate a violation",
    )
    parser.add_argument("--mlflow", action="store_true", help="Publish the check to MLflow")
    return parser.parse_args()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    args = parse_args()
    config = load_caching_config(args.config) if args.config else CachingConfig()
    if args.config is None and args.leaky:
        config = config.with_forbidden_types(SessionHandle)

    result = check_pipeline_caching(
        build_engine(leaky=args.leaky),
        DemoInputs(sources=("Foo:class Foo", "Bar:class Bar")),
        config=config,
        tracking=_resolve_tracking(args.mlflow),
    )
    print(format_overview(result.report))
    print(f"Artifacts: {result.artifact_dir}")

    try:
        assert_valid_and_cached(result.report, ["ParseInputs"], config=config)
    except CachingAssertionError as exc:
        print(exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
