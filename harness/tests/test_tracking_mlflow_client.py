import importlib
import sys

import pytest

from cache_harness.contracts import CachingReport, StepCachingAnalysis
from cache_harness.tracking import mlflow_client


class _FakeRunInfo:
    def __init__(self, run_id: str) -> None:
        self.run_id = run_id


class _FakeRun:
    def __init__(self, run_id: str) -> None:
        self.info = _FakeRunInfo(run_id)


class FakeMlflow:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[object, ...], dict[str, object]]] = []
        self._active_run: _FakeRun | None = None

    def set_tracking_uri(self, uri: str) -> None:
        self.calls.append(("set_tracking_uri", (uri,), {}))

    def set_experiment(self, name: str) -> None:
        self.calls.append(("set_experiment", (name,), {}))

    def start_run(self, *, run_name: str, tags: dict[str, str], experiment_id: str | None = None):
        self.calls.append(("start_run", (run_name,), {"tags": tags, "experiment_id": experiment_id}))
        self._active_run = _FakeRun("run_abc")
        return self._active_run

    def end_run(self, *, status: str) -> None:
        self.calls.append(("end_run", (), {"status": status}))
        self._active_run = None

    def active_run(self):
        return self._active_run

    def log_params(self, params: dict[str, object]) -> None:
        self.calls.append(("log_params", (), {"params": params}))

    def log_metrics(self, metrics: dict[str, float]) -> None:
        self.calls.append(("log_metrics", (), {"metrics": metrics}))

    def set_tags(self, tags: dict[str, str]) -> None:
        self.calls.append(("set_tags", (), {"tags": tags}))

    def log_artifacts(self, local_dir: str, *, artifact_path: str | None = None) -> None:
        self.calls.append(("log_artifacts", (local_dir,), {"artifact_path": artifact_path}))


@pytest.fixture
def fake_mlflow(monkeypatch):
    fake = FakeMlflow()
    monkeypatch.setitem(sys.modules, "mlflow", fake)
    yield fake
    monkeypatch.delitem(sys.modules, "mlflow")
    importlib.reload(mlflow_client)


def test_mlflow_tracking_client_uses_fake_module(fake_mlflow):
    module = importlib.reload(mlflow_client)
    client = module.MlflowTrackingClient(tracking_uri="http://mlflow", experiment_name="caching")

    run_id = client.start_run(run_name="caching:demo", tags={"pipeline": "demo"})
    client.log_params({"max_violations": 256})
    client.log_metrics({"steps_cached": 1.0})
    client.set_tags({"stage": "ci"})
    client.log_artifacts("/tmp/dir", artifact_path="check")
    client.end_run(status="failed")

    assert run_id == "run_abc"
    assert client.active_run_id is None
    call_names = [call[0] for call in fake_mlflow.calls]
    assert call_names == [
        "set_tracking_uri",
        "set_experiment",
        "start_run",
        "log_params",
        "log_metrics",
        "set_tags",
        "log_artifacts",
        "end_run",
    ]
    assert fake_mlflow.calls[-1][2] == {"status": "FAILED"}


def test_mlflow_tracking_client_strict_lifecycle(fake_mlflow):
    module = importlib.reload(mlflow_client)
    client = module.MlflowTrackingClient(experiment_id="7")

    with pytest.raises(RuntimeError, match="No active MLflow run"):
        client.log_metrics({"steps_total": 1.0})

    client.start_run(run_name="caching:demo", tags={})

    with pytest.raises(RuntimeError, match="already active"):
        client.start_run(run_name="dup", tags={})

    client.end_run(status="ok")
    assert fake_mlflow.calls[0][2]["experiment_id"] == "7"

    with pytest.raises(RuntimeError, match="No active MLflow run"):
        client.end_run(status="failed")


def test_mlflow_tracking_client_rejects_both_experiment_selectors(fake_mlflow):
    module = importlib.reload(mlflow_client)

    with pytest.raises(ValueError, match="either experiment_name or experiment_id"):
        module.MlflowTrackingClient(experiment_name="caching", experiment_id="7")


def test_mlflow_tracking_client_logs_report(fake_mlflow):
    module = importlib.reload(mlflow_client)
    client = module.MlflowTrackingClient()
    report = CachingReport(
        pipeline_name="demo",
        observable_steps=(StepCachingAnalysis(step_name="Parse", modified=1),),
    )

    with pytest.raises(RuntimeError, match="No active MLflow run"):
        client.log_report(report)

    client.start_run(run_name="caching:demo", tags={})
    client.log_report(report)

    metrics_call, tags_call = fake_mlflow.calls[-2:]
    assert metrics_call[2]["metrics"]["step.Parse.modified"] == 1.0
    assert tags_call[2]["tags"]["caching.verdict"] == "issues"
