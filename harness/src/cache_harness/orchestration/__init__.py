from cache_harness.orchestration.two_run import (
    InputSnapshotError,
    RunCancelledError,
    TwoRunResult,
    run_twice,
)

__all__ = ["InputSnapshotError", "RunCancelledError", "TwoRunResult", "run_twice"]
