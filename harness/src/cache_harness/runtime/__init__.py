"""Runtime helpers for caching checks."""

from cache_harness.runtime.artifacts import (
    ARTIFACT_ROOT_ENV,
    CheckArtifactPaths,
    artifact_root_candidates,
    build_check_artifact_dir,
    resolve_artifact_root,
)

__all__ = [
    "ARTIFACT_ROOT_ENV",
    "CheckArtifactPaths",
    "artifact_root_candidates",
    "build_check_artifact_dir",
    "resolve_artifact_root",
]
