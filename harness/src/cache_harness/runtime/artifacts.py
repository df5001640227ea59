from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

ARTIFACT_ROOT_ENV = "CACHE_HARNESS_ARTIFACT_ROOT"
_LOCAL_DIRNAME = ".artifacts"
_TEMP_DIRNAME = "cache-harness-artifacts"


@dataclass(frozen=True, slots=True)
class CheckArtifactPaths:
    """File layout under one caching check's artifact directory."""

    root: Path

    @property
    def resolved_config(self) -> Path:
        return self.root / "resolved" / "caching_config.yaml"

    @property
    def report_json(self) -> Path:
        return self.root / "summary" / "caching_report.json"

    @property
    def overview(self) -> Path:
        return self.root / "summary" / "overview.txt"

    @property
    def exception(self) -> Path:
        return self.root / "errors" / "exception.txt"


def artifact_root_candidates() -> list[Path]:
    """Env override first, then `./.artifacts`, then a directory under the system temp dir."""
    candidates: list[Path] = []
    configured = os.environ.get(ARTIFACT_ROOT_ENV)
    if configured:
        candidates.append(Path(configured).expanduser())
    candidates.append(Path.cwd() / _LOCAL_DIRNAME)
    candidates.append(Path(tempfile.gettempdir()) / _TEMP_DIRNAME)
    return candidates


def resolve_artifact_root() -> Path:
    """Return the first writable candidate root, creating it if needed."""
    for candidate in artifact_root_candidates():
        if _is_writable_dir(candidate):
            return candidate
    raise RuntimeError("Unable to resolve a writable artifact root directory.")


def build_check_artifact_dir(check_id: str, *, artifact_root: Path | None = None) -> Path:
    if not check_id or Path(check_id).name != check_id or check_id in {".", ".."}:
        raise ValueError(f"Invalid check id for an artifact directory: {check_id!r}")
    root = artifact_root if artifact_root is not None else resolve_artifact_root()
    check_dir = root / "checks" / check_id
    check_dir.mkdir(parents=True, exist_ok=True)
    return check_dir


def _is_writable_dir(path: Path) -> bool:
    probe = path / ".write_test"
    try:
        path.mkdir(parents=True, exist_ok=True)
        probe.write_text("ok", encoding="utf-8")
        probe.unlink(missing_ok=True)
    except OSError:
        return False
    return True
