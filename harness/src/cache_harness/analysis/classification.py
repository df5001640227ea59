from __future__ import annotations

from cache_harness.contracts import CachingConfig


class StepClassifier:
    """
    Name-based split between observable (user) steps and infrastructure sinks.

    Matching is a case-insensitive substring test against the configured patterns.
    """

    def __init__(self, config: CachingConfig | None = None) -> None:
        config = config or CachingConfig()
        self._sink_patterns = tuple(p.casefold() for p in config.sink_step_patterns)
        self._file_patterns = tuple(p.casefold() for p in config.infrastructure_file_patterns)

    def is_infrastructure_step(self, step_name: str) -> bool:
        return _contains_any(step_name, self._sink_patterns)

    def is_infrastructure_file(self, file_name: str) -> bool:
        return _contains_any(file_name, self._file_patterns)


def _contains_any(name: str, patterns: tuple[str, ...]) -> bool:
    folded = name.casefold()
    return any(pattern in folded for pattern in patterns)
