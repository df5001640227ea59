from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Values whose validity is bound to one interpreter session; none of them can
# compare equal across runs, so retaining one in step state defeats caching.
DEFAULT_FORBIDDEN_TYPES: tuple[str, ...] = (
    "_thread.lock",
    "_thread.RLock",
    "_io._IOBase",
    "socket.socket",
    "sqlite3.Connection",
    "sqlite3.Cursor",
    "builtins.generator",
    "builtins.coroutine",
    "builtins.frame",
    "builtins.module",
)

DEFAULT_SINK_STEP_PATTERNS: tuple[str, ...] = (
    "RegisterSourceOutput",
    "RegisterImplementationSourceOutput",
    "RegisterPostInitializationOutput",
    "SourceOutput",
)

DEFAULT_INFRASTRUCTURE_FILE_PATTERNS: tuple[str, ...] = (
    "Attribute.g.cs",
    "Attributes.g.cs",
    "EmbeddedAttribute",
    "Polyfill",
)


def qualified_type_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


class CachingConfig(BaseModel):
    """
    Injected configuration for classification and forbidden-type scanning.

    Type entries accept classes or qualified names (`module.QualName`).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    forbidden_types: tuple[str, ...] = DEFAULT_FORBIDDEN_TYPES
    safe_types: tuple[str, ...] = ()
    sink_step_patterns: tuple[str, ...] = DEFAULT_SINK_STEP_PATTERNS
    infrastructure_file_patterns: tuple[str, ...] = DEFAULT_INFRASTRUCTURE_FILE_PATTERNS
    max_violations: int = Field(default=256, ge=1)
    max_depth: int | None = Field(default=None, ge=1)
    json_reporting: bool = False

    @field_validator("forbidden_types", "safe_types", mode="before")
    @classmethod
    def _coerce_type_names(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, (str, type)):
            value = [value]
        names: list[str] = []
        for item in value:
            if isinstance(item, type):
                names.append(qualified_type_name(item))
            elif isinstance(item, str) and "." in item.strip():
                names.append(item.strip())
            else:
                raise ValueError(f"expected a class or a qualified 'module.Name' string, got {item!r}")
        return tuple(names)

    @field_validator("sink_step_patterns", "infrastructure_file_patterns")
    @classmethod
    def _validate_patterns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for pattern in value:
            if not pattern.strip():
                raise ValueError("patterns must be non-empty strings")
        return value

    def with_forbidden_types(self, *types: type | str) -> CachingConfig:
        """Return a copy with extra forbidden types appended."""
        payload = self.model_dump()
        payload["forbidden_types"] = [*self.forbidden_types, *types]
        return CachingConfig.model_validate(payload)
