"""Shared error taxonomy for cfb-bench."""

from __future__ import annotations

from pathlib import PurePath
from typing import Any, Mapping


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {str(key): _normalize_context_value(val) for key, val in context.items()}


class CFBError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class ConfigurationError(CFBError):
    """Workspace, tool or config file problem detected before any scenario runs."""


class BuildError(CFBError):
    """An implementation's build step failed."""


class MissingArtifactError(CFBError):
    """An executable or input file required by a scenario is absent."""


class ExecutionTimeoutError(CFBError):
    """A scenario exceeded its timeout and its process tree was terminated."""


class MeasurementUnavailableError(CFBError):
    """Resource usage could not be obtained for a process."""


class ReportWriteError(CFBError):
    """The rendered report could not be persisted."""


def error_to_payload(error: CFBError) -> dict[str, Any]:
    """Convert a CFBError to a flat payload for logs and notes."""
    return {
        "error_type": error.error_type,
        "error": str(error),
        "error_context": error.context,
    }
