"""Public API surface for cfb_common."""

from cfb_common.errors import (
    BuildError,
    CFBError,
    ConfigurationError,
    ExecutionTimeoutError,
    MeasurementUnavailableError,
    MissingArtifactError,
    ReportWriteError,
    error_to_payload,
)
from cfb_common.logging import configure_logging

__all__ = [
    "BuildError",
    "CFBError",
    "ConfigurationError",
    "ExecutionTimeoutError",
    "MeasurementUnavailableError",
    "MissingArtifactError",
    "ReportWriteError",
    "configure_logging",
    "error_to_payload",
]
