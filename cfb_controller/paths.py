"""Helpers for run directory and identifier management."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path

from cfb_common.errors import ConfigurationError


def generate_run_id() -> str:
    """Timestamp-based run identifier, suffixed with the pid to keep concurrent runs apart."""
    return datetime.now(UTC).strftime("run-%Y%m%d-%H%M%S") + f"-{os.getpid()}"


def prepare_run_log_dir(log_root: Path, run_id: str) -> Path:
    """Create ``<log_root>/<run_id>`` and return it."""
    run_dir = (log_root / run_id).resolve()
    try:
        run_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"Cannot create log directory {run_dir}",
            context={"log_dir": run_dir},
            cause=exc,
        ) from exc
    return run_dir
