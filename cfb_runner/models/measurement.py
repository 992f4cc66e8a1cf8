"""Measurement records produced for each executed scenario."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from cfb_runner.models.scenario import Phase

PENDING_INPUT_NOTE = "input still being produced"


class Outcome(str, Enum):
    """How a scenario ended."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"
    DETACHED = "detached"


@dataclass(frozen=True)
class ResourceUsage:
    """Resource figures for one process; None means unknown."""

    peak_memory_bytes: int | None = None
    user_cpu: float | None = None
    system_cpu: float | None = None
    approximate: bool = False
    source: str = "none"

    @classmethod
    def unknown(cls, source: str = "none") -> "ResourceUsage":
        return cls(source=source)

    @property
    def cpu_total(self) -> float | None:
        if self.user_cpu is None or self.system_cpu is None:
            return None
        return self.user_cpu + self.system_cpu

    def cpu_percent(self, wall_time: float | None) -> float | None:
        """CPU usage relative to wall time, as ``/usr/bin/time %P`` reports it."""
        total = self.cpu_total
        if total is None or not wall_time or wall_time <= 0:
            return None
        return round(total / wall_time * 100.0, 1)


@dataclass(frozen=True)
class Measurement:
    """Recorded outcome and resource usage for one scenario."""

    scenario_name: str
    phase: Phase
    implementation: str
    outcome: Outcome
    wall_time: float | None = None
    user_cpu: float | None = None
    system_cpu: float | None = None
    peak_memory_bytes: int | None = None
    cpu_percent: float | None = None
    exit_code: int | None = None
    memory_approximate: bool = False
    note: str = ""
    log_path: Path | None = None
    output_size_bytes: int | None = None

    @classmethod
    def skipped(
        cls, scenario_name: str, phase: Phase, implementation: str, note: str
    ) -> "Measurement":
        return cls(
            scenario_name=scenario_name,
            phase=phase,
            implementation=implementation,
            outcome=Outcome.SKIPPED,
            note=note,
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def outcome_label(self) -> str:
        if self.outcome is Outcome.FAILURE:
            if self.exit_code is None:
                return "failure"
            return f"failure (exit {self.exit_code})"
        if self.outcome is Outcome.SKIPPED:
            if self.note.startswith(PENDING_INPUT_NOTE):
                return f"skipped: {PENDING_INPUT_NOTE}"
            return "skipped: missing artifact"
        if self.outcome is Outcome.DETACHED:
            return "detached: still running in background"
        return self.outcome.value

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        data["outcome"] = self.outcome.value
        data["log_path"] = str(self.log_path) if self.log_path else None
        return data
