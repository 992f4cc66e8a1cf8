"""Shared controller data types and protocols."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from cfb_runner.models.measurement import Measurement
from cfb_runner.models.scenario import Phase, Scenario


class ProgressSink(Protocol):
    """Receives orchestrator progress; implemented by the console presenter."""

    def phase_started(self, phase: Phase, scenarios: Sequence[Scenario]) -> None:
        ...

    def scenario_started(self, scenario: Scenario) -> None:
        ...

    def scenario_finished(self, scenario: Scenario, measurement: Measurement) -> None:
        ...


class NullProgress:
    """Progress sink that ignores every event."""

    def phase_started(self, phase: Phase, scenarios: Sequence[Scenario]) -> None:
        return None

    def scenario_started(self, scenario: Scenario) -> None:
        return None

    def scenario_finished(self, scenario: Scenario, measurement: Measurement) -> None:
        return None


class Executor(Protocol):
    """Anything that turns a Scenario into a Measurement."""

    def execute(self, scenario: Scenario) -> Measurement:
        ...


@dataclass(frozen=True)
class RunSummary:
    """Summary of a completed (or interrupted) benchmark run."""

    run_id: str
    report_path: Path
    log_dir: Path
    measurements: tuple[Measurement, ...]
    partial: bool = False

