"""Run lifecycle state machine for the benchmark orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from cfb_runner.models.scenario import Phase


class RunState(Enum):
    """High-level run states."""

    IDLE = auto()
    BUILDING = auto()
    MEASURING = auto()
    REPORTING = auto()
    DONE = auto()
    INTERRUPTED = auto()


@dataclass
class RunLifecycle:
    """Tracks the current state and the phase being executed."""

    state: RunState = RunState.IDLE
    phase: Phase | None = None
    completed_phases: list[Phase] = field(default_factory=list)

    def start_phase(self, phase: Phase) -> None:
        if self.phase is not None and self.phase not in self.completed_phases:
            self.completed_phases.append(self.phase)
        self.phase = phase
        self.state = RunState.BUILDING if phase is Phase.BUILD else RunState.MEASURING

    def start_reporting(self) -> None:
        if self.phase is not None and self.phase not in self.completed_phases:
            self.completed_phases.append(self.phase)
        self.state = RunState.REPORTING

    def finish(self) -> None:
        if self.state is not RunState.INTERRUPTED:
            self.state = RunState.DONE

    def mark_interrupted(self) -> None:
        self.state = RunState.INTERRUPTED

    @property
    def interrupted(self) -> bool:
        return self.state is RunState.INTERRUPTED
