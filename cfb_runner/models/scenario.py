"""Scenario definitions consumed by the process runner."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Phase(str, Enum):
    """Benchmark phases, in execution order."""

    BUILD = "build"
    CREATION = "creation"
    TRAVERSAL = "traversal"
    MODIFICATION = "modification"

    @property
    def heading(self) -> str:
        return self.value.capitalize()

    @classmethod
    def ordered(cls) -> list["Phase"]:
        return [cls.BUILD, cls.CREATION, cls.TRAVERSAL, cls.MODIFICATION]


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_token(name: str) -> str:
    """Turn a scenario name into a filesystem-safe token.

    ``"Rust 1GB Creation"`` becomes ``"Rust_1GB_Creation"``.
    """
    token = _UNSAFE_CHARS.sub("_", name).strip("._")
    return token or "scenario"


@dataclass(frozen=True)
class Scenario:
    """One named external command to benchmark."""

    name: str
    phase: Phase
    implementation: str
    command: tuple[str, ...]
    working_directory: Path
    timeout_seconds: float
    memory_limit_mb: int | None = None
    required_inputs: tuple[Path, ...] = ()
    # (source, destination) copies performed right before the run
    stage_inputs: tuple[tuple[Path, Path], ...] = ()
    setup_commands: tuple[tuple[str, ...], ...] = ()
    output_artifact: Path | None = None
    detach_after_seconds: float | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Scenario name must be non-empty")
        if not self.command:
            raise ValueError(f"Scenario {self.name!r} has an empty command")
        if self.timeout_seconds <= 0:
            raise ValueError(f"Scenario {self.name!r} needs a positive timeout")

    @property
    def log_token(self) -> str:
        return safe_token(self.name)

    @property
    def program(self) -> str:
        return self.command[0]

    def describe_command(self) -> str:
        return " ".join(self.command)
