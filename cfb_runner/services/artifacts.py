"""Helpers for locating executables and handling input/output artifacts."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable

from cfb_runner.models.scenario import Scenario

logger = logging.getLogger(__name__)

EXE_SUFFIX = ".exe" if os.name == "nt" else ""
# Multi-config generators (Visual Studio, Xcode) put binaries one level down.
CONFIG_SUBDIRS = ("", "Release", "Debug")


def executable_candidates(base_name: str, build_dir: Path) -> list[Path]:
    """Every location a built executable may land in, preferred first."""
    names = [base_name]
    if EXE_SUFFIX and not base_name.endswith(EXE_SUFFIX):
        names.insert(0, base_name + EXE_SUFFIX)
    return [
        build_dir / subdir / name if subdir else build_dir / name
        for subdir in CONFIG_SUBDIRS
        for name in names
    ]


def find_executable(base_name: str, build_dir: Path) -> Path:
    """
    Locate ``base_name`` under ``build_dir``.

    Returns the first existing candidate, or the primary candidate when none
    exists so callers can report the expected path as missing.
    """
    candidates = executable_candidates(base_name, build_dir)
    for path in candidates:
        if path.is_file():
            return path
    return candidates[0]


def resolve_program(program: str, working_directory: Path) -> Path | None:
    """Resolve a command's program to an existing file, or None."""
    if os.sep in program or (os.altsep and os.altsep in program):
        path = Path(program).expanduser()
        if not path.is_absolute():
            path = working_directory / path
        return path if path.is_file() else None
    found = shutil.which(program)
    return Path(found) if found else None


def missing_artifacts(scenario: Scenario) -> list[str]:
    """Describe every prerequisite of ``scenario`` that does not exist."""
    missing: list[str] = []
    workdir = scenario.working_directory.expanduser()
    if not workdir.is_dir():
        missing.append(f"working directory {workdir}")
        # Relative programs and inputs cannot be resolved either.
        return missing
    for setup in scenario.setup_commands:
        if resolve_program(setup[0], workdir) is None:
            missing.append(f"executable {setup[0]}")
    if resolve_program(scenario.program, workdir) is None:
        missing.append(f"executable {scenario.program}")
    for source, _ in scenario.stage_inputs:
        if not source.is_file():
            missing.append(f"input {source}")
    staged = {dest for _, dest in scenario.stage_inputs}
    for required in _absolute(scenario.required_inputs, workdir):
        if required not in staged and not required.exists():
            missing.append(f"input {required}")
    return missing


def _absolute(paths: Iterable[Path], base: Path) -> list[Path]:
    return [path if path.is_absolute() else base / path for path in paths]


def stage_inputs(scenario: Scenario) -> None:
    """Copy shared input files into place before a run."""
    for source, dest in scenario.stage_inputs:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        logger.debug("Staged %s -> %s", source, dest)


def output_path(scenario: Scenario) -> Path | None:
    if scenario.output_artifact is None:
        return None
    artifact = scenario.output_artifact
    if not artifact.is_absolute():
        artifact = scenario.working_directory.expanduser() / artifact
    return artifact


def remove_stale_output(scenario: Scenario) -> bool:
    """Delete a previous run's output artifact; True when a file was removed."""
    artifact = output_path(scenario)
    if artifact is None or not artifact.is_file():
        return False
    artifact.unlink()
    logger.info("Removed previous output %s", artifact)
    return True


def output_size(scenario: Scenario) -> int | None:
    """Size in bytes of the scenario's output artifact, None when absent."""
    artifact = output_path(scenario)
    if artifact is None:
        return None
    try:
        return artifact.stat().st_size
    except OSError:
        return None
