"""Scenario catalog: turns the implementation config into ordered Scenarios."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from cfb_controller.models.config import BenchConfig, ImplementationConfig, OperationConfig
from cfb_runner.models.scenario import Phase, Scenario
from cfb_runner.services.artifacts import find_executable

logger = logging.getLogger(__name__)


def scenario_name(impl: ImplementationConfig, phase: Phase) -> str:
    return f"{impl.name} {phase.value}"


def build_scenario(config: BenchConfig, impl: ImplementationConfig) -> Scenario | None:
    """Build step for one implementation, or None when it has no build command."""
    if not impl.build_command:
        return None
    root = impl.root_path(config.workspace_root)
    setup: tuple[tuple[str, ...], ...] = ()
    if impl.configure_command:
        marker = root / impl.configure_marker if impl.configure_marker else None
        if marker is None or not marker.exists():
            setup = (tuple(impl.configure_command),)
    return Scenario(
        name=scenario_name(impl, Phase.BUILD),
        phase=Phase.BUILD,
        implementation=impl.display_name,
        command=tuple(impl.build_command),
        working_directory=root,
        timeout_seconds=config.timeout_for(Phase.BUILD),
        setup_commands=setup,
    )


def operation_scenario(
    config: BenchConfig,
    impl: ImplementationConfig,
    phase: Phase,
    operation: OperationConfig,
) -> Scenario:
    """Measured scenario; the executable is resolved at call time."""
    workspace = config.workspace_root
    run_dir = impl.run_path(workspace)
    executable = find_executable(operation.executable, impl.binary_path(workspace))

    stage: tuple[tuple[Path, Path], ...] = ()
    required: List[Path] = [run_dir / path for path in operation.required_inputs]
    if operation.stage_sample_as:
        destination = run_dir / operation.stage_sample_as
        sample = config.resolved_sample_input
        if sample is not None:
            stage = ((sample, destination),)
        else:
            required.append(destination)

    return Scenario(
        name=scenario_name(impl, phase),
        phase=phase,
        implementation=impl.display_name,
        command=(str(executable), *operation.args),
        working_directory=run_dir,
        timeout_seconds=config.timeout_for(phase, operation),
        memory_limit_mb=config.memory_limit_mb,
        required_inputs=tuple(required),
        stage_inputs=stage,
        output_artifact=operation.output_artifact,
        detach_after_seconds=operation.detach_after_seconds,
    )


def scenarios_for_phase(config: BenchConfig, phase: Phase) -> List[Scenario]:
    """
    Ordered scenarios for ``phase`` across enabled implementations.

    Call this right before running the phase so binaries produced by the
    build phase are discovered.
    """
    scenarios: List[Scenario] = []
    for impl in config.enabled_implementations():
        if phase is Phase.BUILD:
            scenario = build_scenario(config, impl)
            if scenario is not None:
                scenarios.append(scenario)
            continue
        operation = impl.operations.get(phase)
        if operation is None:
            logger.debug("%s has no %s operation", impl.name, phase.value)
            continue
        scenarios.append(operation_scenario(config, impl, phase, operation))
    return scenarios


def plan(config: BenchConfig) -> List[Scenario]:
    """Every scenario of the selected phases, as they would resolve right now."""
    planned: List[Scenario] = []
    for phase in config.phases:
        planned.extend(scenarios_for_phase(config, phase))
    return planned
