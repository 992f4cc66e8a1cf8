"""
Executor for a single benchmark scenario.
"""

from __future__ import annotations

import logging
import signal
from pathlib import Path

from cfb_common.errors import MissingArtifactError, error_to_payload
from cfb_runner.engine.process_runner import ProcessResult, ProcessRunner
from cfb_runner.models.measurement import Measurement, Outcome
from cfb_runner.models.scenario import Phase, Scenario
from cfb_runner.services.artifacts import (
    missing_artifacts,
    output_size,
    remove_stale_output,
    stage_inputs,
)

logger = logging.getLogger(__name__)


def _signal_name(code: int) -> str:
    try:
        return signal.Signals(-code).name
    except ValueError:
        return f"signal {-code}"


class ScenarioExecutor:
    """Turns a Scenario into a Measurement, never raising for scenario failures."""

    def __init__(
        self,
        runner: ProcessRunner,
        log_dir: Path,
        *,
        fresh_outputs: bool = True,
    ) -> None:
        self.runner = runner
        self.log_dir = log_dir
        self.fresh_outputs = fresh_outputs
        self._log_names: dict[str, str] = {}

    def log_path_for(self, scenario: Scenario) -> Path:
        """Per-scenario log path; names that sanitize alike get a numeric suffix."""
        name = self._log_names.get(scenario.name)
        if name is None:
            taken = set(self._log_names.values())
            name = scenario.log_token
            suffix = 2
            while name in taken:
                name = f"{scenario.log_token}_{suffix}"
                suffix += 1
            self._log_names[scenario.name] = name
        return self.log_dir / f"{name}.log"

    def execute(self, scenario: Scenario) -> Measurement:
        """
        Run a scenario end to end.

        Missing prerequisites produce a Skipped measurement; failures to start,
        non-zero exits and timeouts are recorded rather than raised.
        """
        missing = missing_artifacts(scenario)
        if missing:
            error = MissingArtifactError(
                f"{scenario.name} skipped: missing artifact",
                context={"scenario": scenario.name, "missing": missing},
            )
            logger.warning("%s", error, extra=error_to_payload(error))
            return Measurement.skipped(
                scenario.name,
                scenario.phase,
                scenario.implementation,
                note="missing artifact: " + ", ".join(missing),
            )

        log_path = self.log_path_for(scenario)
        try:
            stage_inputs(scenario)
            if self.fresh_outputs and scenario.phase is Phase.CREATION:
                remove_stale_output(scenario)
        except OSError as exc:
            logger.error("Preparing %s failed: %s", scenario.name, exc)
            return self._failed(scenario, f"preparation failed: {exc}", None)

        append = False
        for setup in scenario.setup_commands:
            try:
                result = self.runner.run(
                    setup,
                    scenario.working_directory,
                    scenario.timeout_seconds,
                    log_path=log_path,
                    append=append,
                )
            except OSError as exc:
                logger.error("Could not start %s: %s", setup[0], exc)
                return self._failed(scenario, f"could not start {setup[0]}: {exc}", log_path)
            append = True
            if result.status is not Outcome.SUCCESS:
                logger.error("Setup step %s of %s failed", " ".join(setup), scenario.name)
                return self._from_result(
                    scenario, result, prefix=f"setup `{' '.join(setup)}` failed"
                )

        try:
            result = self.runner.run(
                scenario.command,
                scenario.working_directory,
                scenario.timeout_seconds,
                log_path=log_path,
                memory_limit_mb=scenario.memory_limit_mb,
                detach_after=scenario.detach_after_seconds,
                append=append,
            )
        except OSError as exc:
            logger.error("Could not start %s: %s", scenario.program, exc)
            return self._failed(scenario, f"could not start {scenario.program}: {exc}", log_path)
        return self._from_result(scenario, result)

    def _failed(self, scenario: Scenario, note: str, log_path: Path | None) -> Measurement:
        return Measurement(
            scenario_name=scenario.name,
            phase=scenario.phase,
            implementation=scenario.implementation,
            outcome=Outcome.FAILURE,
            note=note,
            log_path=log_path,
        )

    def _note_for(self, scenario: Scenario, result: ProcessResult) -> str:
        if result.status is Outcome.TIMEOUT:
            return f"timed out after {scenario.timeout_seconds:g}s; process tree terminated"
        if result.status is Outcome.DETACHED:
            return (
                f"still running in background (pid {result.pid}); result unavailable; "
                f"stopped if still running at the {scenario.timeout_seconds:g}s timeout"
            )
        if result.status is Outcome.FAILURE and result.exit_code is None:
            return "reaped externally; exit status unknown"
        if result.status is Outcome.FAILURE and result.exit_code is not None:
            if result.exit_code < 0:
                return f"killed by {_signal_name(result.exit_code)}"
        if result.usage.peak_memory_bytes is not None and result.usage.approximate:
            return "memory sampled by polling (approximate)"
        return ""

    def _from_result(
        self, scenario: Scenario, result: ProcessResult, *, prefix: str = ""
    ) -> Measurement:
        note = self._note_for(scenario, result)
        if prefix:
            note = f"{prefix}: {note}" if note else prefix
        usage = result.usage
        return Measurement(
            scenario_name=scenario.name,
            phase=scenario.phase,
            implementation=scenario.implementation,
            outcome=result.status,
            wall_time=result.wall_time,
            user_cpu=usage.user_cpu,
            system_cpu=usage.system_cpu,
            peak_memory_bytes=usage.peak_memory_bytes,
            cpu_percent=result.cpu_percent,
            exit_code=result.exit_code,
            memory_approximate=usage.approximate and usage.peak_memory_bytes is not None,
            note=note,
            log_path=result.log_path,
            output_size_bytes=output_size(scenario) if not prefix else None,
        )
