"""
Benchmark orchestrator.

Drives the phases in order, hands every scenario to an executor, records the
measurements and writes the report. Scenario failures are data; only
configuration problems and report write failures escape ``run``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from cfb_analytics.reporting.aggregator import ReportAggregator, ReportHeader
from cfb_common.errors import BuildError, error_to_payload
from cfb_controller.catalog import scenarios_for_phase
from cfb_controller.lifecycle import RunLifecycle
from cfb_controller.models.config import BenchConfig
from cfb_controller.paths import generate_run_id, prepare_run_log_dir
from cfb_controller.types import Executor, NullProgress, ProgressSink, RunSummary
from cfb_runner.engine.process_runner import ProcessRunner
from cfb_runner.engine.scenario_executor import ScenarioExecutor
from cfb_runner.metric_collectors import select_sampler
from cfb_runner.models.measurement import PENDING_INPUT_NOTE, Measurement, Outcome
from cfb_runner.models.scenario import Phase, Scenario
from cfb_runner.services.artifacts import output_path
from cfb_runner.services.system_info import HostInfo, collect_host_info

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[Path], Executor]

INTERRUPTED_REASON = "interrupted by user"


class BenchmarkOrchestrator:
    """Runs the configured phases and produces the performance report."""

    def __init__(
        self,
        config: BenchConfig,
        *,
        runner: Optional[ProcessRunner] = None,
        executor_factory: Optional[ExecutorFactory] = None,
        progress: Optional[ProgressSink] = None,
        host_info: Callable[[], HostInfo | None] = collect_host_info,
    ) -> None:
        self.config = config
        self._runner = runner
        self._executor_factory = executor_factory
        self.progress: ProgressSink = progress or NullProgress()
        self._host_info = host_info
        self.lifecycle = RunLifecycle()
        self.aggregator: ReportAggregator | None = None
        self._detached_outputs: dict[Path, str] = {}

    def _make_executor(self, log_dir: Path) -> Executor:
        if self._executor_factory is not None:
            return self._executor_factory(log_dir)
        if self._runner is None:
            self._runner = ProcessRunner(select_sampler(self.config.sampler))
        return ScenarioExecutor(self._runner, log_dir, fresh_outputs=self.config.fresh_outputs)

    def _sampler_label(self) -> str | None:
        return self._runner.sampler_name if self._runner is not None else None

    def run(self) -> RunSummary:
        """
        Execute every selected phase and write the report.

        Raises:
            ConfigurationError: the workspace or log directory is unusable.
            ReportWriteError: the report could not be written.
            KeyboardInterrupt: re-raised after the partial report is written.
        """
        config = self.config
        config.validate_workspace()
        run_id = generate_run_id()
        log_dir = prepare_run_log_dir(config.resolved_log_dir, run_id)
        executor = self._make_executor(log_dir)
        report_path = config.resolved_report_path

        host = self._host_info()
        header = ReportHeader(
            host=host,
            workspace=config.workspace_root,
            phases=tuple(phase.value for phase in config.phases),
            sampler=self._sampler_label(),
            log_dir=log_dir,
        )
        aggregator = ReportAggregator(header)
        self.aggregator = aggregator
        self._detached_outputs = {}
        logger.info(
            "Starting run %s in %s on %s",
            run_id,
            config.workspace_root,
            host.describe() if host is not None else "unknown host",
        )

        try:
            for phase in config.phases:
                self._run_phase(phase, executor, aggregator)
        except KeyboardInterrupt:
            self.lifecycle.mark_interrupted()
            aggregator.mark_partial(INTERRUPTED_REASON)
            logger.warning("Run %s interrupted; writing partial report", run_id)
            aggregator.write(report_path)
            raise

        self.lifecycle.start_reporting()
        aggregator.write(report_path)
        self.lifecycle.finish()
        return RunSummary(
            run_id=run_id,
            report_path=report_path,
            log_dir=log_dir,
            measurements=aggregator.measurements,
            partial=aggregator.is_partial,
        )

    def _run_phase(self, phase: Phase, executor: Executor, aggregator: ReportAggregator) -> None:
        self.lifecycle.start_phase(phase)
        # Resolved here, after earlier phases, so fresh build outputs are seen.
        scenarios = scenarios_for_phase(self.config, phase)
        logger.info("Phase %s: %d scenario(s)", phase.value, len(scenarios))
        self.progress.phase_started(phase, scenarios)
        for scenario in scenarios:
            self.progress.scenario_started(scenario)
            measurement = self._pending_input_skip(scenario) or executor.execute(scenario)
            aggregator.record(measurement)
            if phase is Phase.BUILD and measurement.outcome is not Outcome.SUCCESS:
                self._log_build_failure(scenario, measurement)
            if measurement.outcome is Outcome.DETACHED:
                self._track_detached_output(scenario)
            self.progress.scenario_finished(scenario, measurement)

    def _track_detached_output(self, scenario: Scenario) -> None:
        artifact = output_path(scenario)
        if artifact is not None:
            self._detached_outputs[artifact] = scenario.name

    def _pending_input_skip(self, scenario: Scenario) -> Measurement | None:
        """Skip a scenario reading a file that a detached scenario is still writing."""
        workdir = scenario.working_directory.expanduser()
        for required in scenario.required_inputs:
            path = required if required.is_absolute() else workdir / required
            producer = self._detached_outputs.get(path)
            if producer is None:
                continue
            logger.warning("Skipping %s: %s is still being written by %s", scenario.name, path, producer)
            return Measurement.skipped(
                scenario.name,
                scenario.phase,
                scenario.implementation,
                note=f"{PENDING_INPUT_NOTE} by detached {producer}",
            )
        return None

    @staticmethod
    def _log_build_failure(scenario: Scenario, measurement: Measurement) -> None:
        error = BuildError(
            f"Build of {scenario.implementation} did not succeed",
            context={
                "scenario": scenario.name,
                "outcome": measurement.outcome_label,
                "log": measurement.log_path,
            },
        )
        logger.warning("%s; continuing with later phases", error, extra=error_to_payload(error))
