"""
Command-line interface for cfb-bench.

Builds the compound-file implementations, runs their creation, traversal and
modification programs under measurement and writes a Markdown report.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from cfb_common.errors import CFBError, ConfigurationError
from cfb_common.logging import configure_logging
from cfb_controller.catalog import plan as build_plan
from cfb_controller.models.config import BenchConfig
from cfb_controller.orchestrator import BenchmarkOrchestrator
from cfb_runner.models.scenario import Phase
from cfb_ui.presenters.tables import build_plan_table, build_summary_table
from cfb_ui.ui.console import ConsoleUI

EXIT_INTERRUPTED = 130

app = typer.Typer(
    help="Benchmark compound-file implementations and write a performance report.",
    no_args_is_help=True,
)

_PHASE_HELP = "Phase to run (build, creation, traversal, modification or all); repeatable."


def parse_phases(values: Optional[List[str]]) -> Optional[List[Phase]]:
    """Map ``--phase`` values to phases; None means every phase."""
    if not values:
        return None
    selected: List[Phase] = []
    for raw in values:
        for token in raw.split(","):
            name = token.strip().lower()
            if not name:
                continue
            if name == "all":
                return Phase.ordered()
            try:
                selected.append(Phase(name))
            except ValueError:
                raise typer.BadParameter(
                    f"unknown phase {token.strip()!r}", param_hint="--phase"
                ) from None
    return selected or None


def load_config(
    config_path: Optional[Path],
    *,
    workspace: Optional[Path] = None,
    timeout: Optional[float] = None,
    phases: Optional[List[Phase]] = None,
    report: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    memory_limit_mb: Optional[int] = None,
    sampler: Optional[str] = None,
) -> BenchConfig:
    """Config file (or environment defaults) with CLI overrides applied."""
    base = BenchConfig.load(config_path) if config_path else BenchConfig.from_env()
    return base.apply_overrides(
        workspace_root=workspace,
        timeout_override=timeout,
        phases=phases,
        report_path=report,
        log_dir=log_dir,
        memory_limit_mb=memory_limit_mb,
        sampler=sampler,
    )


def _console() -> ConsoleUI:
    return ConsoleUI()


@app.command("run")
def run(
    workspace: Optional[Path] = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace root holding the implementations (default: $CFB_WORKSPACE_ROOT or ~/polytec).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Timeout in seconds applied to every scenario (default: $CFB_TIMEOUT or per-phase defaults).",
    ),
    phase: Optional[List[str]] = typer.Option(None, "--phase", "-p", help=_PHASE_HELP),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Markdown report path (default: <workspace>/performance_report.md).",
    ),
    log_dir: Optional[Path] = typer.Option(
        None,
        "--log-dir",
        help="Directory receiving one sub-directory of scenario logs per run.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="JSON config file describing workspace, timeouts and implementations.",
    ),
    memory_limit_mb: Optional[int] = typer.Option(
        None,
        "--memory-limit-mb",
        help="Address-space limit (MiB) applied to measured programs.",
    ),
    sampler: Optional[str] = typer.Option(
        None,
        "--sampler",
        help="Force the resource sampler (rusage or poll).",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable verbose debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines."),
) -> None:
    """Build, run and measure every selected phase, then write the report."""
    configure_logging(debug=debug, json=json_logs or None, force=True)
    ui = _console()

    try:
        cfg = load_config(
            config,
            workspace=workspace,
            timeout=timeout,
            phases=parse_phases(phase),
            report=report,
            log_dir=log_dir,
            memory_limit_mb=memory_limit_mb,
            sampler=sampler,
        )
    except ConfigurationError as exc:
        ui.show_error(str(exc))
        raise typer.Exit(1)

    orchestrator = BenchmarkOrchestrator(cfg, progress=ui)
    try:
        summary = orchestrator.run()
    except KeyboardInterrupt:
        ui.show_warning(f"Interrupted; partial report written to {cfg.resolved_report_path}")
        raise typer.Exit(EXIT_INTERRUPTED)
    except CFBError as exc:
        ui.show_error(str(exc))
        raise typer.Exit(1)

    if orchestrator.aggregator is not None:
        ui.show_table(build_summary_table(orchestrator.aggregator))
    ui.show_info(f"Scenario logs: {summary.log_dir}")
    ui.show_success(f"Report written to {summary.report_path}")


@app.command("plan")
def plan(
    workspace: Optional[Path] = typer.Option(None, "--workspace", "-w", help="Workspace root."),
    phase: Optional[List[str]] = typer.Option(None, "--phase", "-p", help=_PHASE_HELP),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON config file."),
) -> None:
    """Show the scenarios a run would execute, without running anything."""
    configure_logging(force=True)
    ui = _console()
    try:
        cfg = load_config(config, workspace=workspace, phases=parse_phases(phase))
    except ConfigurationError as exc:
        ui.show_error(str(exc))
        raise typer.Exit(1)
    scenarios = build_plan(cfg)
    if not scenarios:
        ui.show_warning("No scenarios selected.")
        return
    ui.show_table(build_plan_table(scenarios))


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()
