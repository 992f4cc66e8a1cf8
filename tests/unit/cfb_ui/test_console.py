from __future__ import annotations

import io
from pathlib import Path

import pytest

from cfb_analytics.reporting.aggregator import ReportAggregator
from cfb_runner.models.measurement import Measurement, Outcome
from cfb_runner.models.scenario import Phase, Scenario
from cfb_ui.presenters import build_plan_table, build_summary_table
from cfb_ui.ui.console import ConsoleUI


pytestmark = pytest.mark.unit_ui


def _scenario() -> Scenario:
    return Scenario("rust creation", Phase.CREATION, "Rust", ("create_1gb_cfb",), Path("/ws"), 300)


def test_progress_lines() -> None:
    stream = io.StringIO()
    ui = ConsoleUI(stream, force_terminal=False)
    scenario = _scenario()
    ui.phase_started(Phase.CREATION, [scenario])
    ui.scenario_started(scenario)
    ui.scenario_finished(
        scenario,
        Measurement(
            scenario_name=scenario.name,
            phase=scenario.phase,
            implementation="Rust",
            outcome=Outcome.SUCCESS,
            wall_time=1.5,
            peak_memory_bytes=2 * 1024 * 1024,
        ),
    )
    out = stream.getvalue()
    assert "Creation Phase" in out
    assert "rust creation" in out
    assert "success" in out
    assert "2.0 MiB" in out


def test_plan_table_model() -> None:
    model = build_plan_table([_scenario()])
    assert model.rows[0][:3] == ["creation", "rust creation", "Rust"]
    assert model.rows[0][-1] == "300s"


def test_summary_table_renders() -> None:
    aggregator = ReportAggregator()
    aggregator.record(Measurement.skipped("rust traversal", Phase.TRAVERSAL, "Rust", note="missing artifact: [x]"))
    stream = io.StringIO()
    ConsoleUI(stream, force_terminal=False, width=200).show_table(build_summary_table(aggregator))
    out = stream.getvalue()
    assert "Run Summary" in out
    assert "missing artifact: [x]" in out
