"""Presenters for the scenario plan and the run summary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from cfb_analytics.reporting.aggregator import SUMMARY_COLUMNS, ReportAggregator
from cfb_runner.models.scenario import Scenario


@dataclass(frozen=True)
class TableModel:
    title: str
    columns: list[str]
    rows: list[list[str]]


def build_plan_table(scenarios: Sequence[Scenario]) -> TableModel:
    """Transform a list of scenarios into a TableModel."""
    rows = [
        [
            scenario.phase.value,
            scenario.name,
            scenario.implementation,
            scenario.describe_command(),
            str(scenario.working_directory),
            f"{scenario.timeout_seconds:g}s",
        ]
        for scenario in scenarios
    ]
    return TableModel(
        title="Scenario Plan",
        columns=["Phase", "Scenario", "Implementation", "Command", "Working Dir", "Timeout"],
        rows=rows,
    )


def build_summary_table(aggregator: ReportAggregator) -> TableModel:
    return TableModel(
        title="Run Summary",
        columns=list(SUMMARY_COLUMNS),
        rows=aggregator.summary_rows(),
    )
