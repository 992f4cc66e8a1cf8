"""Rich-based console output used for all TTY output."""

from __future__ import annotations

import shutil
import sys
from typing import IO, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from cfb_analytics.reporting.formatting import format_bytes, format_seconds
from cfb_runner.models.measurement import Measurement, Outcome
from cfb_runner.models.scenario import Phase, Scenario
from cfb_ui.presenters.tables import TableModel

THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "red",
        "success": "green",
        "accent": "#3ea6ff",
    }
)

OUTCOME_STYLES = {
    Outcome.SUCCESS: "success",
    Outcome.FAILURE: "error",
    Outcome.TIMEOUT: "error",
    Outcome.SKIPPED: "warning",
    Outcome.DETACHED: "warning",
}


class ConsoleUI:
    """ANSI-friendly output with Rich tables; doubles as the orchestrator progress sink."""

    def __init__(
        self,
        stream: IO[str] | None = None,
        *,
        force_terminal: bool | None = None,
        width: int | None = None,
    ):
        self.console = Console(
            theme=THEME,
            file=stream or sys.stdout,
            highlight=False,
            soft_wrap=True,
            force_terminal=force_terminal,
            width=width,
        )

    def show_info(self, message: str) -> None:
        self.console.print(escape(message), style="info")

    def show_warning(self, message: str) -> None:
        self.console.print(escape(message), style="warning")

    def show_error(self, message: str) -> None:
        self.console.print(escape(message), style="error")

    def show_success(self, message: str) -> None:
        self.console.print(escape(message), style="success")

    def show_rule(self, title: str) -> None:
        self.console.rule(f"[b]{escape(title)}[/b]", style="accent")

    def show_table(self, model: TableModel) -> None:
        # Keep tables within the visible console width and fold long cells.
        term_width = self.console.size.width or shutil.get_terminal_size(fallback=(100, 24)).columns
        table_width = max(60, term_width - 2) if term_width > 0 else None

        table = Table(
            title=f"[b]{escape(model.title)}[/b]",
            border_style="accent",
            header_style="bold white",
            row_styles=("", "dim"),
            expand=table_width is None,
            width=table_width,
        )
        for column in model.columns:
            table.add_column(column, overflow="fold")
        for row in model.rows:
            table.add_row(*[escape(str(cell)) for cell in row])
        self.console.print(table)

    # Progress sink

    def phase_started(self, phase: Phase, scenarios: Sequence[Scenario]) -> None:
        self.show_rule(f"{phase.heading} Phase")
        if not scenarios:
            self.show_warning(f"No scenarios for the {phase.value} phase")

    def scenario_started(self, scenario: Scenario) -> None:
        self.console.print(
            f"[accent]>[/accent] {escape(scenario.name)} "
            f"[dim]({escape(scenario.describe_command())})[/dim]"
        )

    def scenario_finished(self, scenario: Scenario, measurement: Measurement) -> None:
        style = OUTCOME_STYLES.get(measurement.outcome, "info")
        parts = [f"[{style}]{escape(measurement.outcome_label)}[/{style}]"]
        if measurement.wall_time is not None:
            parts.append(f"wall {format_seconds(measurement.wall_time)}")
        if measurement.peak_memory_bytes is not None:
            memory = format_bytes(
                measurement.peak_memory_bytes, approximate=measurement.memory_approximate
            )
            parts.append(f"peak {memory}")
        line = "  " + ", ".join(parts)
        if measurement.note:
            line += f" [dim]- {escape(measurement.note)}[/dim]"
        self.console.print(line)
