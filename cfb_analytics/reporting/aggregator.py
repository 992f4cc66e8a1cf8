"""
Report aggregation for benchmark runs.

Measurements are kept in the order they were recorded and rendered into a
Markdown report; the rendered text is persisted by overwriting the target
file.
"""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Sequence

from cfb_common.errors import ReportWriteError
from cfb_runner.models.measurement import Measurement, Outcome
from cfb_runner.services.system_info import HostInfo

from cfb_analytics.reporting.formatting import (
    NOT_AVAILABLE,
    escape_cell,
    format_bytes,
    format_percent,
    format_seconds,
)

logger = logging.getLogger(__name__)

REPORT_TITLE = "Compound File Implementation Performance Report"

TABLE_COLUMNS = (
    "Scenario",
    "Implementation",
    "Outcome",
    "Wall",
    "User CPU",
    "System CPU",
    "CPU %",
    "Peak Memory",
    "Output",
    "Note",
)

SUMMARY_COLUMNS = ("Phase", "Scenario", "Outcome", "Wall", "CPU", "Peak Memory", "Note")


def _compare(
    measurements: Sequence[Measurement],
    metric: str,
    value: Callable[[Measurement], float | None],
    show: Callable[[Measurement], str],
    best_label: str,
    worst_label: str,
) -> str:
    """One comparison line over successful runs; ties go to the first recorded."""
    measured = [m for m in measurements if m.outcome is Outcome.SUCCESS and value(m) is not None]
    if len(measured) < 2:
        return f"- {metric}: insufficient data to compare"
    best = min(measured, key=value)
    worst = max(measured, key=value)
    line = f"- {best_label} {metric.lower()}: {best.implementation} ({best.scenario_name}) at {show(best)}"
    best_value, worst_value = value(best), value(worst)
    if worst_value == best_value:
        return line + "; all measured values are equal"
    line += f"; {worst_label}: {worst.implementation} ({worst.scenario_name}) at {show(worst)}"
    if best_value:
        line += f" ({worst_value / best_value:.2f}x)"
    return line


@dataclass(frozen=True)
class ReportHeader:
    """Run-level facts printed above the results."""

    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    host: HostInfo | None = None
    workspace: Path | None = None
    phases: tuple[str, ...] = ()
    sampler: str | None = None
    log_dir: Path | None = None


class ReportAggregator:
    """Collects measurements for one run and renders the report."""

    def __init__(self, header: ReportHeader | None = None) -> None:
        self.header = header or ReportHeader()
        self._measurements: list[Measurement] = []
        self._partial_reason: str | None = None

    def record(self, measurement: Measurement) -> None:
        """Append a measurement; order is preserved, nothing is deduplicated."""
        self._measurements.append(measurement)

    @property
    def measurements(self) -> tuple[Measurement, ...]:
        return tuple(self._measurements)

    def mark_partial(self, reason: str) -> None:
        """Flag the run as incomplete so the report never passes for a full one."""
        self._partial_reason = reason

    @property
    def is_partial(self) -> bool:
        return self._partial_reason is not None

    def outcome_counts(self) -> Counter[str]:
        return Counter(m.outcome.value for m in self._measurements)

    def summary_rows(self) -> list[list[str]]:
        """Rows for the console summary table, in recorded order."""
        rows: list[list[str]] = []
        for m in self._measurements:
            cpu = NOT_AVAILABLE
            if m.user_cpu is not None and m.system_cpu is not None:
                cpu = f"{format_seconds(m.user_cpu)} / {format_seconds(m.system_cpu)}"
            rows.append(
                [
                    m.phase.value,
                    m.scenario_name,
                    m.outcome_label,
                    format_seconds(m.wall_time),
                    cpu,
                    format_bytes(m.peak_memory_bytes, approximate=m.memory_approximate),
                    m.note,
                ]
            )
        return rows

    def render(self) -> str:
        """Render the Markdown report. Pure: no state is modified."""
        lines: list[str] = [f"# {REPORT_TITLE}", ""]
        lines.extend(self._render_header())
        lines.extend(self._render_host())

        if not self._measurements:
            lines.extend(["## Results", "", "_No scenarios were recorded._", ""])
        # Consecutive grouping keeps sections in exact recorded order.
        for phase, group in itertools.groupby(self._measurements, key=lambda m: m.phase):
            measurements = list(group)
            lines.extend(self._render_section(f"{phase.heading} Phase", measurements))
            lines.extend(self._render_comparison(measurements))

        lines.extend(self._render_outcomes())
        lines.extend(self._render_notes())
        return "\n".join(lines).rstrip("\n") + "\n"

    def write(self, path: Path) -> Path:
        """Render and overwrite the report at ``path``."""
        text = self.render()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise ReportWriteError(
                f"Could not write report to {path}",
                context={"path": path},
                cause=exc,
            ) from exc
        logger.info("Report written to %s", path)
        return path

    def _render_header(self) -> list[str]:
        header = self.header
        status = "complete"
        if self._partial_reason:
            status = f"partial ({self._partial_reason})"
        lines = [
            f"Generated on: {header.generated_at.isoformat(timespec='seconds')}",
            "",
            f"- **Status**: {status}",
        ]
        if header.phases:
            lines.append(f"- **Phases**: {', '.join(header.phases)}")
        lines.append(f"- **Scenarios recorded**: {len(self._measurements)}")
        if header.sampler:
            lines.append(f"- **Resource sampler**: {header.sampler}")
        lines.append("")
        return lines

    def _render_host(self) -> list[str]:
        header = self.header
        if header.host is None and header.workspace is None:
            return []
        lines = ["## System Information", ""]
        host = header.host
        if host is not None:
            lines.extend(
                [
                    f"- Host: {host.hostname}",
                    f"- OS: {host.os}",
                    f"- Kernel: {host.kernel}",
                    f"- Architecture: {host.architecture}",
                    f"- CPU: {host.cpu_model}"
                    + (f" ({host.cpu_count} logical cores)" if host.cpu_count else ""),
                    f"- Total Memory: {format_bytes(host.total_memory_bytes)}",
                    f"- Python: {host.python}",
                ]
            )
        if header.workspace is not None:
            lines.append(f"- Workspace: {header.workspace}")
        lines.append("")
        return lines

    @staticmethod
    def _render_section(title: str, measurements: Sequence[Measurement]) -> list[str]:
        lines = [f"## {title}", ""]
        lines.append("| " + " | ".join(TABLE_COLUMNS) + " |")
        lines.append("|" + "|".join("---" for _ in TABLE_COLUMNS) + "|")
        for m in measurements:
            cells = [
                m.scenario_name,
                m.implementation,
                m.outcome_label,
                format_seconds(m.wall_time),
                format_seconds(m.user_cpu),
                format_seconds(m.system_cpu),
                format_percent(m.cpu_percent),
                format_bytes(m.peak_memory_bytes, approximate=m.memory_approximate),
                format_bytes(m.output_size_bytes) if m.output_size_bytes is not None else "-",
                m.note or "-",
            ]
            lines.append("| " + " | ".join(escape_cell(str(cell)) for cell in cells) + " |")
        lines.append("")
        return lines

    @staticmethod
    def _render_comparison(measurements: Sequence[Measurement]) -> list[str]:
        return [
            "### Comparison",
            "",
            _compare(
                measurements,
                "Wall time",
                lambda m: m.wall_time,
                lambda m: format_seconds(m.wall_time),
                "Fastest",
                "slowest",
            ),
            _compare(
                measurements,
                "Peak memory",
                lambda m: m.peak_memory_bytes,
                lambda m: format_bytes(m.peak_memory_bytes, approximate=m.memory_approximate),
                "Lowest",
                "highest",
            ),
            "",
        ]

    def _render_outcomes(self) -> list[str]:
        if not self._measurements:
            return []
        counts = self.outcome_counts()
        lines = ["## Outcomes", ""]
        for outcome in Outcome:
            if counts.get(outcome.value):
                lines.append(f"- {outcome.value}: {counts[outcome.value]}")
        lines.append("")
        return lines

    def _render_notes(self) -> list[str]:
        lines = [
            "## Notes",
            "",
            "- Wall, User CPU and System CPU are elapsed and CPU times of the whole process tree.",
            "- CPU % is (user + system) / wall, so multi-threaded runs can exceed 100%.",
            f"- Peak Memory is the maximum resident set size; {NOT_AVAILABLE} means it could not be measured.",
            "- Values prefixed with `~` were estimated by polling and are approximate.",
            "- Skipped scenarios were not run because an executable or input file was missing"
            " or an input was still being written by a detached run.",
            "- Comparisons only consider successful runs with a measured value.",
        ]
        if self.header.log_dir is not None:
            lines.append(f"- Per-scenario logs: `{self.header.log_dir}`")
        lines.append("")
        return lines


def aggregate(measurements: Iterable[Measurement], header: ReportHeader | None = None) -> ReportAggregator:
    """Build an aggregator pre-loaded with ``measurements``."""
    aggregator = ReportAggregator(header)
    for measurement in measurements:
        aggregator.record(measurement)
    return aggregator
