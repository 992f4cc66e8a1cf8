"""Tests for report aggregation and Markdown rendering."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from cfb_analytics.reporting.aggregator import REPORT_TITLE, ReportAggregator, ReportHeader, aggregate
from cfb_common.errors import ReportWriteError
from cfb_runner.models.measurement import Measurement, Outcome
from cfb_runner.models.scenario import Phase
from cfb_runner.services.system_info import HostInfo


pytestmark = pytest.mark.unit_analytics

FIXED_TIME = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _m(name: str, phase: Phase = Phase.CREATION, **kwargs) -> Measurement:
    kwargs.setdefault("outcome", Outcome.SUCCESS)
    return Measurement(scenario_name=name, phase=phase, implementation=name.split()[0], **kwargs)


@pytest.fixture
def header() -> ReportHeader:
    host = HostInfo(
        hostname="bench-host",
        os="Linux",
        kernel="6.1.0",
        architecture="x86_64",
        cpu_model="Test CPU",
        cpu_count=8,
        total_memory_bytes=16 * 1024**3,
        python="3.12.1",
    )
    return ReportHeader(
        generated_at=FIXED_TIME,
        host=host,
        workspace=Path("/ws"),
        phases=("creation", "traversal"),
        sampler="RusageSampler",
        log_dir=Path("/ws/benchmark_logs/run-1"),
    )


def test_render_preserves_record_order(header: ReportHeader) -> None:
    aggregator = ReportAggregator(header)
    names = ["rust creation", "cfbcpp creation", "compoundfile creation"]
    for name in names:
        aggregator.record(_m(name, wall_time=1.0))
    aggregator.record(_m("rust traversal", Phase.TRAVERSAL, wall_time=2.0))

    text = aggregator.render()
    positions = [text.index(f"| {name} |") for name in names + ["rust traversal"]]
    assert positions == sorted(positions)
    assert text.index("## Creation Phase") < text.index("## Traversal Phase")
    assert text.startswith(f"# {REPORT_TITLE}")


def test_same_name_is_not_deduplicated(header: ReportHeader) -> None:
    aggregator = aggregate([_m("rust creation"), _m("rust creation")], header)
    assert len(aggregator.measurements) == 2
    assert aggregator.render().count("| rust creation |") == 2


def test_render_is_idempotent(header: ReportHeader) -> None:
    aggregator = aggregate([_m("rust creation", wall_time=1.5)], header)
    assert aggregator.render() == aggregator.render()


def test_unknown_values_render_as_not_available(header: ReportHeader) -> None:
    aggregator = aggregate(
        [Measurement.skipped("rust traversal", Phase.TRAVERSAL, "rust", note="missing artifact: x")],
        header,
    )
    text = aggregator.render()
    row = next(line for line in text.splitlines() if line.startswith("| rust traversal |"))
    assert "N/A" in row
    assert "skipped: missing artifact" in row
    assert "0.00s" not in row


def test_approximate_memory_is_marked(header: ReportHeader) -> None:
    aggregator = aggregate(
        [_m("rust creation", wall_time=1.0, peak_memory_bytes=10 * 1024 * 1024, memory_approximate=True)],
        header,
    )
    assert "~10.0 MiB" in aggregator.render()


def test_header_and_host_sections(header: ReportHeader) -> None:
    text = ReportAggregator(header).render()
    assert "Generated on: 2024-01-02T03:04:05+00:00" in text
    assert "- **Status**: complete" in text
    assert "- Host: bench-host" in text
    assert "- Total Memory: 16.0 GiB" in text
    assert "_No scenarios were recorded._" in text


def test_partial_run_is_labelled(header: ReportHeader) -> None:
    aggregator = aggregate([_m("rust creation")], header)
    aggregator.mark_partial("interrupted")
    assert aggregator.is_partial
    assert "- **Status**: partial (interrupted)" in aggregator.render()


def test_write_overwrites_previous_report(tmp_path: Path, header: ReportHeader) -> None:
    path = tmp_path / "reports" / "performance_report.md"
    aggregate([_m("first creation")], header).write(path)
    aggregate([_m("second creation")], header).write(path)
    text = path.read_text()
    assert "second creation" in text
    assert "first creation" not in text


def test_write_failure_raises_report_write_error(tmp_path: Path, header: ReportHeader) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(ReportWriteError):
        ReportAggregator(header).write(blocker / "report.md")


def test_summary_rows_and_counts(header: ReportHeader) -> None:
    aggregator = aggregate(
        [
            _m("rust creation", wall_time=2.0, user_cpu=1.0, system_cpu=0.5),
            _m("cfbcpp creation", outcome=Outcome.FAILURE, exit_code=1),
        ],
        header,
    )
    rows = aggregator.summary_rows()
    assert rows[0][:4] == ["creation", "rust creation", "success", "2.00s"]
    assert rows[0][4] == "1.00s / 0.50s"
    assert rows[1][2] == "failure (exit 1)"
    assert aggregator.outcome_counts() == {"success": 1, "failure": 1}
    assert "- failure: 1" in aggregator.render()


def _comparison(text: str, heading: str) -> list[str]:
    section = text.split(f"## {heading}", 1)[1]
    block = section.split("### Comparison", 1)[1].split("\n## ", 1)[0]
    return [line for line in block.splitlines() if line.startswith("- ")]


def test_comparison_names_fastest_and_lowest_memory(header: ReportHeader) -> None:
    mib = 1024 * 1024
    aggregator = aggregate(
        [
            _m("rust creation", wall_time=4.0, peak_memory_bytes=30 * mib),
            _m("cfbcpp creation", wall_time=2.0, peak_memory_bytes=None),
            _m("compoundfile creation", wall_time=0.5, outcome=Outcome.FAILURE, exit_code=1),
            _m("bigmem creation", wall_time=8.0, peak_memory_bytes=60 * mib),
        ],
        header,
    )
    text = aggregator.render()
    lines = _comparison(text, "Creation Phase")

    assert lines[0] == (
        "- Fastest wall time: cfbcpp (cfbcpp creation) at 2.00s; "
        "slowest: bigmem (bigmem creation) at 8.00s (4.00x)"
    )
    assert lines[1] == (
        "- Lowest peak memory: rust (rust creation) at 30.0 MiB; "
        "highest: bigmem (bigmem creation) at 60.0 MiB (2.00x)"
    )
    assert "| cfbcpp creation | cfbcpp | success | 2.00s |" in text
    assert text == aggregator.render()


def test_comparison_reports_insufficient_data(header: ReportHeader) -> None:
    aggregator = aggregate(
        [
            _m("rust traversal", Phase.TRAVERSAL, wall_time=1.0),
            Measurement.skipped("cfbcpp traversal", Phase.TRAVERSAL, "cfbcpp", note="missing artifact: x"),
            _m("compoundfile traversal", Phase.TRAVERSAL, outcome=Outcome.TIMEOUT, wall_time=9.0),
        ],
        header,
    )
    assert _comparison(aggregator.render(), "Traversal Phase") == [
        "- Wall time: insufficient data to compare",
        "- Peak memory: insufficient data to compare",
    ]


def test_comparison_ties_keep_first_recorded(header: ReportHeader) -> None:
    aggregator = aggregate(
        [_m("rust creation", wall_time=1.0), _m("cfbcpp creation", wall_time=1.0)],
        header,
    )
    lines = _comparison(aggregator.render(), "Creation Phase")
    assert lines[0] == "- Fastest wall time: rust (rust creation) at 1.00s; all measured values are equal"


def test_comparison_is_per_phase(header: ReportHeader) -> None:
    aggregator = aggregate(
        [
            _m("rust creation", wall_time=3.0),
            _m("cfbcpp creation", wall_time=1.0),
            _m("rust traversal", Phase.TRAVERSAL, wall_time=0.2),
        ],
        header,
    )
    text = aggregator.render()
    assert _comparison(text, "Creation Phase")[0].startswith("- Fastest wall time: cfbcpp")
    assert _comparison(text, "Traversal Phase")[0] == "- Wall time: insufficient data to compare"
