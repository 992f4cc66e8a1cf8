"""Public API surface for cfb_analytics."""

from cfb_analytics.reporting import (
    REPORT_TITLE,
    SUMMARY_COLUMNS,
    ReportAggregator,
    ReportHeader,
    aggregate,
)
from cfb_analytics.reporting.formatting import format_bytes, format_seconds

__all__ = [
    "REPORT_TITLE",
    "SUMMARY_COLUMNS",
    "ReportAggregator",
    "ReportHeader",
    "aggregate",
    "format_bytes",
    "format_seconds",
]
