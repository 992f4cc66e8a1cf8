"""Report aggregation and rendering."""

from cfb_analytics.reporting.aggregator import (
    REPORT_TITLE,
    SUMMARY_COLUMNS,
    ReportAggregator,
    ReportHeader,
    aggregate,
)

__all__ = ["REPORT_TITLE", "SUMMARY_COLUMNS", "ReportAggregator", "ReportHeader", "aggregate"]
