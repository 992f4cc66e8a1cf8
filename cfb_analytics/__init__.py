"""Reporting for cfb-bench runs."""

from cfb_analytics.api import ReportAggregator, ReportHeader

__all__ = ["ReportAggregator", "ReportHeader"]
