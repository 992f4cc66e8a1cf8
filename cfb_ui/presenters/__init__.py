"""Presenters turning run data into table models."""

from cfb_ui.presenters.tables import TableModel, build_plan_table, build_summary_table

__all__ = ["TableModel", "build_plan_table", "build_summary_table"]
