"""Public UI API surface."""

from cfb_ui.cli.main import app, main
from cfb_ui.presenters import TableModel, build_plan_table, build_summary_table
from cfb_ui.ui.console import ConsoleUI

__all__ = [
    "ConsoleUI",
    "TableModel",
    "app",
    "build_plan_table",
    "build_summary_table",
    "main",
]
