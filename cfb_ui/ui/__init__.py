"""Console rendering for cfb-bench."""

from cfb_ui.ui.console import THEME, ConsoleUI

__all__ = ["THEME", "ConsoleUI"]
