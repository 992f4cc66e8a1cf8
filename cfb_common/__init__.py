"""Shared helpers for cfb-bench."""

from cfb_common.api import CFBError, configure_logging

__all__ = ["CFBError", "configure_logging"]
