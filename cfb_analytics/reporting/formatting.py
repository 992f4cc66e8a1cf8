"""Formatting helpers shared by the Markdown report and console summary."""

from __future__ import annotations

NOT_AVAILABLE = "N/A"

_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


def format_seconds(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    if value >= 60:
        minutes, seconds = divmod(value, 60)
        return f"{int(minutes)}m{seconds:05.2f}s"
    return f"{value:.2f}s"


def format_bytes(value: int | None, *, approximate: bool = False) -> str:
    if value is None:
        return NOT_AVAILABLE
    size = float(value)
    unit = _UNITS[0]
    for unit in _UNITS:
        if size < 1024 or unit == _UNITS[-1]:
            break
        size /= 1024
    text = f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
    return f"~{text}" if approximate else text


def format_percent(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.0f}%"


def escape_cell(text: str) -> str:
    """Make free text safe inside a Markdown table cell."""
    return text.replace("|", "\\|").replace("\n", " ").strip()
