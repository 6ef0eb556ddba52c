"""Template filters for markdown output."""

from __future__ import annotations

from typing import Any

_UNITS = ("KB", "MB", "GB")


def format_bytes(value: Any) -> str:
    """Human readable byte count: ``512 bytes``, ``1.5 KB``."""
    try:
        size = float(value)
    except (TypeError, ValueError):
        return str(value)
    if size < 1024:
        return f"{int(size)} bytes" if int(size) != 1 else "1 byte"
    for unit in _UNITS:
        size /= 1024
        if size < 1024 or unit == _UNITS[-1]:
            return f"{size:.1f} {unit}"
    return f"{size:.1f} {_UNITS[-1]}"


def md_escape(value: Any) -> str:
    """Make a value safe inside a markdown table cell."""
    if value is None:
        return ""
    text = str(value)
    return text.replace("\\", "\\\\").replace("|", "\\|").replace("\r\n", " ").replace("\n", " ")


__all__ = ["format_bytes", "md_escape"]
