"""Relative-age labels for log rows."""

from __future__ import annotations

from typing import Union

from utils import common

logger = common.get_logger("time_formatting")

Number = Union[int, float]


def format_relative_age(seconds: Number) -> str:
    """Return a short age label such as ``now``, ``12s ago`` or ``3h ago``.

    Labels stay within eight characters so they can be right-aligned in a
    fixed-width column.
    """
    try:
        age = int(seconds)
    except (TypeError, ValueError):
        logger.debug("Invalid age value for formatting: %r", seconds)
        return "?"

    if age < 1:
        return "now"
    if age < 60:
        return f"{age}s ago"
    if age < 3600:
        return f"{age // 60}m ago"
    if age < 86400:
        return f"{age // 3600}h ago"
    days = age // 86400
    if days > 999:
        return ">999d"
    return f"{days}d ago"


__all__ = ["format_relative_age"]
