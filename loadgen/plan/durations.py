"""Parsing of k6-style duration strings."""

import re

_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str | int | float) -> float:
    """Convert ``"500ms"``, ``"30s"``, ``"1m"``, ``"1h30m"`` or a number of seconds to seconds.

    Raises:
        ValueError: the value is negative or not a valid duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int | float):
        if value < 0:
            raise ValueError(f"Duration must be >= 0, got {value}")
        return float(value)

    text = value.strip().replace(" ", "")
    if not text:
        raise ValueError("Duration is empty")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds < 0:
            raise ValueError(f"Duration must be >= 0, got {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


def format_duration(seconds: float) -> str:
    """Short human form used in reports, e.g. ``1m30s`` or ``250ms``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    minutes, secs = divmod(seconds, 60)
    if minutes < 1:
        return f"{secs:g}s"
    hours, minutes = divmod(int(minutes), 60)
    text = f"{hours}h" if hours else ""
    if minutes:
        text += f"{minutes}m"
    if secs:
        text += f"{secs:g}s"
    return text
