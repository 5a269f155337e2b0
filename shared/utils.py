"""Shared utility functions."""
import re
from datetime import timedelta

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")


def parse_interval(value: str) -> timedelta:
    """Parse a duration string such as "60s", "5m", "1h30m" or "500ms".

    A bare number is read as seconds.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("empty duration")

    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    total = timedelta()
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ValueError(f"invalid duration {value!r}")
        amount = float(match.group(1))
        unit = match.group(2)
        if unit == "ms":
            total += timedelta(milliseconds=amount)
        elif unit == "s":
            total += timedelta(seconds=amount)
        elif unit == "m":
            total += timedelta(minutes=amount)
        else:
            total += timedelta(hours=amount)
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total
