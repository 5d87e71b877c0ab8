"""Conversion between seconds and Go-style duration strings ("1h2m3s")."""

import re

_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1, "ms": 0.001}
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def parse_duration(text: str) -> int:
    """Parse a duration such as "10m0s" or "90s" into whole seconds.

    Raises:
        ValueError: If text is not a duration
    """
    if not text:
        return 0
    position = 0
    total = 0.0
    for match in _DURATION_RE.finditer(text):
        if match.start() != position:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {text!r}")
    return int(total)


def format_duration(seconds: int) -> str:
    """Format whole seconds the way Go prints a time.Duration."""
    if seconds <= 0:
        return "0s"
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"
