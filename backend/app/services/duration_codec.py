from __future__ import annotations

import re

ISO8601_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


def parse_duration(raw_value: object) -> int:
    """Convert an ISO-8601 duration such as ``PT1H2M3S`` into whole seconds.

    Missing components count as zero. Anything that is not a duration string
    yields ``0`` instead of raising, so callers can treat unknown durations the
    same way as absent ones.
    """
    if not isinstance(raw_value, str):
        return 0
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip().upper())
    if matched is None:
        return 0

    days = int(matched.group("days") or 0)
    hours = int(matched.group("hours") or 0)
    minutes = int(matched.group("minutes") or 0)
    seconds = int(matched.group("seconds") or 0)
    return days * 86_400 + hours * 3_600 + minutes * 60 + seconds


def format_duration(seconds: int | float) -> str:
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3_600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
