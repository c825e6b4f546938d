from __future__ import annotations

import re
from dataclasses import dataclass

from backend.app.services.duration_codec import format_duration
from backend.app.services.keyword_scoring import contains_keyword

WATCH_URL_BASE = "https://youtube.com/watch?v="

# M:SS, MM:SS or H:MM:SS, not embedded in a longer run of digits.
CLOCK_TIMESTAMP_PATTERN = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?::(\d{2}))?(?!\d)")

SHORT_VIDEO_CONTEXT = "Check video for keyword mentions"
QUARTILE_LABELS: dict[float, str] = {
    0.25: "quarter",
    0.5: "halfway",
    0.75: "three-quarters",
}


@dataclass(frozen=True)
class TimestampHeuristics:
    lead_in_seconds: int = 3
    short_video_seconds: int = 300
    context_radius: int = 100
    max_hints: int = 3
    quartile_fractions: tuple[float, ...] = (0.25, 0.5, 0.75)


@dataclass(frozen=True)
class TimestampHint:
    offset_seconds: int
    formatted: str
    context_snippet: str
    link_url: str
    estimated: bool = True


def watch_url(video_id: str, offset_seconds: int | None = None) -> str:
    url = f"{WATCH_URL_BASE}{video_id}"
    if offset_seconds is None:
        return url
    return f"{url}&t={offset_seconds}s"


def estimate_timestamps(
    description: str,
    keyword: str,
    duration_seconds: int,
    video_id: str,
    heuristics: TimestampHeuristics | None = None,
) -> list[TimestampHint]:
    """Suggest moments in a video that are likely to mention ``keyword``.

    Clock-notation timestamps the creator wrote into the description are
    preferred: each one whose surrounding text mentions the keyword becomes a
    hint, shifted back by a short lead-in. Only when the description holds no
    timestamps at all do we fall back to synthetic offsets (the start of short
    videos, quartiles of longer ones). Every hint is flagged as estimated.
    """
    rules = heuristics or TimestampHeuristics()
    if not contains_keyword(description, keyword):
        return []

    hints: list[TimestampHint] = []
    found_explicit = False
    for matched in CLOCK_TIMESTAMP_PATTERN.finditer(description):
        found_explicit = True
        parsed_seconds = _clock_match_seconds(matched)
        position = matched.start()
        window = description[
            max(0, position - rules.context_radius) : position + rules.context_radius
        ]
        if not contains_keyword(window, keyword):
            continue

        offset = max(0, parsed_seconds - rules.lead_in_seconds)
        hints.append(
            TimestampHint(
                offset_seconds=offset,
                formatted=format_duration(offset),
                context_snippet=window[: rules.context_radius] + "...",
                link_url=watch_url(video_id, offset),
            )
        )

    if not found_explicit and duration_seconds > 0:
        hints.extend(_synthetic_hints(duration_seconds, video_id, rules))

    return hints[: rules.max_hints]


def _clock_match_seconds(matched: re.Match[str]) -> int:
    first, second, third = matched.group(1), matched.group(2), matched.group(3)
    if third is None:
        return int(first) * 60 + int(second)
    return int(first) * 3_600 + int(second) * 60 + int(third)


def _synthetic_hints(
    duration_seconds: int,
    video_id: str,
    rules: TimestampHeuristics,
) -> list[TimestampHint]:
    if duration_seconds <= rules.short_video_seconds:
        return [
            TimestampHint(
                offset_seconds=0,
                formatted=format_duration(0),
                context_snippet=SHORT_VIDEO_CONTEXT,
                link_url=watch_url(video_id),
            )
        ]

    hints: list[TimestampHint] = []
    for fraction in rules.quartile_fractions:
        offset = int(duration_seconds * fraction)
        label = QUARTILE_LABELS.get(fraction, f"{round(fraction * 100)}%")
        hints.append(
            TimestampHint(
                offset_seconds=offset,
                formatted=format_duration(offset),
                context_snippet=f"Check around {label} through video",
                link_url=watch_url(video_id, offset),
            )
        )
    return hints
