from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from backend.app.services.errors import InvalidKeywordError


@dataclass(frozen=True)
class MentionCount:
    title: int
    description: int
    tags: int
    total: int
    estimated: bool = True
    # Reserved for a transcript-backed scorer; heuristic counts leave it unset.
    transcript: int | None = None

    @property
    def matched(self) -> bool:
        return self.total > 0


def ensure_keyword(keyword: str) -> str:
    if not keyword:
        raise InvalidKeywordError("Keyword must not be empty.")
    return keyword


def keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(re.escape(ensure_keyword(keyword)), re.IGNORECASE)


def count_occurrences(haystack: str, needle: str) -> int:
    """Count case-insensitive, non-overlapping literal occurrences of ``needle``.

    The needle is caller-supplied text and is escaped, so characters such as
    ``.`` or ``(`` only ever match themselves.
    """
    pattern = keyword_pattern(needle)
    if not haystack:
        return 0
    return sum(1 for _ in pattern.finditer(haystack))


def contains_keyword(text: str, keyword: str) -> bool:
    if not text:
        return False
    return keyword_pattern(keyword).search(text) is not None


def score_video(
    *,
    title: str,
    description: str,
    tags: Sequence[str],
    keyword: str,
) -> MentionCount:
    title_count = count_occurrences(title, keyword)
    description_count = count_occurrences(description, keyword)
    tags_count = count_occurrences(" ".join(tags), keyword)
    return MentionCount(
        title=title_count,
        description=description_count,
        tags=tags_count,
        total=title_count + description_count + tags_count,
    )


def score_title_and_description(*, title: str, description: str, keyword: str) -> MentionCount:
    title_count = count_occurrences(title, keyword)
    description_count = count_occurrences(description, keyword)
    return MentionCount(
        title=title_count,
        description=description_count,
        tags=0,
        total=title_count + description_count,
    )
