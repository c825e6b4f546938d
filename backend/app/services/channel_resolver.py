from __future__ import annotations

import logging
import re
from typing import Protocol

from backend.app.services.errors import ChannelNotFoundError, InvalidRequestError
from backend.app.services.youtube_metadata_client import ChannelSearchHit

LOGGER = logging.getLogger("keyword_monitor.resolver")

CHANNEL_ID_PREFIX = "UC"
CHANNEL_PATH_MARKER = "channel/"
_SEGMENT_END_PATTERN = re.compile(r"[/?]")


class ChannelSearcher(Protocol):
    async def search_channels(
        self, query: str, *, max_results: int = 5
    ) -> list[ChannelSearchHit]: ...


class ChannelResolver:
    """Turn a free-form channel reference into a canonical channel id.

    Rules, first match wins: ``@handle`` references are looked up through a
    channel search, ``.../channel/<id>`` URLs are sliced, bare ``UC...`` ids are
    used verbatim, and anything else is treated as search text. With
    ``allow_search=False`` the last rule is rejected instead.
    """

    def __init__(self, searcher: ChannelSearcher) -> None:
        self._searcher = searcher

    async def resolve(self, reference: str, *, allow_search: bool = True) -> str:
        normalized = reference.strip()

        if "@" in normalized:
            handle = _leading_segment(normalized.split("@", 1)[1])
            return await self._search_first_channel(handle)

        if CHANNEL_PATH_MARKER in normalized:
            channel_id = _leading_segment(normalized.split(CHANNEL_PATH_MARKER, 1)[1])
            if not channel_id:
                raise ChannelNotFoundError()
            return channel_id

        if normalized.startswith(CHANNEL_ID_PREFIX):
            return normalized

        if not allow_search:
            raise InvalidRequestError("Please use a channel URL or channel ID")
        return await self._search_first_channel(normalized)

    async def _search_first_channel(self, query: str) -> str:
        if not query:
            raise ChannelNotFoundError()
        hits = await self._searcher.search_channels(query)
        if not hits:
            LOGGER.info("channel search returned no results query=%s", query)
            raise ChannelNotFoundError()
        LOGGER.debug("channel search resolved query=%s channel_id=%s", query, hits[0].channel_id)
        return hits[0].channel_id


def _leading_segment(value: str) -> str:
    return _SEGMENT_END_PATTERN.split(value, maxsplit=1)[0]
