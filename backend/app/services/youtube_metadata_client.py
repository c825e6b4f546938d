from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, cast

import httpx

from backend.app.services.duration_codec import parse_duration
from backend.app.services.errors import ChannelNotFoundError, UpstreamError

LOGGER = logging.getLogger("keyword_monitor.youtube")

DEFAULT_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
VIDEO_DETAILS_BATCH_SIZE = 50
USER_AGENT = "keyword-monitor/0.1"


@dataclass(frozen=True)
class ChannelSearchHit:
    channel_id: str
    channel_title: str


@dataclass(frozen=True)
class YouTubeChannel:
    channel_id: str
    title: str
    description: str = ""
    raw_snippet: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VideoSummary:
    video_id: str
    title: str
    description: str
    published_at: str


@dataclass(frozen=True)
class VideoDetail:
    duration_seconds: int = 0
    tags: tuple[str, ...] = ()
    full_description: str = ""


class YouTubeMetadataClient:
    """Async accessor for the handful of YouTube Data API v3 calls we need.

    The API key is passed in explicitly. Pass ``http_client`` to share or fake
    the connection pool, or ``transport`` to route the owned client elsewhere.
    An owned ``httpx.AsyncClient`` must be closed (``async with`` does that).
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=timeout_seconds,
            transport=transport,
            headers={"accept": "application/json", "user-agent": USER_AGENT},
        )

    async def __aenter__(self) -> YouTubeMetadataClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def search_channels(self, query: str, *, max_results: int = 5) -> list[ChannelSearchHit]:
        payload = await self._get_json(
            "search",
            {
                "part": "snippet",
                "q": query,
                "type": "channel",
                "maxResults": str(max_results),
            },
        )
        hits: list[ChannelSearchHit] = []
        for item in _as_list(payload.get("items")):
            snippet = _as_dict(_as_dict(item).get("snippet"))
            channel_id = _coerce_nonempty_string(snippet.get("channelId"))
            if channel_id is None:
                continue
            hits.append(
                ChannelSearchHit(
                    channel_id=channel_id,
                    channel_title=_coerce_string(snippet.get("channelTitle")),
                )
            )
        return hits

    async def get_channel(self, channel_id: str) -> YouTubeChannel:
        payload = await self._get_json("channels", {"part": "snippet", "id": channel_id})
        items = _as_list(payload.get("items"))
        if not items:
            raise ChannelNotFoundError()

        snippet = _as_dict(_as_dict(items[0]).get("snippet"))
        return YouTubeChannel(
            channel_id=channel_id,
            title=_coerce_string(snippet.get("title")) or channel_id,
            description=_coerce_string(snippet.get("description")),
            raw_snippet=snippet,
        )

    async def list_recent_videos(self, channel_id: str, *, max_results: int) -> list[VideoSummary]:
        payload = await self._get_json(
            "search",
            {
                "part": "snippet",
                "channelId": channel_id,
                "type": "video",
                "order": "date",
                "maxResults": str(max_results),
            },
        )
        videos: list[VideoSummary] = []
        for item in _as_list(payload.get("items")):
            item_dict = _as_dict(item)
            video_id = _coerce_nonempty_string(_as_dict(item_dict.get("id")).get("videoId"))
            if video_id is None:
                continue
            snippet = _as_dict(item_dict.get("snippet"))
            videos.append(
                VideoSummary(
                    video_id=video_id,
                    title=_coerce_string(snippet.get("title")),
                    description=_coerce_string(snippet.get("description")),
                    published_at=_coerce_string(snippet.get("publishedAt")),
                )
            )
        return videos

    async def get_video_details(self, video_ids: Iterable[str]) -> dict[str, VideoDetail]:
        unique_ids = list(dict.fromkeys(video_id for video_id in video_ids if video_id))
        details: dict[str, VideoDetail] = {}

        for index in range(0, len(unique_ids), VIDEO_DETAILS_BATCH_SIZE):
            chunk = unique_ids[index : index + VIDEO_DETAILS_BATCH_SIZE]
            payload = await self._get_json(
                "videos",
                {"part": "contentDetails,snippet", "id": ",".join(chunk)},
            )
            for item in _as_list(payload.get("items")):
                item_dict = _as_dict(item)
                video_id = _coerce_nonempty_string(item_dict.get("id"))
                if video_id is None:
                    continue
                snippet = _as_dict(item_dict.get("snippet"))
                content_details = _as_dict(item_dict.get("contentDetails"))
                details[video_id] = VideoDetail(
                    duration_seconds=parse_duration(content_details.get("duration")),
                    tags=_extract_string_list(snippet.get("tags")),
                    full_description=_coerce_string(snippet.get("description")),
                )
        return details

    async def _get_json(self, resource: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self._base_url}/{resource}"
        request_params = {**params, "key": self._api_key}
        try:
            response = await self._http_client.get(url, params=request_params)
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"YouTube API request timed out: {resource}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"YouTube API request failed: {exc}") from exc

        try:
            parsed = response.json()
        except ValueError:
            parsed = None
        payload = _as_dict(parsed)

        upstream_message = _extract_error_message(payload)
        if response.is_error:
            LOGGER.warning(
                "youtube api error resource=%s status=%s message=%s",
                resource,
                response.status_code,
                upstream_message,
            )
            raise UpstreamError(
                upstream_message or f"YouTube API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if upstream_message is not None:
            raise UpstreamError(upstream_message, status_code=response.status_code)
        if not isinstance(parsed, dict):
            raise UpstreamError(f"YouTube API returned a malformed response for {resource}")

        LOGGER.debug(
            "youtube api call resource=%s items=%s",
            resource,
            len(_as_list(payload.get("items"))),
        )
        return payload


def _extract_error_message(payload: dict[str, Any]) -> str | None:
    raw_error = payload.get("error")
    if isinstance(raw_error, str):
        return _coerce_nonempty_string(raw_error)
    error = _as_dict(raw_error)
    if not error:
        return None
    return _coerce_nonempty_string(error.get("message")) or "YouTube API returned an error"


def _extract_string_list(raw_value: object) -> tuple[str, ...]:
    if not isinstance(raw_value, list):
        return ()
    values: list[str] = []
    for raw_item in cast(list[Any], raw_value):
        if isinstance(raw_item, str) and raw_item.strip():
            values.append(raw_item)
    return tuple(values)


def _coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    return None


def _coerce_string(raw_value: object) -> str:
    if isinstance(raw_value, str):
        return raw_value
    return ""


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []
