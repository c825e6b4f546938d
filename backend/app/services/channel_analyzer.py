from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from backend.app.services.channel_resolver import ChannelResolver, ChannelSearcher
from backend.app.services.duration_codec import format_duration
from backend.app.services.errors import (
    ChannelNotFoundError,
    InvalidKeywordError,
    UpstreamError,
)
from backend.app.services.keyword_scoring import (
    MentionCount,
    score_title_and_description,
    score_video,
)
from backend.app.services.timestamp_estimator import (
    TimestampHeuristics,
    TimestampHint,
    estimate_timestamps,
    watch_url,
)
from backend.app.services.youtube_metadata_client import (
    VideoDetail,
    VideoSummary,
    YouTubeChannel,
)

LOGGER = logging.getLogger("keyword_monitor.analysis")

UNKNOWN_CHANNEL_NAME = "Unknown"


class ChannelMetadataSource(ChannelSearcher, Protocol):
    async def get_channel(self, channel_id: str) -> YouTubeChannel: ...

    async def list_recent_videos(
        self, channel_id: str, *, max_results: int
    ) -> list[VideoSummary]: ...

    async def get_video_details(self, video_ids: Iterable[str]) -> dict[str, VideoDetail]: ...


@dataclass(frozen=True)
class AnalysisOptions:
    recent_videos_per_channel: int = 20
    max_matches_per_channel: int = 3
    legacy_recent_videos_per_channel: int = 10
    heuristics: TimestampHeuristics = field(default_factory=TimestampHeuristics)


@dataclass(frozen=True)
class VideoMatch:
    video_id: str
    title: str
    description: str
    published_at: str
    mentions: MentionCount
    url: str
    timestamps: tuple[TimestampHint, ...] = ()
    duration_seconds: int = 0

    @property
    def duration(self) -> str:
        return format_duration(self.duration_seconds)


@dataclass(frozen=True)
class ChannelAnalysisResult:
    channel_reference: str
    channel_id: str | None = None
    channel_name: str = UNKNOWN_CHANNEL_NAME
    channel_description: str = ""
    videos_analyzed: int = 0
    matched_videos: tuple[VideoMatch, ...] = ()
    error: str | None = None

    @classmethod
    def failed(cls, channel_reference: str, reason: str) -> ChannelAnalysisResult:
        return cls(channel_reference=channel_reference, error=reason)

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass(frozen=True)
class SingleChannelResult:
    channel_id: str
    channel_name: str
    channel_description: str
    videos_analyzed: int
    results: tuple[VideoMatch, ...]

    @property
    def keyword_found(self) -> int:
        return len(self.results)


class ChannelAnalyzer:
    def __init__(
        self,
        source: ChannelMetadataSource,
        *,
        options: AnalysisOptions | None = None,
        resolver: ChannelResolver | None = None,
    ) -> None:
        self._source = source
        self._options = options or AnalysisOptions()
        self._resolver = resolver or ChannelResolver(source)

    async def analyze(self, reference: str, keyword: str) -> ChannelAnalysisResult:
        """Analyze one channel; failures come back as an error-shaped result."""
        try:
            return await self._analyze(reference, keyword)
        except (ChannelNotFoundError, UpstreamError, InvalidKeywordError) as exc:
            LOGGER.info("channel analysis failed reference=%s error=%s", reference, exc)
            return ChannelAnalysisResult.failed(reference, _error_text(exc))
        except Exception as exc:
            LOGGER.warning(
                "unexpected channel analysis failure reference=%s",
                reference,
                exc_info=True,
            )
            return ChannelAnalysisResult.failed(reference, _error_text(exc))

    async def _analyze(self, reference: str, keyword: str) -> ChannelAnalysisResult:
        channel_id = await self._resolver.resolve(reference)
        channel = await self._source.get_channel(channel_id)
        LOGGER.info("analyzing channel channel_id=%s name=%s", channel_id, channel.title)

        videos = await self._source.list_recent_videos(
            channel_id,
            max_results=self._options.recent_videos_per_channel,
        )
        details = await self._source.get_video_details(video.video_id for video in videos)

        matches: list[VideoMatch] = []
        videos_analyzed = 0
        for video in videos:
            if len(matches) >= self._options.max_matches_per_channel:
                break
            videos_analyzed += 1
            match = self._match_video(video, details.get(video.video_id), keyword)
            if match is not None:
                matches.append(match)

        matches.sort(key=lambda item: item.mentions.total, reverse=True)
        return ChannelAnalysisResult(
            channel_reference=reference,
            channel_id=channel_id,
            channel_name=channel.title,
            channel_description=channel.description,
            videos_analyzed=videos_analyzed,
            matched_videos=tuple(matches),
        )

    def _match_video(
        self,
        video: VideoSummary,
        detail: VideoDetail | None,
        keyword: str,
    ) -> VideoMatch | None:
        resolved_detail = detail or VideoDetail()
        description = resolved_detail.full_description or video.description
        mentions = score_video(
            title=video.title,
            description=description,
            tags=resolved_detail.tags,
            keyword=keyword,
        )
        if not mentions.matched:
            return None

        timestamps = estimate_timestamps(
            description,
            keyword,
            resolved_detail.duration_seconds,
            video.video_id,
            self._options.heuristics,
        )
        return VideoMatch(
            video_id=video.video_id,
            title=video.title,
            description=video.description,
            published_at=video.published_at,
            mentions=mentions,
            url=watch_url(video.video_id),
            timestamps=tuple(timestamps),
            duration_seconds=resolved_detail.duration_seconds,
        )

    async def analyze_single(self, reference: str, keyword: str) -> SingleChannelResult:
        """Title and summary-description scan of one channel's latest uploads.

        Unlike :meth:`analyze` this raises on failure, skips the detail lookup,
        refuses free-text references and returns every match.
        """
        channel_id = await self._resolver.resolve(reference, allow_search=False)
        channel = await self._source.get_channel(channel_id)
        videos = await self._source.list_recent_videos(
            channel_id,
            max_results=self._options.legacy_recent_videos_per_channel,
        )

        matches: list[VideoMatch] = []
        for video in videos:
            mentions = score_title_and_description(
                title=video.title,
                description=video.description,
                keyword=keyword,
            )
            if not mentions.matched:
                continue
            matches.append(
                VideoMatch(
                    video_id=video.video_id,
                    title=video.title,
                    description=video.description,
                    published_at=video.published_at,
                    mentions=mentions,
                    url=watch_url(video.video_id),
                )
            )

        matches.sort(key=lambda item: item.mentions.total, reverse=True)
        return SingleChannelResult(
            channel_id=channel_id,
            channel_name=channel.title,
            channel_description=channel.description,
            videos_analyzed=len(videos),
            results=tuple(matches),
        )


def _error_text(exc: Exception) -> str:
    message = str(exc).strip()
    return message or type(exc).__name__
