from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from backend.app.repositories.channel_repository import ChannelRepository, StoredVideo
from backend.app.services.channel_analyzer import (
    AnalysisOptions,
    ChannelAnalysisResult,
    ChannelAnalyzer,
    SingleChannelResult,
    VideoMatch,
)
from backend.app.services.errors import InvalidRequestError, MissingCredentialError
from backend.app.services.youtube_metadata_client import YouTubeMetadataClient
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("keyword_monitor.analysis")

DEFAULT_MAX_CHANNELS_PER_REQUEST = 10

MetadataClientFactory = Callable[[str], YouTubeMetadataClient]


@dataclass(frozen=True)
class AggregateResult:
    keyword: str
    channels_analyzed: int
    total_videos_found: int
    channels: tuple[ChannelAnalysisResult, ...]


class KeywordMonitorService:
    """Entry point for keyword analysis requests.

    One metadata client is opened per request and every channel reference is
    analyzed in input order. Per-channel failures are folded into the
    aggregate; only invalid input or a missing API key fail the request.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        client_factory: MetadataClientFactory,
        options: AnalysisOptions | None = None,
        max_channels_per_request: int = DEFAULT_MAX_CHANNELS_PER_REQUEST,
        channel_repository: ChannelRepository | None = None,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._client_factory = client_factory
        self._options = options or AnalysisOptions()
        self._max_channels_per_request = max(1, max_channels_per_request)
        self._channel_repository = channel_repository
        self._telemetry = telemetry or TelemetryClient.disabled()

    @property
    def credential_configured(self) -> bool:
        return bool(self._api_key)

    async def analyze_channels(
        self,
        references: Sequence[str],
        keyword: str,
    ) -> AggregateResult:
        api_key = self._require_api_key()
        normalized_keyword = keyword.strip() if isinstance(keyword, str) else ""
        if not references or not normalized_keyword:
            raise InvalidRequestError("Channel URLs array and keyword are required")

        selected = list(references)[: self._max_channels_per_request]
        if len(references) > len(selected):
            LOGGER.info(
                "truncating channel references requested=%s processed=%s",
                len(references),
                len(selected),
            )
        LOGGER.info(
            "starting keyword analysis keyword=%s channels=%s",
            normalized_keyword,
            len(selected),
        )

        channels: list[ChannelAnalysisResult] = []
        channels_analyzed = 0
        total_videos_found = 0
        with self._telemetry.span(
            "analysis.request",
            keyword=normalized_keyword,
            channel_count=len(selected),
        ) as span:
            async with self._client_factory(api_key) as client:
                analyzer = ChannelAnalyzer(client, options=self._options)
                for reference in selected:
                    result = await analyzer.analyze(reference, normalized_keyword)
                    channels.append(result)
                    if not result.ok:
                        self._telemetry.emit(
                            "analysis.channel.error",
                            channel_reference=reference,
                            error=result.error,
                        )
                        continue

                    channels_analyzed += 1
                    total_videos_found += len(result.matched_videos)
                    self._telemetry.emit(
                        "analysis.channel.finish",
                        channel_id=result.channel_id,
                        videos_analyzed=result.videos_analyzed,
                        matched_videos=len(result.matched_videos),
                    )
                    await self._store_channel(result)

            span.annotate(
                channels_analyzed=channels_analyzed,
                channels_failed=len(channels) - channels_analyzed,
                total_videos_found=total_videos_found,
            )
        return AggregateResult(
            keyword=normalized_keyword,
            channels_analyzed=channels_analyzed,
            total_videos_found=total_videos_found,
            channels=tuple(channels),
        )

    async def analyze_single_channel(self, reference: str, keyword: str) -> SingleChannelResult:
        api_key = self._require_api_key()
        normalized_reference = reference.strip() if isinstance(reference, str) else ""
        normalized_keyword = keyword.strip() if isinstance(keyword, str) else ""
        if not normalized_reference or not normalized_keyword:
            raise InvalidRequestError("Channel URL and keyword are required")

        async with self._client_factory(api_key) as client:
            analyzer = ChannelAnalyzer(client, options=self._options)
            result = await analyzer.analyze_single(normalized_reference, normalized_keyword)

        await self._store_videos(
            channel_id=result.channel_id,
            channel_name=result.channel_name,
            channel_description=result.channel_description,
            matches=result.results,
        )
        return result

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise MissingCredentialError("No YouTube API key configured")
        return self._api_key

    async def _store_channel(self, result: ChannelAnalysisResult) -> None:
        if result.channel_id is None:
            return
        await self._store_videos(
            channel_id=result.channel_id,
            channel_name=result.channel_name,
            channel_description=result.channel_description,
            matches=result.matched_videos,
        )

    async def _store_videos(
        self,
        *,
        channel_id: str,
        channel_name: str,
        channel_description: str,
        matches: Sequence[VideoMatch],
    ) -> None:
        if self._channel_repository is None:
            return
        # sqlite commits block; keep them off the event loop.
        try:
            await asyncio.to_thread(
                self._write_videos,
                self._channel_repository,
                channel_id,
                channel_name,
                channel_description,
                matches,
            )
        except sqlite3.Error as exc:
            LOGGER.warning(
                "failed to store analysis results channel_id=%s error=%s",
                channel_id,
                exc,
            )

    @staticmethod
    def _write_videos(
        repository: ChannelRepository,
        channel_id: str,
        channel_name: str,
        channel_description: str,
        matches: Sequence[VideoMatch],
    ) -> None:
        repository.upsert_channel(
            channel_id=channel_id,
            name=channel_name,
            description=channel_description,
        )
        repository.upsert_videos(
            channel_id=channel_id,
            videos=[
                StoredVideo(
                    video_id=match.video_id,
                    title=match.title,
                    description=match.description,
                    published_at=match.published_at,
                )
                for match in matches
            ],
        )
