from __future__ import annotations

from functools import lru_cache

import httpx

from backend.app.config import AppSettings, load_settings
from backend.app.repositories.channel_repository import ChannelRepository
from backend.app.repositories.database import Database
from backend.app.services.channel_analyzer import AnalysisOptions
from backend.app.services.keyword_monitor_service import KeywordMonitorService
from backend.app.services.timestamp_estimator import TimestampHeuristics
from backend.app.services.youtube_metadata_client import YouTubeMetadataClient
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_channel_repository() -> ChannelRepository | None:
    settings = get_settings()
    if not settings.results_store_enabled:
        return None
    database = Database(settings.db_path)
    database.initialize()
    return ChannelRepository(database)


@lru_cache(maxsize=1)
def get_keyword_monitor_service() -> KeywordMonitorService:
    settings = get_settings()
    return build_keyword_monitor_service(
        settings,
        channel_repository=get_channel_repository(),
        telemetry=get_telemetry(),
    )


def build_analysis_options(settings: AppSettings) -> AnalysisOptions:
    return AnalysisOptions(
        recent_videos_per_channel=settings.recent_videos_per_channel,
        max_matches_per_channel=settings.max_matches_per_channel,
        legacy_recent_videos_per_channel=settings.legacy_recent_videos_per_channel,
        heuristics=TimestampHeuristics(
            lead_in_seconds=settings.timestamp_lead_in_seconds,
            short_video_seconds=settings.timestamp_short_video_seconds,
            context_radius=settings.timestamp_context_radius,
            max_hints=settings.timestamp_max_hints,
            quartile_fractions=settings.timestamp_quartile_fractions,
        ),
    )


def build_keyword_monitor_service(
    settings: AppSettings,
    *,
    channel_repository: ChannelRepository | None = None,
    telemetry: TelemetryClient | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> KeywordMonitorService:
    def _client_factory(api_key: str) -> YouTubeMetadataClient:
        return YouTubeMetadataClient(
            api_key=api_key,
            base_url=settings.youtube_api_base_url,
            timeout_seconds=settings.youtube_http_timeout_seconds,
            transport=transport,
        )

    return KeywordMonitorService(
        api_key=settings.youtube_api_key,
        client_factory=_client_factory,
        options=build_analysis_options(settings),
        max_channels_per_request=settings.max_channels_per_request,
        channel_repository=channel_repository,
        telemetry=telemetry,
    )


def reset_cached_dependencies() -> None:
    get_keyword_monitor_service.cache_clear()
    get_channel_repository.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
