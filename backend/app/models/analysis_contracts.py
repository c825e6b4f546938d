from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.app.repositories.channel_repository import StoredChannel
from backend.app.services.channel_analyzer import (
    ChannelAnalysisResult,
    SingleChannelResult,
    VideoMatch,
)
from backend.app.services.keyword_monitor_service import AggregateResult
from backend.app.services.keyword_scoring import MentionCount
from backend.app.services.timestamp_estimator import TimestampHint


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AnalyzeMultiRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    channel_references: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "channelReferences",
            "channelUrls",
            "channel_references",
        ),
    )
    keyword: str | None = None


class AnalyzeChannelRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    channel_reference: str | None = Field(
        default=None,
        validation_alias=AliasChoices("channelUrl", "channelReference", "channel_reference"),
    )
    keyword: str | None = None


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    details: Any = None


class MentionCountResponse(_CamelModel):
    title: int
    description: int
    tags: int
    total: int
    estimated: bool
    transcript: int | None = None

    @classmethod
    def from_mentions(cls, mentions: MentionCount) -> MentionCountResponse:
        return cls(
            title=mentions.title,
            description=mentions.description,
            tags=mentions.tags,
            total=mentions.total,
            estimated=mentions.estimated,
            transcript=mentions.transcript,
        )


class LegacyMentionCountResponse(_CamelModel):
    title: int
    description: int
    total: int


class TimestampHintResponse(_CamelModel):
    offset_seconds: int
    formatted: str
    context_snippet: str
    link_url: str
    estimated: bool

    @classmethod
    def from_hint(cls, hint: TimestampHint) -> TimestampHintResponse:
        return cls(
            offset_seconds=hint.offset_seconds,
            formatted=hint.formatted,
            context_snippet=hint.context_snippet,
            link_url=hint.link_url,
            estimated=hint.estimated,
        )


class VideoMatchResponse(_CamelModel):
    video_id: str
    title: str
    description: str
    published_at: str
    mentions: MentionCountResponse
    url: str
    timestamps: list[TimestampHintResponse]
    duration: str
    duration_seconds: int

    @classmethod
    def from_match(cls, match: VideoMatch) -> VideoMatchResponse:
        return cls(
            video_id=match.video_id,
            title=match.title,
            description=match.description,
            published_at=match.published_at,
            mentions=MentionCountResponse.from_mentions(match.mentions),
            url=match.url,
            timestamps=[TimestampHintResponse.from_hint(hint) for hint in match.timestamps],
            duration=match.duration,
            duration_seconds=match.duration_seconds,
        )


class ChannelAnalysisResponse(_CamelModel):
    channel_reference: str
    channel_id: str | None = None
    channel_name: str
    videos_analyzed: int
    matched_videos: list[VideoMatchResponse]
    error: str | None = None

    @classmethod
    def from_result(cls, result: ChannelAnalysisResult) -> ChannelAnalysisResponse:
        return cls(
            channel_reference=result.channel_reference,
            channel_id=result.channel_id,
            channel_name=result.channel_name,
            videos_analyzed=result.videos_analyzed,
            matched_videos=[VideoMatchResponse.from_match(match) for match in result.matched_videos],
            error=result.error,
        )


class AggregateResponse(_CamelModel):
    keyword: str
    channels_analyzed: int
    total_videos_found: int
    channels: list[ChannelAnalysisResponse]

    @classmethod
    def from_result(cls, result: AggregateResult) -> AggregateResponse:
        return cls(
            keyword=result.keyword,
            channels_analyzed=result.channels_analyzed,
            total_videos_found=result.total_videos_found,
            channels=[ChannelAnalysisResponse.from_result(channel) for channel in result.channels],
        )


class LegacyVideoMatchResponse(_CamelModel):
    video_id: str
    title: str
    description: str
    published_at: str
    mentions: LegacyMentionCountResponse
    url: str


class SingleChannelResponse(_CamelModel):
    channel: str
    videos_analyzed: int
    keyword_found: int
    results: list[LegacyVideoMatchResponse]

    @classmethod
    def from_result(cls, result: SingleChannelResult) -> SingleChannelResponse:
        return cls(
            channel=result.channel_name,
            videos_analyzed=result.videos_analyzed,
            keyword_found=result.keyword_found,
            results=[
                LegacyVideoMatchResponse(
                    video_id=match.video_id,
                    title=match.title,
                    description=match.description,
                    published_at=match.published_at,
                    mentions=LegacyMentionCountResponse(
                        title=match.mentions.title,
                        description=match.mentions.description,
                        total=match.mentions.total,
                    ),
                    url=match.url,
                )
                for match in result.results
            ],
        )


class StoredChannelResponse(_CamelModel):
    channel_id: str
    name: str
    description: str
    updated_at: str
    video_count: int

    @classmethod
    def from_stored(cls, channel: StoredChannel) -> StoredChannelResponse:
        return cls(
            channel_id=channel.channel_id,
            name=channel.name,
            description=channel.description,
            updated_at=channel.updated_at,
            video_count=channel.video_count,
        )
