from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.dependencies import (
    build_keyword_monitor_service,
    get_channel_repository,
    get_keyword_monitor_service,
    get_settings,
    reset_cached_dependencies,
)
from backend.app.main import create_app
from backend.app.services.channel_analyzer import AnalysisOptions
from backend.app.services.keyword_monitor_service import KeywordMonitorService
from backend.app.services.youtube_metadata_client import YouTubeMetadataClient

TEST_API_KEY = "test-youtube-key"


@dataclass
class _FakeVideo:
    video_id: str
    title: str
    description: str
    published_at: str
    duration: str | None
    tags: tuple[str, ...]
    full_description: str | None


@dataclass
class FakeYouTubeApi:
    """In-memory stand-in for the YouTube Data API v3 endpoints we call."""

    channels: dict[str, dict[str, str]] = field(default_factory=dict)
    search_hits: dict[str, list[str]] = field(default_factory=dict)
    uploads: dict[str, list[_FakeVideo]] = field(default_factory=dict)
    failures: dict[str, tuple[int, dict[str, Any]]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add_channel(
        self,
        channel_id: str,
        title: str,
        *,
        description: str = "",
        search_terms: tuple[str, ...] = (),
    ) -> None:
        self.channels[channel_id] = {"title": title, "description": description}
        self.uploads.setdefault(channel_id, [])
        for term in search_terms:
            self.search_hits.setdefault(term, []).append(channel_id)

    def add_video(
        self,
        channel_id: str,
        video_id: str,
        *,
        title: str,
        description: str = "",
        published_at: str = "2024-05-01T12:00:00Z",
        duration: str | None = "PT10M",
        tags: tuple[str, ...] = (),
        full_description: str | None = None,
    ) -> None:
        self.uploads.setdefault(channel_id, []).append(
            _FakeVideo(
                video_id=video_id,
                title=title,
                description=description,
                published_at=published_at,
                duration=duration,
                tags=tags,
                full_description=full_description,
            )
        )

    def fail(self, resource: str, status_code: int, message: str) -> None:
        self.failures[resource] = (
            status_code,
            {"error": {"code": status_code, "message": message}},
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, resource: str) -> list[httpx.Request]:
        return [request for request in self.requests if _resource(request) == resource]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resource = _resource(request)
        params = request.url.params
        if resource in self.failures:
            status_code, body = self.failures[resource]
            return httpx.Response(status_code, json=body)

        if resource == "search" and params.get("type") == "channel":
            items = [
                {
                    "snippet": {
                        "channelId": channel_id,
                        "channelTitle": self.channels.get(channel_id, {}).get("title", ""),
                    }
                }
                for channel_id in self.search_hits.get(params.get("q", ""), [])
            ]
            return httpx.Response(200, json={"items": items})

        if resource == "search" and params.get("type") == "video":
            max_results = int(params.get("maxResults", "5"))
            videos = self.uploads.get(params.get("channelId", ""), [])[:max_results]
            items = [
                {
                    "id": {"kind": "youtube#video", "videoId": video.video_id},
                    "snippet": {
                        "title": video.title,
                        "description": video.description,
                        "publishedAt": video.published_at,
                    },
                }
                for video in videos
            ]
            return httpx.Response(200, json={"items": items})

        if resource == "channels":
            channel = self.channels.get(params.get("id", ""))
            items = [] if channel is None else [{"id": params.get("id"), "snippet": channel}]
            return httpx.Response(200, json={"items": items})

        if resource == "videos":
            requested = set(params.get("id", "").split(","))
            items = []
            for videos in self.uploads.values():
                for video in videos:
                    if video.video_id not in requested or video.duration is None:
                        continue
                    items.append(
                        {
                            "id": video.video_id,
                            "contentDetails": {"duration": video.duration},
                            "snippet": {
                                "tags": list(video.tags),
                                "description": (
                                    video.full_description
                                    if video.full_description is not None
                                    else video.description
                                ),
                            },
                        }
                    )
            return httpx.Response(200, json={"items": items})

        return httpx.Response(404, json={"error": {"message": f"unknown resource {resource}"}})


def _resource(request: httpx.Request) -> str:
    return request.url.path.rstrip("/").rsplit("/", 1)[-1]


@pytest.fixture
def fake_youtube() -> FakeYouTubeApi:
    return FakeYouTubeApi()


@pytest.fixture
def make_service(fake_youtube: FakeYouTubeApi) -> Callable[..., KeywordMonitorService]:
    def _make(
        *,
        api_key: str | None = TEST_API_KEY,
        options: AnalysisOptions | None = None,
        **kwargs: Any,
    ) -> KeywordMonitorService:
        def _client_factory(key: str) -> YouTubeMetadataClient:
            return YouTubeMetadataClient(api_key=key, transport=fake_youtube.transport)

        return KeywordMonitorService(
            api_key=api_key,
            client_factory=_client_factory,
            options=options,
            **kwargs,
        )

    return _make


@pytest.fixture(autouse=True)
def _isolated_environment(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("YOUTUBE_API_KEY", raising=False)
    monkeypatch.delenv("KEYWORD_MONITOR_YOUTUBE_API_KEY", raising=False)
    monkeypatch.setenv("KEYWORD_MONITOR_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("KEYWORD_MONITOR_TELEMETRY_SINK", "none")


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, fake_youtube: FakeYouTubeApi) -> Iterator[TestClient]:
    monkeypatch.setenv("KEYWORD_MONITOR_YOUTUBE_API_KEY", TEST_API_KEY)
    reset_cached_dependencies()

    def _service_override() -> KeywordMonitorService:
        return build_keyword_monitor_service(
            get_settings(),
            channel_repository=get_channel_repository(),
            transport=fake_youtube.transport,
        )

    app = create_app()
    app.dependency_overrides[get_keyword_monitor_service] = _service_override
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
