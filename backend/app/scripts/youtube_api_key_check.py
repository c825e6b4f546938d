from __future__ import annotations

import argparse
import asyncio
import sys

from backend.app.config import load_settings
from backend.app.services.errors import UpstreamError
from backend.app.services.youtube_metadata_client import (
    ChannelSearchHit,
    VideoSummary,
    YouTubeMetadataClient,
)

DEFAULT_QUERY = "MrBeast"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Verify the configured YouTube Data API key by running a small channel search."
        ),
    )
    parser.add_argument(
        "--query",
        default=DEFAULT_QUERY,
        help=f"Channel search query (default: {DEFAULT_QUERY}).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=3,
        help="Maximum channels and recent videos to print.",
    )
    return parser.parse_args(argv)


async def _probe(
    *,
    api_key: str,
    base_url: str,
    timeout_seconds: float,
    query: str,
    limit: int,
) -> tuple[list[ChannelSearchHit], list[VideoSummary]]:
    async with YouTubeMetadataClient(
        api_key=api_key,
        base_url=base_url,
        timeout_seconds=timeout_seconds,
    ) as client:
        hits = await client.search_channels(query, max_results=max(1, limit))
        if not hits:
            return hits, []
        videos = await client.list_recent_videos(hits[0].channel_id, max_results=max(1, limit))
        return hits, videos


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    if settings.youtube_api_key is None:
        print(
            "No YouTube API key configured. Set KEYWORD_MONITOR_YOUTUBE_API_KEY "
            "(or YOUTUBE_API_KEY).",
            file=sys.stderr,
        )
        return 2

    try:
        hits, videos = asyncio.run(
            _probe(
                api_key=settings.youtube_api_key,
                base_url=settings.youtube_api_base_url,
                timeout_seconds=settings.youtube_http_timeout_seconds,
                query=args.query,
                limit=args.limit,
            )
        )
    except UpstreamError as exc:
        print(f"YouTube API request failed: {exc}", file=sys.stderr)
        return 1

    print(f"API key works. Found {len(hits)} channel(s) for {args.query!r}.")
    for hit in hits:
        print(f"{hit.channel_id}\t{hit.channel_title}")
    if hits:
        print(f"Recent videos for {hits[0].channel_title or hits[0].channel_id}:")
    for video in videos:
        print(f"{video.published_at}\t{video.video_id}\t{video.title}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
