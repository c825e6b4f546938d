from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from backend.app.repositories.common import as_text_or_none, utc_now_iso
from backend.app.repositories.database import Database


@dataclass(frozen=True)
class StoredVideo:
    video_id: str
    title: str
    description: str
    published_at: str | None


@dataclass(frozen=True)
class StoredChannel:
    channel_id: str
    name: str
    description: str
    updated_at: str
    video_count: int


class ChannelRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def upsert_channel(self, *, channel_id: str, name: str, description: str) -> None:
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO channels (channel_id, name, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(channel_id) DO UPDATE SET
                    name = excluded.name,
                    updated_at = excluded.updated_at
                """,
                (channel_id, name, description, now_iso, now_iso),
            )

    def upsert_videos(self, *, channel_id: str, videos: Sequence[StoredVideo]) -> int:
        if not videos:
            return 0
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            # Existing rows are kept as first seen.
            conn.executemany(
                """
                INSERT INTO videos
                (video_id, channel_id, title, description, published_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(video_id) DO NOTHING
                """,
                [
                    (
                        video.video_id,
                        channel_id,
                        video.title,
                        video.description,
                        as_text_or_none(video.published_at),
                        now_iso,
                    )
                    for video in videos
                ],
            )
        return len(videos)

    def list_channels(self) -> list[StoredChannel]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT c.channel_id, c.name, c.description, c.updated_at,
                       COUNT(v.video_id) AS video_count
                FROM channels c
                LEFT JOIN videos v ON v.channel_id = c.channel_id
                GROUP BY c.channel_id
                ORDER BY c.updated_at DESC, c.channel_id ASC
                """
            ).fetchall()
        return [
            StoredChannel(
                channel_id=str(row["channel_id"]),
                name=str(row["name"]),
                description=str(row["description"]),
                updated_at=str(row["updated_at"]),
                video_count=int(row["video_count"]),
            )
            for row in rows
        ]

    def list_videos(self, channel_id: str) -> list[StoredVideo]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT video_id, title, description, published_at
                FROM videos
                WHERE channel_id = ?
                ORDER BY published_at DESC, video_id ASC
                """,
                (channel_id,),
            ).fetchall()
        return [
            StoredVideo(
                video_id=str(row["video_id"]),
                title=str(row["title"]),
                description=str(row["description"]),
                published_at=as_text_or_none(row["published_at"]),
            )
            for row in rows
        ]
