"""Analysis commands for the keyword monitor CLI."""

import asyncio

import click
from rich.console import Console
from rich.table import Table

from backend.app.config import load_settings
from backend.app.dependencies import build_keyword_monitor_service
from backend.app.models.analysis_contracts import AggregateResponse
from backend.app.repositories.channel_repository import ChannelRepository
from backend.app.repositories.database import Database
from backend.app.services.errors import KeywordMonitorError

console = Console()


def _build_service():
    settings = load_settings()
    repository = None
    if settings.results_store_enabled:
        database = Database(settings.db_path)
        database.initialize()
        repository = ChannelRepository(database)
    return build_keyword_monitor_service(settings, channel_repository=repository)


def _build_repository():
    settings = load_settings()
    database = Database(settings.db_path)
    database.initialize()
    return ChannelRepository(database)


@click.command()
@click.argument("references", nargs=-1, required=True)
@click.option("--keyword", "-k", required=True, help="Keyword to look for (case-insensitive)")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON result")
def analyze(references: tuple[str, ...], keyword: str, as_json: bool):
    """Scan recent uploads of each channel for KEYWORD.

    REFERENCES can be channel URLs, @handles, channel IDs or free-text names.
    """
    service = _build_service()
    try:
        result = asyncio.run(service.analyze_channels(list(references), keyword))
    except KeywordMonitorError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    response = AggregateResponse.from_result(result)
    if as_json:
        click.echo(response.model_dump_json(by_alias=True, indent=2))
        return

    console.print(
        f"\n[bold]{response.keyword}[/bold]: {response.total_videos_found} matching video(s) "
        f"across {response.channels_analyzed} channel(s)\n"
    )
    for channel in response.channels:
        if channel.error:
            console.print(f"[red]{channel.channel_reference}: {channel.error}[/red]")
            continue

        if not channel.matched_videos:
            console.print(
                f"[yellow]{channel.channel_name}: no matches in "
                f"{channel.videos_analyzed} video(s)[/yellow]"
            )
            continue

        table = Table(title=f"{channel.channel_name} ({channel.videos_analyzed} scanned)")
        table.add_column("Video")
        table.add_column("Mentions", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Jump to")
        for video in channel.matched_videos:
            jump_links = "\n".join(
                f"{hint.formatted} {hint.link_url}" for hint in video.timestamps
            )
            table.add_row(
                f"{video.title}\n{video.url}",
                str(video.mentions.total),
                video.duration,
                jump_links or "-",
            )
        console.print(table)


@click.command()
def channels():
    """List channels stored by previous analyses."""
    repository = _build_repository()
    stored = repository.list_channels()
    if not stored:
        console.print("[yellow]No channels stored yet[/yellow]")
        return

    table = Table(title="Stored channels")
    table.add_column("Channel ID")
    table.add_column("Name")
    table.add_column("Videos", justify="right")
    table.add_column("Updated")
    for channel in stored:
        table.add_row(channel.channel_id, channel.name, str(channel.video_count), channel.updated_at)
    console.print(table)
