"""CLI for the YouTube sync engine.

The external scheduler invokes these commands; each one runs a single
operation and exits.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ytsync.channel.frequency import classify as classify_statistics
from ytsync.channel.schemas import (
    ChannelStatistics,
    CycleReport,
    FrequencyBucket,
    PublishOutcome,
    PublishResult,
    SignedCommand,
)
from ytsync.channel.youtube_client import YouTubeClient
from ytsync.core.config import Settings, get_settings_with_yaml
from ytsync.core.constants import APP_NAME, APP_VERSION
from ytsync.core.exceptions import SyncError
from ytsync.core.logging_config import setup_logging
from ytsync.database import MongoDBManager, RedisManager
from ytsync.sync.orchestrator import SyncOrchestrator
from ytsync.sync.publisher_client import HttpPublisherClient

app = typer.Typer(help="YouTube Sync - mirror channels and publish their videos")
channel_app = typer.Typer(help="Channel administration commands")
app.add_typer(channel_app, name="channel")
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    log_level: str | None = typer.Option(None, help="Override the configured log level"),
):
    """Load settings and configure logging."""
    settings = get_settings_with_yaml(config)
    setup_logging(log_level or settings.log_level, settings.log_file)
    ctx.obj = settings


@asynccontextmanager
async def _orchestrator(settings: Settings) -> AsyncIterator[SyncOrchestrator]:
    """Wire the production adapters into an orchestrator."""
    source = YouTubeClient.from_settings(settings)
    publisher = HttpPublisherClient.from_settings(settings)
    try:
        async with MongoDBManager(settings) as db, RedisManager.from_settings(settings) as bus:
            yield SyncOrchestrator(settings, db, source, publisher, bus)
    finally:
        source.close()
        publisher.close()


def _display_report(report: CycleReport):
    """Display ingestion cycle summary."""
    rprint("\n[bold blue]🔄 Ingestion Cycle[/bold blue]\n")

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan", width=20)
    table.add_column("Value", style="white")

    table.add_row("Buckets", ", ".join(b.value for b in report.active_buckets))
    table.add_row("Eligible", str(report.channels_eligible))
    table.add_row("Processed", str(report.channels_processed))
    table.add_row("Revoked", str(report.channels_revoked))
    table.add_row("Errors", str(report.errors))
    table.add_row("Videos observed", str(report.videos_observed))
    table.add_row("Videos pending", str(report.videos_pending))
    table.add_row("Status", report.status)

    console.print(table)


def _display_result(result: PublishResult):
    color = {
        PublishOutcome.SUCCEEDED: "green",
        PublishOutcome.SKIPPED: "yellow",
        PublishOutcome.FAILED: "red",
    }[result.outcome]
    line = f"[{color}]{result.outcome.value}[/{color}] {result.video_id} -> {result.state.value}"
    if result.publish_handle:
        line += f" (handle {result.publish_handle})"
    if result.reason:
        line += f" [dim]{escape(result.reason)}[/dim]"
    rprint(line)


@app.command()
def ingest(
    ctx: typer.Context,
    bucket: list[FrequencyBucket] = typer.Option(
        ..., "--bucket", "-b", help="Frequency bucket due this cycle (repeatable)"
    ),
):
    """Run one ingestion cycle for the given frequency buckets."""

    async def _run() -> CycleReport:
        async with _orchestrator(ctx.obj) as orchestrator:
            return await orchestrator.run_ingestion_cycle(bucket)

    try:
        report = asyncio.run(_run())
    except Exception as e:
        rprint(f"[red]✗ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    _display_report(report)
    if report.errors:
        raise typer.Exit(2)


@app.command()
def publish(
    ctx: typer.Context,
    channel_id: str = typer.Argument(..., help="YouTube channel ID"),
    video_id: str = typer.Argument(..., help="YouTube video ID"),
):
    """Create the publishing backend record for one video."""

    async def _run() -> PublishResult:
        async with _orchestrator(ctx.obj) as orchestrator:
            return await orchestrator.publish_video(channel_id, video_id)

    try:
        result = asyncio.run(_run())
    except SyncError as e:
        rprint(f"[red]✗ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    _display_result(result)
    if result.outcome is PublishOutcome.FAILED:
        raise typer.Exit(2)


@app.command("publish-pending")
def publish_pending(
    ctx: typer.Context,
    channel_id: str | None = typer.Option(None, help="Only this channel's videos"),
):
    """Publish every video waiting in New or PublishFailed."""

    async def _run() -> list[PublishResult]:
        async with _orchestrator(ctx.obj) as orchestrator:
            return await orchestrator.publish_pending(channel_id)

    try:
        results = asyncio.run(_run())
    except SyncError as e:
        rprint(f"[red]✗ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    if not results:
        rprint("[yellow]No pending videos[/yellow]")
        return

    for result in results:
        _display_result(result)


@app.command()
def upload(
    ctx: typer.Context,
    channel_id: str = typer.Argument(..., help="YouTube channel ID"),
    video_id: str = typer.Argument(..., help="YouTube video ID"),
):
    """Upload the media of a published video."""

    async def _run() -> PublishResult:
        async with _orchestrator(ctx.obj) as orchestrator:
            return await orchestrator.upload_video(channel_id, video_id)

    try:
        result = asyncio.run(_run())
    except SyncError as e:
        rprint(f"[red]✗ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    _display_result(result)
    if result.outcome is PublishOutcome.FAILED:
        raise typer.Exit(2)


@app.command()
def classify(
    ctx: typer.Context,
    subscribers: int | None = typer.Argument(None, help="Subscriber count (omit if unknown)"),
):
    """Show the frequency bucket for a subscriber count."""
    settings: Settings = ctx.obj

    bucket = classify_statistics(
        ChannelStatistics(subscriber_count=subscribers), settings.frequency_tiers
    )
    rprint(bucket.value)


@app.command()
def failed(
    ctx: typer.Context,
    channel_id: str | None = typer.Option(None, help="Only this channel's videos"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """List videos whose last publish or upload attempt failed."""

    async def _run():
        async with _orchestrator(ctx.obj) as orchestrator:
            return await orchestrator.list_failed_videos(channel_id)

    try:
        videos = asyncio.run(_run())
    except SyncError as e:
        rprint(f"[red]✗ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    if as_json:
        console.print_json(json.dumps([v.model_dump(mode="json") for v in videos]))
        return

    if not videos:
        rprint("[green]No failed videos[/green]")
        return

    table = Table(title=f"Failed videos ({len(videos)})")
    table.add_column("Channel", style="cyan")
    table.add_column("Video", style="white")
    table.add_column("State", style="red")
    table.add_column("Title", style="dim")

    for video in videos:
        table.add_row(video.channel_id, video.id, video.state.value, video.title[:50])

    console.print(table)


@app.command("init-db")
def init_db(ctx: typer.Context):
    """Create MongoDB indexes."""

    async def _run():
        async with MongoDBManager(ctx.obj) as db:
            await db.init_indexes()

    try:
        asyncio.run(_run())
    except Exception as e:
        rprint(f"[red]✗ Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    rprint("[green]✓ Indexes created[/green]")


@app.command()
def health(ctx: typer.Context):
    """Check MongoDB and Redis connectivity."""

    async def _run() -> tuple[bool, dict]:
        async with MongoDBManager(ctx.obj) as db, RedisManager.from_settings(ctx.obj) as bus:
            return await db.ping(), await bus.health_check()

    mongo_ok, redis_health = asyncio.run(_run())

    rprint(f"MongoDB: {'[green]healthy[/green]' if mongo_ok else '[red]unreachable[/red]'}")
    if redis_health["available"]:
        rprint(f"Redis:   [green]healthy[/green] ({redis_health['latency_ms']} ms)")
    else:
        rprint("Redis:   [red]unavailable[/red]")

    if not (mongo_ok and redis_health["available"]):
        raise typer.Exit(1)


@app.command()
def version():
    """Show the installed version."""
    rprint(f"{APP_NAME} {APP_VERSION}")


@channel_app.command("apply")
def channel_apply(
    ctx: typer.Context,
    channel_id: str = typer.Argument(..., help="YouTube channel ID"),
    command_file: Path = typer.Argument(..., help="JSON file with a signed command"),
):
    """Apply a signed administrative command to a channel."""
    if not command_file.exists():
        rprint(f"[red]Error: File not found: {command_file}[/red]")
        raise typer.Exit(1)

    command = SignedCommand.model_validate_json(command_file.read_text())

    async def _run():
        async with _orchestrator(ctx.obj) as orchestrator:
            return await orchestrator.apply_channel_command(channel_id, command)

    try:
        channel = asyncio.run(_run())
    except SyncError as e:
        rprint(f"[red]✗ Rejected: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    rprint(
        f"[green]✓ {channel.id}[/green] status={channel.status.value} "
        f"should_sync={channel.should_sync}"
    )


if __name__ == "__main__":
    app()
