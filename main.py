#!/usr/bin/env python3
"""
FeedAlert - Feed Ingestion and Alerting
=======================================

Main application entry point with CLI interface.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py refresh                   # Run one refresh cycle
    python main.py refresh --url URL         # Refresh a single feed
    python main.py run                       # Run the refresh scheduler service
    python main.py list --source-id 1        # Show stored items of a source
    python main.py search QUERY              # Search stored items
    python main.py cleanup                   # Expunge old items
"""

import sys
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedalert.config.settings import FeedSource, get_settings
from feedalert.database.schema import DatabaseSchema
from feedalert.database.connection import get_db_manager
from feedalert.delivery.console_surface import ConsoleNotificationSurface
from feedalert.delivery.telegram_surface import TelegramNotificationSurface
from feedalert.ingestion.content_cleaner import ContentCleaner
from feedalert.ingestion.feed_fetcher import FetchStatus
from feedalert.scheduler.refresh_scheduler import RefreshScheduler, build_pipeline
from feedalert.storage.feed_item_repository import FeedItemRepository
from feedalert.utils.logging import configure_application_logging
from feedalert.utils.exceptions import FeedAlertError, get_user_friendly_message
from feedalert.utils.process_lock import scheduler_lock

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedAlert - feed ingestion with alerts for new items."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _setup(ctx):
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _open_database(settings):
    schema = DatabaseSchema(settings.database.path)
    if not schema.verify_schema():
        schema.create_tables()
    return get_db_manager(settings.database.path, pool_size=settings.database.pool_size)


@asynccontextmanager
async def _notification_surface(settings):
    """Telegram surface when configured, console otherwise."""
    if settings.telegram.enabled:
        surface = TelegramNotificationSurface.from_settings(settings)
        async with surface.bot:
            yield surface
    else:
        yield ConsoleNotificationSurface(console)


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FeedAlert Configuration[/bold blue]")

    try:
        settings = get_settings()
    except FeedAlertError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Database", _check_database_config),
        ("Feeds", _check_feeds_config),
        ("Filtering", _check_filtering_config),
        ("Notifications", _check_notify_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        all_passed = all_passed and status

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize the database schema."""
    settings = _setup(ctx)
    console.print("[bold blue]📊 Initializing Database[/bold blue]")

    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if schema.verify_schema():
        console.print(f"✅ Database ready at {settings.database.path}")
    else:
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--url', help='Refresh only this feed URL')
@click.option('--source-id', default=1, show_default=True, help='Source id for --url')
@click.option('--expunge', type=int, help='Expunge window in days for --url')
@click.option('--no-errors', is_flag=True, help='Do not raise error alerts')
@click.pass_context
def refresh(ctx, url, source_id, expunge, no_errors):
    """Run a single refresh cycle."""
    settings = _setup(ctx)
    sources = None
    if url:
        try:
            sources = [FeedSource(url=url, source_id=source_id, expunge_days=expunge)]
        except ValidationError as e:
            raise click.BadParameter(e.errors()[0]["msg"], param_hint="'--url'") from e
    elif not settings.feeds.sources:
        console.print("[yellow]No feed sources configured (FEEDALERT_FEEDS)[/yellow]")
        return

    async def run_refresh():
        db = _open_database(settings)
        async with _notification_surface(settings) as surface:
            pipeline = build_pipeline(settings, db, surface, notify_errors=not no_errors)
            return await pipeline.run_cycle(sources)

    lock = scheduler_lock(settings.database.path)
    if not lock.acquire():
        console.print("[bold red]❌ Another refresh is running against this database[/bold red]")
        sys.exit(1)
    try:
        cycle = asyncio.run(run_refresh())
    finally:
        lock.release()

    table = Table(title="Refresh Results")
    table.add_column("Feed", style="cyan")
    table.add_column("Source", justify="right")
    table.add_column("Status")
    table.add_column("New", justify="right")

    for outcome in cycle.outcomes:
        status = {
            FetchStatus.NOT_MODIFIED: "⏸ not modified",
            FetchStatus.DOCUMENT: "✅ fetched",
            FetchStatus.ERROR: f"❌ {outcome.error}",
        }[outcome.status]
        table.add_row(outcome.feed_url, str(outcome.source_id), status, str(outcome.new_items))

    console.print(table)
    console.print(
        f"[bold]{cycle.new_items}[/bold] new item(s), {cycle.alerts_shown} alert(s), "
        f"{cycle.expunged} expunged"
    )


@cli.command()
@click.option('--cycles', type=int, help='Stop after this many cycles')
@click.pass_context
def run(ctx, cycles):
    """Run the refresh scheduler service."""
    settings = _setup(ctx)
    interval = settings.feeds.refresh_interval_minutes

    async def run_service():
        db = _open_database(settings)
        async with _notification_surface(settings) as surface:
            pipeline = build_pipeline(settings, db, surface)
            scheduler = RefreshScheduler(pipeline, interval, lock=scheduler_lock(settings.database.path))
            await scheduler.run_forever(max_cycles=cycles)

    console.print(f"🕐 FeedAlert scheduler starting, refreshing every {interval} minutes")
    console.print("Press Ctrl+C to stop.")
    try:
        asyncio.run(run_service())
    except RuntimeError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)


@cli.command(name="list")
@click.option('--source-id', default=1, show_default=True, help='Source id to list')
@click.option('--limit', default=20, show_default=True, help='Maximum items to show')
@click.pass_context
def list_items(ctx, source_id, limit):
    """Show visible stored items of a source, newest first."""
    settings = _setup(ctx)
    items = FeedItemRepository(_open_database(settings))
    _print_records(items.get_visible(source_id, limit=limit), settings, f"Source {source_id}")


@cli.command()
@click.argument('query')
@click.pass_context
def search(ctx, query):
    """Search visible stored items by title or body."""
    settings = _setup(ctx)
    items = FeedItemRepository(_open_database(settings))
    _print_records(items.search(query), settings, f"Search: {query}")


@cli.command()
@click.option('--days', type=int, help='Expunge window (default: configured)')
@click.pass_context
def cleanup(ctx, days):
    """Remove stored items older than the expunge window."""
    settings = _setup(ctx)
    window = settings.feeds.default_expunge_days if days is None else days
    items = FeedItemRepository(_open_database(settings))

    deleted = items.delete_older_than(window)
    console.print(f"🧹 Removed {deleted} item(s) older than {window} days")


def _print_records(records, settings, title: str) -> None:
    cleaner = ContentCleaner.from_settings(settings.filtering)

    table = Table(title=f"{title} ({len(records)} items)")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Published")
    table.add_column("Title")
    table.add_column("Link", style="blue")

    for record in records:
        table.add_row(str(record.id), record.published_at, cleaner.clean(record.title), record.link or "")

    console.print(table)


def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    db_path = Path(settings.database.path)
    if not db_path.parent.exists():
        return False, f"Directory missing: {db_path.parent}"
    return True, f"Path: {db_path}, pool: {settings.database.pool_size}"


def _check_feeds_config(settings) -> tuple[bool, str]:
    """Check configured feed sources."""
    sources = settings.feeds.sources
    if not sources:
        return False, "No sources configured"
    return True, (
        f"{len(sources)} source(s), expunge {settings.feeds.default_expunge_days}d, "
        f"every {settings.feeds.refresh_interval_minutes} min"
    )


def _check_filtering_config(settings) -> tuple[bool, str]:
    terms = settings.filtering.blacklist_terms()
    return True, f"{len(terms)} blacklist term(s), marker: {settings.filtering.continue_marker!r}"


def _check_notify_config(settings) -> tuple[bool, str]:
    surface = "Telegram" if settings.telegram.enabled else "Console"
    return True, f"{surface}, mode {settings.notify.mode}, color {settings.notify.color}"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedAlert interrupted by user[/yellow]")
        sys.exit(130)
    except FeedAlertError as e:
        console.print(f"\n[bold red]❌ {get_user_friendly_message(e)}[/bold red]")
        sys.exit(1)
