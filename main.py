#!/usr/bin/env python3
"""
SarkariFeed - Public Sector Announcement Aggregator
===================================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                       # Show all commands
    python main.py check-config                 # Validate configuration
    python main.py init-db                      # Initialize database
    python main.py run-once                     # Run one ingestion pass now
    python main.py run-once --feed URL          # Ingest specific feeds only
    python main.py serve                        # Start the scheduler service
    python main.py preview-feed URL             # Show how a feed would be ingested
    python main.py show-records --kind job      # Show stored records
"""

import sys
import signal
import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from sarkarifeed.config.settings import get_settings
from sarkarifeed.database.schema import DatabaseSchema
from sarkarifeed.database.connection import get_db_manager
from sarkarifeed.database.models import ContentKind
from sarkarifeed.ingestion.classifier import classify
from sarkarifeed.ingestion.date_extractor import extract_dates
from sarkarifeed.ingestion.feed_parser import FeedParser
from sarkarifeed.processing.feed_fetcher import FeedFetcher
from sarkarifeed.processing.pipeline import IngestionPipeline
from sarkarifeed.scheduler.ingestion_scheduler import IngestionScheduler
from sarkarifeed.storage.record_store import SQLiteRecordStore
from sarkarifeed.utils.logging import configure_application_logging
from sarkarifeed.utils.exceptions import SarkariFeedError

console = Console()


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """SarkariFeed - feed ingestion for jobs, results and admissions."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())


def _configure_logging(settings, debug: bool) -> None:
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


def _build_pipeline(settings) -> IngestionPipeline:
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    db_manager = get_db_manager(settings.database.path, settings.database.pool_size)
    return IngestionPipeline(SQLiteRecordStore(db_manager), settings=settings)


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking SarkariFeed Configuration[/bold blue]")

    try:
        settings = get_settings()
    except SarkariFeedError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    ingestion = settings.ingestion
    table.add_row("Database", "✅ Valid", f"Path: {settings.database.path}")
    table.add_row(
        "Logging", "✅ Valid",
        f"Level: {settings.get_effective_log_level()}, File: {settings.logging.file_path or 'disabled'}",
    )
    table.add_row(
        "Feeds",
        "✅ Valid" if ingestion.feed_urls else "⚠️ Empty",
        f"{len(ingestion.feed_urls)} configured, {ingestion.parallel_feeds} in parallel",
    )
    table.add_row(
        "Scheduling", "✅ Valid",
        f"Every {ingestion.interval_minutes} min, run on start: {ingestion.run_on_start}",
    )

    console.print(table)

    if not ingestion.feed_urls:
        console.print("[yellow]⚠️ No feeds configured; set SARKARIFEED_INGESTION__FEED_URLS[/yellow]")

    console.print("[bold green]✅ All configuration checks passed![/bold green]")


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing SarkariFeed Database[/bold blue]")

    try:
        settings = get_settings()
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        db_manager = get_db_manager(settings.database.path, settings.database.pool_size)
        info = db_manager.get_database_info()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")

        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(f"Records: {table_name}", str(count))

        console.print(info_table)

    except SarkariFeedError as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--feed', 'feeds', multiple=True, help='Feed URL to ingest (can specify multiple)')
@click.pass_context
def run_once(ctx, feeds):
    """Run one ingestion pass and print a summary."""
    try:
        settings = get_settings()
        _configure_logging(settings, ctx.obj.get('debug', False))
        pipeline = _build_pipeline(settings)
    except SarkariFeedError as e:
        console.print(f"[bold red]❌ Startup error: {e}[/bold red]")
        sys.exit(1)

    feed_urls = list(feeds) or settings.ingestion.feed_urls
    if not feed_urls:
        console.print("[yellow]⚠️ No feeds to process; configure feeds or pass --feed[/yellow]")
        return

    console.print(f"[bold blue]🔄 Ingesting {len(feed_urls)} feeds[/bold blue]")
    summary = asyncio.run(pipeline.run(feed_urls))

    results_table = Table(title="Ingestion Results")
    results_table.add_column("Feed", style="cyan")
    results_table.add_column("Status", style="green")
    results_table.add_column("New", style="yellow")
    results_table.add_column("Updated", style="yellow")
    results_table.add_column("Skipped")
    results_table.add_column("Details")

    for feed_result in summary.feeds:
        url = feed_result.feed_url
        status = "❌ Failed" if feed_result.failed else "✅ Success"
        details = feed_result.error or (
            f"{feed_result.merge_failures} merge failures" if feed_result.merge_failures else ""
        )
        results_table.add_row(
            url[:50] + "..." if len(url) > 50 else url,
            status,
            str(feed_result.inserted),
            str(feed_result.updated),
            str(feed_result.skipped),
            details[:50] + "..." if len(details) > 50 else details,
        )

    console.print(results_table)
    console.print(
        f"\n[bold blue]📊 Summary: {summary.merged} merged, {summary.skipped} skipped, "
        f"{summary.feeds_failed}/{summary.feeds_total} feeds failed[/bold blue]"
    )
    console.print(f"⏱️ Processing time: {summary.duration_seconds:.2f} seconds")

    if summary.all_feeds_failed:
        sys.exit(1)


@cli.command()
@click.pass_context
def serve(ctx):
    """Start the scheduler service (Ctrl+C to stop)."""
    try:
        settings = get_settings()
        _configure_logging(settings, ctx.obj.get('debug', False))
        pipeline = _build_pipeline(settings)
    except SarkariFeedError as e:
        console.print(f"[bold red]❌ Startup error: {e}[/bold red]")
        sys.exit(1)

    scheduler = IngestionScheduler(pipeline)
    console.print(
        f"[bold blue]⏰ Scheduling {len(scheduler.feed_urls)} feeds "
        f"every {scheduler.interval_minutes} minutes[/bold blue]"
    )

    async def run_service():
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, scheduler.stop)
        await scheduler.run_forever()

    asyncio.run(run_service())
    console.print(
        f"[yellow]👋 Scheduler stopped: {scheduler.runs_completed} runs, "
        f"{scheduler.skipped_ticks} skipped ticks[/yellow]"
    )


@cli.command()
@click.argument('url')
@click.option('--limit', default=10, help='Maximum items to show (default: 10)')
def preview_feed(url, limit):
    """Fetch a feed and show how its items would be ingested, without storing."""
    console.print(f"[bold blue]📡 Previewing Feed: {url}[/bold blue]")

    async def fetch_payload() -> bytes:
        fetcher = FeedFetcher()
        async with fetcher.get_session() as session:
            return await fetcher.fetch(url, session)

    try:
        payload = asyncio.run(fetch_payload())
        items = list(FeedParser().parse(payload, feed_url=url))
    except SarkariFeedError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    table = Table(title=f"Feed Items ({len(items)} found)")
    table.add_column("Kind", style="green")
    table.add_column("Title", style="cyan")
    table.add_column("Start", style="yellow")
    table.add_column("End", style="yellow")

    for item in items[:limit]:
        kind = classify(item.title, item.categories)
        dates = extract_dates(item.description) if kind.needs_dates else None
        table.add_row(
            kind.value,
            item.title[:60] + "..." if len(item.title) > 60 else item.title,
            str(dates.start_date or "-") if dates else "",
            str(dates.end_date or "-") if dates else "",
        )

    console.print(table)


@cli.command()
@click.option(
    '--kind', required=True,
    type=click.Choice([kind.value for kind in ContentKind if kind is not ContentKind.UNKNOWN]),
    help='Record kind to show',
)
@click.option('--limit', default=20, help='Maximum records to show (default: 20)')
def show_records(kind, limit):
    """Show the most recently updated records of one kind."""
    console.print(f"[bold blue]📊 Stored {kind} records[/bold blue]")

    try:
        settings = get_settings()
        db_manager = get_db_manager(settings.database.path, settings.database.pool_size)
        store = SQLiteRecordStore(db_manager)
        content_kind = ContentKind(kind)
        records = store.list_records(content_kind, limit=limit)
        total = store.count(content_kind)
    except SarkariFeedError as e:
        console.print(f"[bold red]❌ Error showing records: {e}[/bold red]")
        sys.exit(1)

    if not records:
        console.print("[yellow]⚠️ No records found in database[/yellow]")
        return

    records_table = Table(title=f"{kind.title()} records ({len(records)} of {total})")
    records_table.add_column("Status", style="green")
    records_table.add_column("Title", style="cyan")
    records_table.add_column("Category", style="yellow")
    records_table.add_column("Link", style="blue")

    for record in records:
        title = record.title.en
        link = record.external_key
        records_table.add_row(
            record.status.value,
            title[:40] + "..." if len(title) > 40 else title,
            record.category,
            link[:50] + "..." if len(link) > 50 else link,
        )

    console.print(records_table)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 SarkariFeed interrupted by user[/yellow]")
        sys.exit(130)
