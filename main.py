#!/usr/bin/env python3
"""
CSL Feed Importer
=================

Main application entry point with CLI interface for management and operation.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py activate                  # Schedule the first import
    python main.py run                       # Run one import now
    python main.py serve                     # Run scheduled imports until stopped
    python main.py options set interval 2    # Import every two hours
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from csl_importer.config.settings import get_settings
from csl_importer.database.schema import DatabaseSchema
from csl_importer.database.connection import get_db_manager
from csl_importer.processing.pipeline import FeedImportPipeline, build_scheduler
from csl_importer.storage.content_repository import ContentRepository
from csl_importer.storage.options_repository import OptionsRepository
from csl_importer.utils.logging import configure_application_logging
from csl_importer.utils.exceptions import ImporterError, handle_exception
from csl_importer.utils.validators import OPTION_NAMES, validate_url
from csl_importer import lifecycle

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """CSL Feed Importer - imports the Collegiate StarLeague RSS feed."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _load(ctx):
    """Load settings, configure logging and open the database."""
    try:
        settings = get_settings()
    except ImporterError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )

    DatabaseSchema(settings.database.path).create_tables()
    db_manager = get_db_manager(settings.database.path, pool_size=settings.database.pool_size)
    return settings, db_manager


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking CSL Importer Configuration[/bold blue]")

    try:
        settings = get_settings()
    except ImporterError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Feed", _check_feed_config),
        ("Database", _check_database_config),
        ("Logging", _check_logging_config),
        ("Schedule", _check_schedule_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        if not status:
            all_passed = False

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing CSL Importer Database[/bold blue]")

    settings, db_manager = _load(ctx)
    schema = DatabaseSchema(settings.database.path)

    if not schema.verify_schema():
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)

    console.print("[bold green]✅ Database initialized successfully![/bold green]")

    info = db_manager.get_database_info()
    info_table = Table(title="Database Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")

    info_table.add_row("Database Path", settings.database.path)
    info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
    info_table.add_row("Connection Pool", f"{info['total_connections']} connections")

    console.print(info_table)


@cli.command()
@click.pass_context
def run(ctx):
    """Run one import now."""
    settings, db_manager = _load(ctx)
    console.print(f"[bold blue]📡 Importing {settings.feed.url}[/bold blue]")

    try:
        pipeline = FeedImportPipeline(db_manager, settings=settings)
        result = asyncio.run(pipeline.run())
    except Exception as e:
        error = handle_exception(e, logger, "import run")
        console.print(f"[bold red]❌ Import error: {error}[/bold red]")
        sys.exit(1)

    if result.skipped_locked:
        console.print("[yellow]⏳ Another import is already running, nothing done[/yellow]")
        return

    table = Table(title="Import Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Items in feed", str(result.items_seen))
    table.add_row("Inserted", str(result.items_inserted))
    table.add_row("Rejected", str(result.items_rejected))
    table.add_row("Failed", str(result.items_failed))
    table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    if result.rescheduled_at:
        table.add_row("Retry at", result.rescheduled_at.isoformat())

    console.print(table)

    for error in result.errors[:5]:
        console.print(f"  [red]• {error}[/red]")

    if not result.success:
        console.print("[bold red]❌ Import failed[/bold red]")
        sys.exit(1)

    console.print("[bold green]✅ Import complete[/bold green]")


@cli.command()
@click.pass_context
def activate(ctx):
    """Schedule the first import one interval from now."""
    settings, db_manager = _load(ctx)
    scheduler = _build_scheduler(settings, db_manager)

    state = lifecycle.activate(scheduler)
    console.print(f"[bold green]✅ Importer activated, next run at {state.next_run_at.isoformat()}[/bold green]")


@cli.command()
@click.pass_context
def deactivate(ctx):
    """Remove the pending import."""
    settings, db_manager = _load(ctx)
    scheduler = build_scheduler(db_manager, settings)

    if lifecycle.deactivate(scheduler):
        console.print("[bold green]✅ Importer deactivated[/bold green]")
    else:
        console.print("[yellow]No import was scheduled[/yellow]")


@cli.command()
@click.pass_context
def status(ctx):
    """Show schedule, options and content counts."""
    settings, db_manager = _load(ctx)
    scheduler = build_scheduler(db_manager, settings)
    state = scheduler.get_state()

    table = Table(title="Importer Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Feed", settings.feed.url)
    if state is None:
        table.add_row("Schedule", "not scheduled")
    else:
        due = " (due)" if state.is_due(scheduler.now()) else ""
        table.add_row("Next run", f"{state.next_run_at.isoformat()}{due}")
        table.add_row("Interval", f"{state.interval_seconds / 3600:g} hours")

    info = db_manager.get_database_info()
    table.add_row("Content items", str(info['table_counts']['posts']))
    table.add_row("Terms", str(info['table_counts']['terms']))

    for name, value in OptionsRepository(db_manager).all().items():
        table.add_row(f"Option: {name}", value)

    console.print(table)


@cli.command()
@click.option('--poll-seconds', type=int, default=None, help='Seconds between schedule checks')
@click.pass_context
def serve(ctx, poll_seconds):
    """Run scheduled imports until interrupted."""
    settings, db_manager = _load(ctx)
    poll_seconds = poll_seconds or settings.schedule.poll_seconds

    pipeline = FeedImportPipeline(db_manager, settings=settings)
    scheduler = lifecycle.setup(pipeline)

    console.print(f"[bold blue]⏰ Serving scheduled imports (poll every {poll_seconds}s)[/bold blue]")
    try:
        asyncio.run(scheduler.serve(poll_seconds))
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Scheduler stopped[/yellow]")


@cli.group()
def options():
    """Manage the import options."""


@options.command('show')
@click.pass_context
def options_show(ctx):
    """Show stored options."""
    settings, db_manager = _load(ctx)
    stored = OptionsRepository(db_manager).all()

    table = Table(title="Import Options")
    table.add_column("Option", style="cyan")
    table.add_column("Value", style="green")

    for name in OPTION_NAMES:
        table.add_row(name, stored.get(name, "[dim]not set[/dim]"))

    console.print(table)


@options.command('set')
@click.argument('name', type=click.Choice(OPTION_NAMES))
@click.argument('value')
@click.pass_context
def options_set(ctx, name, value):
    """Store an option value."""
    settings, db_manager = _load(ctx)

    try:
        stored = OptionsRepository(db_manager).set(name, value)
    except ImporterError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ {name} = {stored}[/bold green]")


@options.command('unset')
@click.argument('name', type=click.Choice(OPTION_NAMES))
@click.pass_context
def options_unset(ctx, name):
    """Remove an option value."""
    settings, db_manager = _load(ctx)

    if OptionsRepository(db_manager).unset(name):
        console.print(f"[bold green]✅ {name} removed[/bold green]")
    else:
        console.print(f"[yellow]{name} was not set[/yellow]")


@cli.command()
@click.option('--limit', default=20, help='Number of content items to show (default: 20)')
@click.pass_context
def posts(ctx, limit):
    """List imported content items."""
    settings, db_manager = _load(ctx)
    repository = ContentRepository(db_manager)
    items = repository.list_content_items(limit=limit)

    if not items:
        console.print("[yellow]No content items imported yet[/yellow]")
        return

    table = Table(title=f"Imported Content ({repository.count_content_items()} total)")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Published", style="green")
    table.add_column("Status")
    table.add_column("Tags")

    for item in items:
        table.add_row(
            str(item.id),
            item.title[:60],
            item.publish_timestamp,
            item.status.value,
            ", ".join(item.terms_for("tag")),
        )

    console.print(table)


def _build_scheduler(settings, db_manager):
    """Scheduler using the interval option when one is stored."""
    scheduler = build_scheduler(db_manager, settings)
    config = OptionsRepository(db_manager).load_ingestion_config(settings)
    scheduler.set_interval(config.interval_seconds)
    return scheduler


# Helper functions for configuration checks
def _check_feed_config(settings) -> tuple[bool, str]:
    if not validate_url(settings.feed.url):
        return False, f"Invalid URL: {settings.feed.url}"
    return True, f"URL: {settings.feed.url}, timeout: {settings.limits.request_timeout}s"


def _check_database_config(settings) -> tuple[bool, str]:
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_schedule_config(settings) -> tuple[bool, str]:
    schedule = settings.schedule
    return True, (
        f"Job: {schedule.job_name}, interval: {schedule.default_interval_hours:g}h, "
        f"retry after {schedule.retry_backoff_minutes} min, timezone: {settings.site.timezone}"
    )


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 CSL Importer interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
