"""Typer CLI for the Gmail date-range exporter."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from google.auth.exceptions import GoogleAuthError
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from gmail_export.config.settings import AppSettings, ExportConfigError, load_settings
from gmail_export.gmail.api import GmailApi, GmailApiError
from gmail_export.gmail.client import GmailClient
from gmail_export.models.types import ExportFormat, ExportSummary, FilenameOption, OutputStructure
from gmail_export.pipeline.orchestrator import ExportOrchestrator
from gmail_export.storage.local import LocalStorage
from gmail_export.utils.dates import resolve_date_range
from gmail_export.utils.logging import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Export Gmail messages within a date range to local .eml files.",
)

_DATE_FORMATS = ["%Y-%m-%d"]


def load_app_settings(
    *,
    env_file: Path | None,
    config_file: Path | None,
    overrides: dict[str, Any] | None = None,
) -> AppSettings:
    """Load settings, turning validation failures into exit code 2.

    Args:
        env_file: Optional .env file.
        config_file: Optional YAML configuration file.
        overrides: Values given on the command line.

    Returns:
        Validated application settings.
    """
    try:
        return load_settings(env_file=env_file, config_file=config_file, overrides=overrides)
    except (ValidationError, ExportConfigError) as exc:
        typer.echo(f"Invalid configuration:\n{exc}", err=True)
        raise typer.Exit(code=2) from None


def _require_gmail(settings: AppSettings) -> None:
    if settings.gmail is None:
        typer.echo(
            "Missing Gmail settings. Set at least GMX_GMAIL__CREDENTIALS_FILE.",
            err=True,
        )
        raise typer.Exit(code=2)


def _connect(settings: AppSettings, console: Console) -> GmailApi:
    """Authorize and build the Gmail API accessor."""
    assert settings.gmail is not None
    with console.status("[bold green]Initializing Gmail API...[/bold green]"):
        client = GmailClient.from_settings(settings.gmail)
    console.print(f"[green]✔[/green] Gmail API client ready ({settings.gmail.user_id})")
    return GmailApi(
        service=client.service,
        user_id=settings.gmail.user_id,
        http_factory=client.http_factory,
    )


def _render_summary(console: Console, summary: ExportSummary) -> None:
    table = Table(title="Export Summary", show_header=False)
    table.add_row("Total messages found", str(summary.total))
    table.add_row("Successfully processed", str(summary.processed))
    table.add_row("Skipped (already exists)", str(summary.skipped))
    table.add_row("Filtered out", str(summary.filtered))
    table.add_row("Errors", str(summary.errors))
    table.add_row("Dry run mode", "Yes" if summary.dry_run else "No")
    console.print(table)


@app.command("export")
def export_cmd(
    *,
    env_file: Path | None = typer.Option(
        default=None,
        exists=True,
        dir_okay=False,
        help="Optional path to a .env file (in addition to environment variables).",
    ),
    config_file: Path | None = typer.Option(
        default=None,
        exists=True,
        dir_okay=False,
        help="Optional YAML configuration file.",
    ),
    start: datetime | None = typer.Option(
        default=None,
        formats=_DATE_FORMATS,
        help="Start date (YYYY-MM-DD). Defaults to 31 days before the end date.",
    ),
    end: datetime | None = typer.Option(
        default=None,
        formats=_DATE_FORMATS,
        help="End date (YYYY-MM-DD), inclusive. Defaults to today.",
    ),
    current_month: bool = typer.Option(
        default=False,
        help="Export from the first day of the current month to today.",
    ),
    dry_run: bool | None = typer.Option(
        default=None,
        help="Run every check and count, but write nothing to disk.",
    ),
    output_dir: Path | None = typer.Option(
        default=None,
        file_okay=False,
        help="Directory the exported messages are written to.",
    ),
    output_structure: OutputStructure | None = typer.Option(
        default=None,
        help="Directory nesting below the output directory.",
    ),
    filename_option: list[FilenameOption] | None = typer.Option(
        default=None,
        help="Filename component to include; repeat for several.",
    ),
    timezone: str | None = typer.Option(
        default=None,
        help="IANA timezone used for dates in paths and filenames.",
    ),
    export_format: ExportFormat | None = typer.Option(
        None,
        "--format",
        help="Write the raw RFC 2822 message (eml) or a body rebuilt from its parts.",
    ),
    verbose: bool = typer.Option(default=False, help="Enable debug logging."),
) -> None:
    """Export messages within a date range.

    Args:
        env_file: Optional path to a .env file to load configuration from.
        config_file: Optional YAML configuration file.
        start: First day to export.
        end: Last day to export.
        current_month: Export the current month to date.
        dry_run: Skip all writes.
        output_dir: Export root directory.
        output_structure: Directory nesting mode.
        filename_option: Optional filename components.
        timezone: Export timezone.
        export_format: Artifact format.
        verbose: Enable debug logging.
    """
    export_overrides: dict[str, Any] = {
        key: value
        for key, value in {
            "dry_run": dry_run,
            "output_dir": output_dir,
            "output_structure": output_structure,
            "filename_options": filename_option or None,
            "timezone": timezone,
            "format": export_format,
        }.items()
        if value is not None
    }
    settings = load_app_settings(
        env_file=env_file,
        config_file=config_file,
        overrides={"export": export_overrides} if export_overrides else None,
    )
    configure_logging(settings=settings.logging, verbose=verbose)
    _require_gmail(settings)
    assert settings.gmail is not None

    try:
        date_range = resolve_date_range(
            tz=settings.export.tz,
            start=start.date() if start else None,
            end=end.date() if end else None,
            current_month=current_month,
        )
    except ExportConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from None

    console = Console(stderr=True)
    console.print(
        f"[bold blue]Export starting[/bold blue] (dry_run={settings.export.dry_run})",
    )
    console.print(f"  [dim]Output:[/dim] {settings.export.output_dir}")
    console.print(
        f"  [dim]Range:[/dim] {date_range.start.date()} to {date_range.end.date()}",
    )

    storage = LocalStorage()
    if not settings.export.dry_run:
        storage.create_directory(settings.export.output_dir)
        if not storage.is_directory_writable(settings.export.output_dir):
            typer.echo(f"Directory is not writeable: {settings.export.output_dir}", err=True)
            raise typer.Exit(code=2)

    try:
        api = _connect(settings, console)
        orchestrator = ExportOrchestrator(
            api=api,
            storage=storage,
            export=settings.export,
            filters=settings.filters,
        )
        summary = asyncio.run(orchestrator.run(date_range))
    except KeyboardInterrupt:
        raise typer.Exit(code=130) from None
    except ExportConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from None
    except (GmailApiError, GoogleAuthError, ValueError, OSError) as exc:
        logger.error("Export failed: %s", exc)
        typer.echo(f"Export failed: {exc}", err=True)
        raise typer.Exit(code=1) from None

    _render_summary(console, summary)
    if summary.dry_run:
        console.print("[yellow]This was a dry run. No files were actually saved.[/yellow]")


@app.command("auth")
def auth_cmd(
    *,
    env_file: Path | None = typer.Option(
        default=None,
        exists=True,
        dir_okay=False,
        help="Optional path to a .env file (in addition to environment variables).",
    ),
    config_file: Path | None = typer.Option(
        default=None,
        exists=True,
        dir_okay=False,
        help="Optional YAML configuration file.",
    ),
) -> None:
    """Run the Gmail OAuth flow and verify mailbox access.

    Args:
        env_file: Optional path to a .env file to load configuration from.
        config_file: Optional YAML configuration file.
    """
    settings = load_app_settings(env_file=env_file, config_file=config_file)
    configure_logging(settings=settings.logging)
    _require_gmail(settings)
    assert settings.gmail is not None

    try:
        service = GmailClient.from_settings(settings.gmail).service
        profile = service.users().getProfile(userId=settings.gmail.user_id).execute()
    except ValueError as exc:
        # Usually config/token file issues.
        logger.error("Gmail auth configuration error: %s", exc)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from None
    except Exception as exc:
        logger.exception("Gmail auth failed")
        typer.echo(f"Gmail auth failed: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if not isinstance(profile, dict) or "emailAddress" not in profile:
        typer.echo(f"Unexpected Gmail profile response: {profile!r}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Gmail OAuth OK for: {profile['emailAddress']}")
    if "messagesTotal" in profile:
        typer.echo(f"messagesTotal: {profile.get('messagesTotal')}")


@app.command("labels")
def labels_cmd(
    *,
    env_file: Path | None = typer.Option(
        default=None,
        exists=True,
        dir_okay=False,
        help="Optional path to a .env file (in addition to environment variables).",
    ),
    config_file: Path | None = typer.Option(
        default=None,
        exists=True,
        dir_okay=False,
        help="Optional YAML configuration file.",
    ),
) -> None:
    """List the mailbox's labels, for use in include/exclude filters.

    Args:
        env_file: Optional path to a .env file to load configuration from.
        config_file: Optional YAML configuration file.
    """
    settings = load_app_settings(env_file=env_file, config_file=config_file)
    configure_logging(settings=settings.logging)
    _require_gmail(settings)

    console = Console()
    try:
        api = _connect(settings, console)
        labels = asyncio.run(api.list_labels())
    except (GmailApiError, GoogleAuthError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from None

    table = Table("ID", "Name", "Type")
    for label in sorted(labels, key=lambda item: str(item.get("name", ""))):
        table.add_row(
            str(label.get("id", "")),
            str(label.get("name", "")),
            str(label.get("type", "")),
        )
    console.print(table)
