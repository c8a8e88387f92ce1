"""
Command-line interface for the Linear → Notion sync.

Uses Typer to provide a CLI with options for the run settings most often
changed per schedule. Supports loading .env files for credentials.

Exit codes:
    0: run finished (per-record errors allowed unless --fail-on-error)
    1: the change feed failed, or --fail-on-error and a record errored
    2: required configuration is missing or invalid
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
import typer
import yaml

from .config import get_fail_on_error, load_config
from .errors import ConfigError, UpstreamQueryError
from .runner import run_sync
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False)
console = Console()


@app.callback()
def main() -> None:
    """Reconcile Linear issues into a Notion database."""


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    lookback_minutes: int | None = typer.Option(
        None,
        "--lookback-minutes",
        envvar="LOOKBACK_MINUTES",
        help="Sync issues updated within this many minutes.",
    ),
    required_label: str | None = typer.Option(
        None,
        "--required-label",
        envvar="REQUIRED_LABEL",
        help="Only issues carrying this label are synced.",
    ),
    fail_on_error: bool | None = typer.Option(
        None,
        "--fail-on-error/--no-fail-on-error",
        help="Exit non-zero when any record failed to sync.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Read and map issues without writing to Notion."
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_format: str | None = typer.Option(
        None, "--log-format", help="Log file format: jsonl or plain."
    ),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
    step_summary: Path | None = typer.Option(
        None,
        "--step-summary",
        envvar="GITHUB_STEP_SUMMARY",
        help="Append a Markdown run report to this file.",
    ),
):
    """Run one sync pass.

    Reads Linear issues updated inside the lookback window and creates or
    updates the matching Notion pages.

    Args:
        config: Optional path to YAML config file
        lookback_minutes: Size of the changed-since window
        required_label: Label gate for synced issues
        fail_on_error: Exit non-zero when any record errored
        dry_run: Suppress all writes to Notion
        progress: Whether to show a progress spinner
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log file format (jsonl, plain)
        log_file: Enable/disable file logging
        step_summary: Markdown report destination
    """
    # Load environment variables from .env if available
    load_dotenv()

    try:
        cfg = load_config(str(config) if config else None)
    except (OSError, yaml.YAMLError) as exc:
        console.print(f"[red]Could not load config[/red]: {exc}")
        raise typer.Exit(code=2) from exc

    # Override with CLI options
    if lookback_minutes is not None:
        cfg.sync.lookback_minutes = lookback_minutes
    if required_label:
        cfg.sync.required_label = required_label
    if fail_on_error is not None:
        cfg.sync.fail_on_error = fail_on_error
    if dry_run:
        cfg.sync.dry_run = True
    if log_level:
        cfg.logging.level = log_level
    if log_format:
        cfg.logging.format = log_format
    if log_file is not None:
        cfg.logging.file = log_file
    if step_summary is not None:
        cfg.output.step_summary_path = str(step_summary)

    logger = setup_logging(cfg.logging)

    try:
        result = run_sync(cfg, logger=logger, console=console, show_progress=progress)
    except ConfigError as exc:
        console.print(f"[red]Configuration error[/red]: {exc}")
        raise typer.Exit(code=2) from exc
    except UpstreamQueryError as exc:
        console.print(f"[red]Linear query failed[/red]: {exc} {exc.body}")
        raise typer.Exit(code=1) from exc

    if result.summary.errors and get_fail_on_error(cfg.sync):
        console.print(f"[red]{result.summary.errors} record(s) failed[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
