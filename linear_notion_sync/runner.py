"""
Sync run orchestration.

One run:
1. Validate configuration and compute the lookback window
2. Page through issues changed inside the window
3. Upsert each record into the destination database, one at a time
4. Count outcomes and report them (console line + optional step summary)

Per-record failures are isolated and counted; only configuration errors
and feed failures end a run early.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

import httpx
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import (
    AppConfig,
    get_linear_api_key,
    get_lookback_minutes,
    get_notion_database_id,
    get_notion_token,
    get_required_label,
    get_step_summary_path,
    validate_config,
)
from .core.types import RunSummary, UpstreamRecord
from .fetch.linear import LinearFeed, build_linear_client
from .notion.client import NotionClient, build_notion_client
from .notion.schema import SchemaCache, SchemaRegistry
from .notion.upsert import UpsertCoordinator, UpsertResult, utc_now
from .output.step_summary import append_step_summary, render_step_summary
from .utils.logging import log_event

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class SyncRun:
    """Result of a complete run.

    Attributes:
        summary: Counters and itemized log
        since: Start of the lookback window (ISO-8601)
        required_label: Label filter in effect
        step_summary_path: File the report was appended to, if any
    """

    summary: RunSummary
    since: str
    required_label: str
    step_summary_path: Path | None = None


def lookback_since(minutes: int, now: datetime | None = None) -> str:
    """Start of the lookback window as an ISO-8601 UTC timestamp.

    The window is meant to overlap the schedule period; revisiting an
    already-synced record is harmless because upserts are keyed.
    """
    now = now or utc_now()
    since = now.astimezone(timezone.utc) - timedelta(minutes=minutes)
    return since.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_progress(console: Console) -> Progress:
    """Spinner with a running record count."""
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        TextColumn("{task.completed:.0f} records"),
        console=console,
        transient=True,
    )


def describe_outcome(record: UpstreamRecord, result: UpsertResult, dry_run: bool = False) -> str:
    """One itemized-log line for a finished record."""
    prefix = "dry-run " if dry_run else ""
    if result.outcome == "skipped":
        return f"skipped {record.identifier}: missing required label"
    line = f"{prefix}{result.outcome} {record.identifier}: {record.title}"
    if result.warnings:
        line += f" ({'; '.join(result.warnings)})"
    return line


async def sync_records(
    records: AsyncIterator[UpstreamRecord],
    coordinator: UpsertCoordinator,
    *,
    pacing_seconds: float = 0.0,
    logger: logging.Logger | None = None,
    on_record: Callable[[str], None] | None = None,
    sleep: Sleep = asyncio.sleep,
) -> RunSummary:
    """Upsert every record from the feed and count the outcomes.

    Exceptions from a single record's upsert are logged and counted as
    errors. Exceptions raised by the feed itself propagate.
    """
    summary = RunSummary()
    dry_run = coordinator.sync.dry_run
    async for record in records:
        try:
            result = await coordinator.upsert(record)
        except Exception as exc:  # noqa: BLE001
            outcome = "errored"
            summary.record(outcome, f"error {record.identifier}: {exc}")
            log_event(
                logger,
                "Record failed",
                level=logging.ERROR,
                event="record_failed",
                identifier=record.identifier,
                error=f"{type(exc).__name__}: {exc}",
            )
        else:
            outcome = result.outcome
            summary.record(outcome, describe_outcome(record, result, dry_run))
            log_event(
                logger,
                f"Record {outcome}",
                level=logging.DEBUG if outcome == "skipped" else logging.INFO,
                event=f"record_{outcome}",
                identifier=record.identifier,
                page_id=result.page_id,
                dry_run=dry_run,
            )

        if on_record is not None:
            on_record(outcome)
        # Pacing applies only to records that reached the destination.
        if outcome != "skipped" and pacing_seconds > 0:
            await sleep(pacing_seconds)
    return summary


async def run_sync_async(
    cfg: AppConfig,
    *,
    logger: logging.Logger | None = None,
    console: Console | None = None,
    show_progress: bool = False,
    now: datetime | None = None,
    linear_transport: httpx.AsyncBaseTransport | None = None,
    notion_transport: httpx.AsyncBaseTransport | None = None,
    sleep: Sleep = asyncio.sleep,
) -> SyncRun:
    """Run one sync against the configured Linear workspace and Notion database.

    Args:
        cfg: Application configuration
        logger: Logger for structured events
        console: Rich console for the summary line (created if None)
        show_progress: Display a spinner while records are processed
        now: Override for the current time (window computation)
        linear_transport: Optional httpx transport for the feed client
        notion_transport: Optional httpx transport for the destination client
        sleep: Awaitable used for pacing and backoff

    Returns:
        SyncRun with the summary and window details

    Raises:
        ConfigError: If required configuration is missing
        UpstreamQueryError: If the change feed fails
    """
    validate_config(cfg)
    console = console or Console()
    required_label = get_required_label(cfg.sync)
    minutes = get_lookback_minutes(cfg.sync)
    since = lookback_since(minutes, now)
    database_id = get_notion_database_id(cfg.notion)

    log_event(
        logger,
        "Sync start",
        event="sync_start",
        since=since,
        required_label=required_label,
        dry_run=cfg.sync.dry_run,
    )

    linear_http = build_linear_client(cfg.linear, get_linear_api_key(cfg.linear), linear_transport)
    notion_http = build_notion_client(cfg.notion, get_notion_token(cfg.notion), notion_transport)
    async with linear_http, notion_http:
        feed = LinearFeed(linear_http, cfg.linear, logger)
        client = NotionClient(notion_http, cfg.retry, logger, sleep=sleep)
        registry = SchemaRegistry(client, database_id, SchemaCache(), logger)
        coordinator = UpsertCoordinator(
            client,
            registry,
            database_id,
            cfg.mapping,
            cfg.sync,
            required_label,
            logger,
        )
        records = feed.iter_updated_since(since, required_label)

        if show_progress:
            progress = build_progress(console)
            with progress:
                task = progress.add_task("Syncing", total=None)
                summary = await sync_records(
                    records,
                    coordinator,
                    pacing_seconds=cfg.sync.pacing_seconds,
                    logger=logger,
                    on_record=lambda _outcome: progress.advance(task, 1),
                    sleep=sleep,
                )
        else:
            summary = await sync_records(
                records,
                coordinator,
                pacing_seconds=cfg.sync.pacing_seconds,
                logger=logger,
                sleep=sleep,
            )

    run = SyncRun(summary=summary, since=since, required_label=required_label)
    step_summary = get_step_summary_path(cfg.output)
    if step_summary:
        markdown = render_step_summary(
            summary,
            title=cfg.output.title,
            required_label=required_label,
            since=since,
            lookback_minutes=minutes,
            dry_run=cfg.sync.dry_run,
        )
        run.step_summary_path = append_step_summary(Path(step_summary), markdown)

    _render_summary(summary, console)
    log_event(logger, "Sync complete", event="sync_complete", counts=summary.as_dict())
    return run


def run_sync(
    cfg: AppConfig,
    *,
    logger: logging.Logger | None = None,
    console: Console | None = None,
    show_progress: bool = False,
) -> SyncRun:
    """Synchronous entry point wrapping run_sync_async."""
    return asyncio.run(
        run_sync_async(cfg, logger=logger, console=console, show_progress=show_progress)
    )


def _render_summary(summary: RunSummary, console: Console) -> None:
    """Display the run counters on one console line."""
    console.print(
        "[bold]Sync summary[/bold]: "
        f"processed={summary.processed}, created={summary.created}, "
        f"updated={summary.updated}, skipped={summary.skipped}, errors={summary.errors}"
    )
