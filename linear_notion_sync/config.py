"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- LinearConfig: Upstream issue feed (GraphQL) settings
- NotionConfig: Destination database settings
- SyncConfig: Run behaviour (label gate, lookback window, pacing)
- RetryConfig: Rate-limit backoff settings
- MappingConfig: Destination property names and label precedence lists
- LoggingConfig: Logging behavior
- OutputConfig: Step-summary report settings
- AppConfig: Root configuration container

Secrets and the per-deployment values (database id, required label,
lookback window) fall back to environment variables when not set inline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml

from .errors import ConfigError


@dataclass
class LinearConfig:
    """Configuration for the upstream issue feed.

    Attributes:
        api_url: GraphQL endpoint
        api_key: Inline API key (overrides LINEAR_API_KEY)
        page_size: Number of issues requested per page
        server_side_label_filter: Also filter by the required label in the query
        timeout_seconds: HTTP request timeout
    """

    api_url: str = "https://api.linear.app/graphql"
    api_key: str | None = None
    page_size: int = 50
    server_side_label_filter: bool = True
    timeout_seconds: float = 30.0


@dataclass
class NotionConfig:
    """Configuration for the destination database.

    Attributes:
        api_url: REST API base URL
        token: Inline integration token (overrides NOTION_TOKEN)
        database_id: Target database id (overrides NOTION_DATABASE_ID)
        api_version: Value sent in the Notion-Version header
        timeout_seconds: HTTP request timeout
    """

    api_url: str = "https://api.notion.com/v1"
    token: str | None = None
    database_id: str | None = None
    api_version: str = "2022-06-28"
    timeout_seconds: float = 30.0


@dataclass
class SyncConfig:
    """Configuration for a single sync run.

    Attributes:
        required_label: Records without this label (case-insensitive) are skipped
        lookback_minutes: Size of the changed-since window
        pacing_seconds: Delay between records
        annotate: Append an audit paragraph to each synced page
        refresh_timestamp: Re-patch the last-synced property after annotation
        fail_on_error: Exit non-zero when any record errored
        dry_run: Read and map only, never write to the destination
    """

    required_label: str | None = None
    lookback_minutes: int | None = None
    pacing_seconds: float = 0.3
    annotate: bool = True
    refresh_timestamp: bool = True
    fail_on_error: bool = False
    dry_run: bool = False


@dataclass
class RetryConfig:
    """Configuration for rate-limit retries against the destination.

    Attributes:
        max_attempts: Total attempts per request, including the first
        base_delay_seconds: First backoff delay; doubled on each retry
        max_delay_seconds: Upper bound for a single delay
        respect_retry_after: Use the Retry-After header when present
    """

    max_attempts: int = 5
    base_delay_seconds: float = 0.4
    max_delay_seconds: float = 8.0
    respect_retry_after: bool = True


@dataclass
class MappingConfig:
    """Destination property names and categorical label precedence.

    Attributes:
        id_property: Rich-text property holding the external identifier
        url_property: URL property for the upstream link
        title_property: Page title property
        status_property: Workflow state
        priority_property: Priority label
        due_date_property: Due date
        module_property: Module category
        subarea_property: Sub-area category
        type_property: Issue type category
        cycle_property: Cycle name
        description_property: Long-form description (rich text)
        last_synced_property: Timestamp of the last successful sync
        module_labels: Module precedence list
        subarea_labels: Sub-area precedence list
        type_labels: Type precedence list
        default_type_label: Type used when this literal label is present
        description_chunk_size: Characters per rich-text run
    """

    id_property: str = "Linear Issue ID"
    url_property: str = "Linear URL"
    title_property: str = "Title"
    status_property: str = "Status"
    priority_property: str = "Priority"
    due_date_property: str = "Due Date"
    module_property: str = "Module"
    subarea_property: str = "Sub-Area"
    type_property: str = "Type"
    cycle_property: str = "Cycle"
    description_property: str = "Description"
    last_synced_property: str = "Last Synced"
    module_labels: list[str] = field(
        default_factory=lambda: ["Planning", "Procurement", "Post-bunkering"]
    )
    subarea_labels: list[str] = field(default_factory=lambda: ["Planning", "Lab", "Approval"])
    type_labels: list[str] = field(default_factory=lambda: ["Features", "Bug", "Chore"])
    default_type_label: str = "Features"
    description_chunk_size: int = 1900


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
        directory: Directory for the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "sync.jsonl"
    directory: str = "logs"


@dataclass
class OutputConfig:
    """Configuration for the run report.

    Attributes:
        step_summary_path: Markdown file the report is appended to
            (overrides GITHUB_STEP_SUMMARY)
        title: Report heading
    """

    step_summary_path: str | None = None
    title: str = "Linear → Notion Sync"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    linear: LinearConfig = field(default_factory=LinearConfig)
    notion: NotionConfig = field(default_factory=NotionConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    mapping: MappingConfig = field(default_factory=MappingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


DEFAULT_REQUIRED_LABEL = "Customer - Hapag Lloyd"
DEFAULT_LOOKBACK_MINUTES = 12

# Notion rejects text objects longer than this.
MAX_TEXT_LENGTH = 2000

_SECTIONS: dict[str, type] = {
    "linear": LinearConfig,
    "notion": NotionConfig,
    "sync": SyncConfig,
    "retry": RetryConfig,
    "mapping": MappingConfig,
    "logging": LoggingConfig,
    "output": OutputConfig,
}


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig.

    Unknown sections and unknown keys inside a section are ignored so older
    config files keep loading.
    """
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data or not isinstance(value, dict):
            continue
        known = data[key]
        known.update({k: v for k, v in value.items() if k in known})
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {name: dict(vars(getattr(cfg, name))) for name in _SECTIONS}


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(**{name: cls(**data.get(name, {})) for name, cls in _SECTIONS.items()})


def get_linear_api_key(cfg: LinearConfig) -> str | None:
    """Get the Linear API key from inline config or environment variable."""
    return cfg.api_key or os.getenv("LINEAR_API_KEY")


def get_notion_token(cfg: NotionConfig) -> str | None:
    """Get the Notion token from inline config or environment variable."""
    return cfg.token or os.getenv("NOTION_TOKEN")


def get_notion_database_id(cfg: NotionConfig) -> str | None:
    """Get the destination database id from inline config or environment variable."""
    return cfg.database_id or os.getenv("NOTION_DATABASE_ID")


def get_required_label(cfg: SyncConfig) -> str:
    """Get the required label from inline config, environment, or default."""
    return cfg.required_label or os.getenv("REQUIRED_LABEL") or DEFAULT_REQUIRED_LABEL


def get_lookback_minutes(cfg: SyncConfig) -> int:
    """Get the lookback window from inline config, environment, or default.

    Raises:
        ConfigError: If LOOKBACK_MINUTES is not an integer
    """
    if cfg.lookback_minutes is not None:
        raw = cfg.lookback_minutes
    else:
        raw = os.getenv("LOOKBACK_MINUTES")
        if not raw:
            return DEFAULT_LOOKBACK_MINUTES
    if isinstance(raw, bool):
        raise ConfigError(f"lookback_minutes must be an integer, got {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"lookback_minutes must be an integer, got {raw!r}") from exc


def get_step_summary_path(cfg: OutputConfig) -> str | None:
    """Get the step-summary path from inline config or GITHUB_STEP_SUMMARY."""
    return cfg.step_summary_path or os.getenv("GITHUB_STEP_SUMMARY") or None


def get_fail_on_error(cfg: SyncConfig) -> bool:
    """Whether per-record errors should fail the run (config or FAIL_ON_ERROR)."""
    if cfg.fail_on_error:
        return True
    return (os.getenv("FAIL_ON_ERROR") or "").strip().lower() in {"1", "true", "yes", "on"}


def validate_config(cfg: AppConfig) -> None:
    """Check that everything a run needs is present.

    Raises:
        ConfigError: Listing every missing or invalid value
    """
    problems: list[str] = []
    if not get_linear_api_key(cfg.linear):
        problems.append("LINEAR_API_KEY")
    if not get_notion_token(cfg.notion):
        problems.append("NOTION_TOKEN")
    if not get_notion_database_id(cfg.notion):
        problems.append("NOTION_DATABASE_ID")
    if problems:
        raise ConfigError(f"Missing required configuration: {', '.join(problems)}")

    if get_lookback_minutes(cfg.sync) <= 0:
        problems.append("lookback_minutes must be positive")
    _check_positive_int(problems, "linear.page_size", cfg.linear.page_size)
    _check_positive_int(problems, "retry.max_attempts", cfg.retry.max_attempts)
    chunk_size = cfg.mapping.description_chunk_size
    if _check_positive_int(problems, "mapping.description_chunk_size", chunk_size):
        if chunk_size > MAX_TEXT_LENGTH:
            problems.append(
                f"mapping.description_chunk_size must be at most {MAX_TEXT_LENGTH}"
            )
    for name, value in (
        ("sync.pacing_seconds", cfg.sync.pacing_seconds),
        ("linear.timeout_seconds", cfg.linear.timeout_seconds),
        ("notion.timeout_seconds", cfg.notion.timeout_seconds),
        ("retry.base_delay_seconds", cfg.retry.base_delay_seconds),
        ("retry.max_delay_seconds", cfg.retry.max_delay_seconds),
    ):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            problems.append(f"{name} must be a non-negative number, got {value!r}")
    if problems:
        raise ConfigError(f"Invalid configuration: {'; '.join(problems)}")


def _check_positive_int(problems: list[str], name: str, value: Any) -> bool:
    """Record a problem unless ``value`` is a positive integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        problems.append(f"{name} must be an integer, got {value!r}")
        return False
    if value <= 0:
        problems.append(f"{name} must be positive")
        return False
    return True
