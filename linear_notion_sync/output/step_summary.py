"""
Markdown run report for CI step summaries.

The report is rendered with a Jinja2 template and appended (never
overwritten) to the configured file, so several runs or jobs can share
one summary.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from ..core.types import RunSummary


def render_step_summary(
    summary: RunSummary,
    *,
    title: str,
    required_label: str,
    since: str,
    lookback_minutes: int,
    dry_run: bool = False,
) -> str:
    """Render the run summary as Markdown.

    Args:
        summary: Counters and itemized log of the run
        title: Report heading
        required_label: Label filter used for the run
        since: Start of the lookback window (ISO-8601)
        lookback_minutes: Size of the lookback window
        dry_run: Whether writes were suppressed

    Returns:
        Markdown text ending with a newline
    """
    env = Environment(
        loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    template = env.get_template("step_summary.md.j2")
    return template.render(
        title=title,
        required_label=required_label,
        since=since,
        lookback_minutes=lookback_minutes,
        dry_run=dry_run,
        counts=summary.as_dict(),
        log=summary.log,
    )


def append_step_summary(path: Path, markdown: str) -> Path:
    """Append rendered Markdown to ``path``, creating parent folders as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(markdown)
        if not markdown.endswith("\n"):
            handle.write("\n")
    return path
