"""
Linear → Notion sync - scheduled issue reconciliation.

This package reads Linear issues changed inside a lookback window and
upserts them into a Notion database keyed by issue identifier, adding
missing select options to the database schema on the way.

Main entry point is the CLI via `linear-notion-sync run` command.

Example:
    $ linear-notion-sync run --lookback-minutes 15 --required-label "Customer - Acme"
"""

__all__ = ["__version__", "map_record", "run_sync", "run_sync_async"]
__version__ = "0.1.0"

from .core.mapper import map_record
from .runner import run_sync, run_sync_async
