"""Notion destination: transport, schema registry and page upserts."""

from .client import NotionClient, backoff_delay, build_notion_client
from .properties import audit_blocks, build_properties, encode_value, text_runs
from .schema import SchemaCache, SchemaRegistry
from .upsert import UpsertCoordinator, UpsertResult

__all__ = [
    "NotionClient",
    "SchemaCache",
    "SchemaRegistry",
    "UpsertCoordinator",
    "UpsertResult",
    "audit_blocks",
    "backoff_delay",
    "build_notion_client",
    "build_properties",
    "encode_value",
    "text_runs",
]
