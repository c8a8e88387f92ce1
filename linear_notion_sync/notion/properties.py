"""Encoding of mapped field values into Notion page properties and blocks."""

from __future__ import annotations

import logging
from typing import Any

from ..config import MAX_TEXT_LENGTH
from ..core.types import DestinationSchema, FieldValue, NormalizedFieldSet
from ..utils.logging import log_event

# Notion rejects rich-text arrays longer than this.
MAX_TEXT_RUNS = 100


def text_runs(value: str | tuple[str, ...], bold: bool = False) -> list[dict[str, Any]]:
    """Build rich-text runs, one per chunk."""
    chunks = (value,) if isinstance(value, str) else value
    runs = []
    for chunk in chunks[:MAX_TEXT_RUNS]:
        run: dict[str, Any] = {"type": "text", "text": {"content": chunk[:MAX_TEXT_LENGTH]}}
        if bold:
            run["annotations"] = {"bold": True}
        runs.append(run)
    return runs


def encode_value(kind: str, field: FieldValue) -> dict[str, Any] | None:
    """Encode a value for a destination property of the given kind.

    Returns None for kinds that cannot hold the value.
    """
    value = field.value
    flat = value if isinstance(value, str) else "".join(value)
    if kind == "title":
        return {"title": text_runs(value)}
    if kind == "rich_text":
        return {"rich_text": text_runs(value)}
    if kind == "select":
        return {"select": {"name": flat}}
    if kind == "multi_select":
        return {"multi_select": [{"name": flat}]}
    if kind == "status":
        return {"status": {"name": flat}}
    if kind == "url":
        return {"url": flat}
    if kind == "date":
        return {"date": {"start": flat}}
    return None


def build_properties(
    fields: NormalizedFieldSet,
    schema: DestinationSchema,
    logger: logging.Logger | None = None,
) -> dict[str, Any]:
    """Encode every field the destination schema can hold.

    Fields whose property is missing from the schema, or whose property kind
    cannot hold the value, are left out of the write. Text that does not fit
    the destination limits is cut and logged.
    """
    properties: dict[str, Any] = {}
    for name, field in fields.items():
        prop = schema.get(name)
        encoded = encode_value(prop.kind, field) if prop is not None else None
        if encoded is None:
            log_event(
                logger,
                "Property not writable",
                level=logging.DEBUG,
                event="property_skipped",
                property=name,
                kind=prop.kind if prop is not None else None,
            )
            continue
        if prop.kind in ("title", "rich_text"):
            _check_truncation(name, field, encoded[prop.kind], logger)
        properties[name] = encoded
    return properties


def _check_truncation(
    name: str,
    field: FieldValue,
    runs: list[dict[str, Any]],
    logger: logging.Logger | None,
) -> None:
    chunks = (field.value,) if isinstance(field.value, str) else field.value
    length = sum(len(chunk) for chunk in chunks)
    written = sum(len(run["text"]["content"]) for run in runs)
    if written >= length:
        return
    log_event(
        logger,
        "Text cut to fit the destination",
        level=logging.WARNING,
        event="description_truncated" if isinstance(field.value, tuple) else "text_truncated",
        property=name,
        length=length,
        written=written,
        runs=len(runs),
    )


def audit_blocks(
    synced_at: str,
    state: str | None,
    priority: str | None,
    cycle: str | None,
) -> list[dict[str, Any]]:
    """Paragraph noting when and with which values a page was last synced."""
    detail = (
        f" last synced {synced_at} · state: {state or '-'} · "
        f"priority: {priority or '-'} · cycle: {cycle or '-'}"
    )
    rich_text = text_runs("Linear sync", bold=True) + text_runs(detail)
    return [{"object": "block", "type": "paragraph", "paragraph": {"rich_text": rich_text}}]
