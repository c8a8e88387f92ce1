"""Field mapping from upstream issues to destination property values.

Everything here is pure: no I/O, no schema knowledge. Absent values are
left out of the result entirely so an update never blanks a field.
"""

from __future__ import annotations

from typing import Any, Iterable

from ..config import MappingConfig
from .types import FieldValue, NormalizedFieldSet, UpstreamRecord

PRIORITY_LABELS: dict[int, str] = {
    5: "Very Low",
    4: "Low",
    3: "Medium",
    2: "High",
    1: "Urgent",
    0: "None",
}


def normalize_text(value: Any) -> str | None:
    """Collapse a raw value to display text, or None when it has none.

    Strings are trimmed, numbers stringified, objects carrying a ``name``
    are unwrapped. Anything else (including booleans) counts as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dict):
        return normalize_text(value.get("name"))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def map_priority(value: Any) -> str | None:
    """Translate a numeric priority through PRIORITY_LABELS.

    Values outside the table fall back to the stringified number; textual
    priorities are trimmed and passed through.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if float(value).is_integer() and int(value) in PRIORITY_LABELS:
            return PRIORITY_LABELS[int(value)]
        return str(value)
    return normalize_text(value)


def pick_label(labels: Iterable[str], candidates: Iterable[str]) -> str | None:
    """Return the first candidate (by precedence) present in labels, case-insensitively."""
    present = {label.strip().lower() for label in labels if label}
    for candidate in candidates:
        if candidate.strip().lower() in present:
            return candidate
    return None


def chunk_text(text: str | None, size: int) -> tuple[str, ...]:
    """Split text into consecutive chunks of at most ``size`` characters."""
    if not text:
        return ()
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return tuple(text[i : i + size] for i in range(0, len(text), size))


def map_record(
    record: UpstreamRecord,
    cfg: MappingConfig,
    labels: Iterable[str] | None = None,
) -> NormalizedFieldSet:
    """Compute the destination field values for one upstream record.

    Args:
        record: The upstream issue snapshot
        cfg: Property names, label precedence lists and chunk size
        labels: Label set to map from; defaults to the record's own labels

    Returns:
        Mapping from destination property name to FieldValue, without
        keys for absent values
    """
    label_set = tuple(record.labels if labels is None else labels)
    fields: NormalizedFieldSet = {cfg.id_property: FieldValue("text", record.identifier)}

    def put(name: str, kind: str, value: str | tuple[str, ...] | None) -> None:
        if value:
            fields[name] = FieldValue(kind, value)

    put(cfg.title_property, "title", normalize_text(record.title))
    put(cfg.url_property, "url", normalize_text(record.url))
    put(cfg.status_property, "categorical", normalize_text(record.state))
    put(cfg.priority_property, "categorical", map_priority(record.priority))
    put(cfg.due_date_property, "date", normalize_text(record.due_date))

    module = pick_label(label_set, cfg.module_labels)
    subarea = pick_label(label_set, cfg.subarea_labels)
    issue_type = pick_label(label_set, cfg.type_labels)
    if issue_type is None and cfg.default_type_label in label_set:
        issue_type = cfg.default_type_label
    put(cfg.module_property, "categorical", normalize_text(module))
    put(cfg.subarea_property, "categorical", normalize_text(subarea))
    put(cfg.type_property, "categorical", normalize_text(issue_type))
    put(cfg.cycle_property, "categorical", normalize_text(record.cycle))

    put(
        cfg.description_property,
        "text",
        chunk_text(record.description, cfg.description_chunk_size),
    )
    return fields
