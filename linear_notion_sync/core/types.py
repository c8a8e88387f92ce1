"""
Core data types for the sync engine.

This module defines the data structures passed between the pipeline stages:
- UpstreamRecord: Immutable issue snapshot read from the change feed
- SelectOption / PropertySchema / DestinationSchema: Destination database schema
- FieldValue / NormalizedFieldSet: Mapper output, ready to encode and write
- RunSummary: Per-run counters and outcome log
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CATEGORICAL_KINDS = frozenset({"select", "multi_select"})


@dataclass(frozen=True)
class UpstreamRecord:
    """An issue as returned by the upstream change feed.

    Attributes:
        identifier: Human-readable issue key (e.g. "ENG-1"), the idempotency key
        title: Issue title
        url: Link to the issue in the tracker
        priority: Numeric priority ordinal, a textual priority, or None
        due_date: Optional ISO date string
        updated_at: ISO-8601 update timestamp as reported upstream
        state: Workflow state name
        labels: Label names, in upstream order
        cycle: Optional cycle name
        description: Optional long-form description
    """

    identifier: str
    title: str = ""
    url: str | None = None
    priority: int | float | str | None = None
    due_date: str | None = None
    updated_at: str | None = None
    state: str | None = None
    labels: tuple[str, ...] = ()
    cycle: str | None = None
    description: str | None = None

    def has_label(self, name: str) -> bool:
        """Case-insensitive label membership."""
        wanted = name.strip().lower()
        return any(label.strip().lower() == wanted for label in self.labels)


@dataclass(frozen=True)
class SelectOption:
    """A single option of a categorical property."""

    name: str
    id: str | None = None
    color: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.id:
            payload["id"] = self.id
        if self.color:
            payload["color"] = self.color
        return payload


@dataclass(frozen=True)
class PropertySchema:
    """Schema of one destination property.

    Attributes:
        name: Property name
        kind: Destination type ("select", "multi_select", "title", "rich_text",
            "url", "date", "status", or anything else the API reports)
        options: Allowed options for categorical kinds, in destination order
    """

    name: str
    kind: str
    options: tuple[SelectOption, ...] = ()

    @property
    def is_categorical(self) -> bool:
        return self.kind in CATEGORICAL_KINDS

    def find_option(self, name: str) -> SelectOption | None:
        """Return the option whose name matches case-insensitively."""
        wanted = name.lower()
        for option in self.options:
            if option.name.lower() == wanted:
                return option
        return None


@dataclass(frozen=True)
class DestinationSchema:
    """Property schema of the destination database."""

    properties: dict[str, PropertySchema] = field(default_factory=dict)

    def get(self, name: str) -> PropertySchema | None:
        return self.properties.get(name)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "DestinationSchema":
        """Build a schema from a database object returned by the API."""
        properties: dict[str, PropertySchema] = {}
        for name, raw in (payload.get("properties") or {}).items():
            if not isinstance(raw, dict):
                continue
            kind = str(raw.get("type") or "other")
            options: tuple[SelectOption, ...] = ()
            if kind in CATEGORICAL_KINDS:
                config = raw.get(kind) or {}
                options = tuple(
                    SelectOption(name=o["name"], id=o.get("id"), color=o.get("color"))
                    for o in config.get("options") or []
                    if isinstance(o, dict) and o.get("name")
                )
            properties[name] = PropertySchema(name=name, kind=kind, options=options)
        return cls(properties=properties)


@dataclass(frozen=True)
class FieldValue:
    """A typed value produced by the field mapper.

    Attributes:
        kind: "title", "text", "categorical", "url" or "date"
        value: Display text, or a tuple of text chunks for long text
    """

    kind: str
    value: str | tuple[str, ...]


# Destination property name -> value. Absent values are never present as keys.
NormalizedFieldSet = dict[str, FieldValue]


OUTCOMES = ("created", "updated", "skipped", "errored")


@dataclass
class RunSummary:
    """Counters and ordered outcome log for one run.

    Attributes:
        processed: Records read from the feed
        created: Pages created
        updated: Pages updated
        skipped: Records without the required label
        errors: Records whose upsert failed
        log: One line per record, in processing order
    """

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    log: list[str] = field(default_factory=list)

    def record(self, outcome: str, line: str) -> None:
        """Count one record outcome and append its log line."""
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown outcome: {outcome}")
        self.processed += 1
        if outcome == "errored":
            self.errors += 1
        else:
            setattr(self, outcome, getattr(self, outcome) + 1)
        self.log.append(line)

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }
