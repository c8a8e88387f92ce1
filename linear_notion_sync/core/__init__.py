"""
Core domain models and mapping logic.

This package contains data types and pure transformations that are
independent of either remote service.
"""

from .mapper import PRIORITY_LABELS, chunk_text, map_priority, map_record, normalize_text, pick_label
from .types import (
    DestinationSchema,
    FieldValue,
    NormalizedFieldSet,
    PropertySchema,
    RunSummary,
    SelectOption,
    UpstreamRecord,
)

__all__ = [
    "DestinationSchema",
    "FieldValue",
    "NormalizedFieldSet",
    "PropertySchema",
    "RunSummary",
    "SelectOption",
    "UpstreamRecord",
    "PRIORITY_LABELS",
    "chunk_text",
    "map_priority",
    "map_record",
    "normalize_text",
    "pick_label",
]
