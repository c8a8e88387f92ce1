"""
Idempotent create-or-update of destination pages keyed by external identifier.

Per record the coordinator runs: label gate -> option preparation -> lookup
-> create or patch -> audit annotation -> last-synced refresh. The final two
steps are informational; their failures are logged and never change the
record's outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Callable

import httpx

from ..config import MappingConfig, SyncConfig
from ..core.mapper import map_record
from ..core.types import FieldValue, NormalizedFieldSet, UpstreamRecord
from ..errors import UpsertError
from ..utils.logging import log_event, truncate_text
from .client import NotionClient
from .properties import audit_blocks, build_properties
from .schema import SchemaRegistry


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _raise_for_write(resp: httpx.Response, method: str, endpoint: str) -> dict[str, Any]:
    if not resp.is_success:
        raise UpsertError(
            "Page write failed",
            method=method,
            endpoint=endpoint,
            status_code=resp.status_code,
            body=truncate_text(resp.text),
        )
    return resp.json()


@dataclass
class UpsertResult:
    """Outcome of one record's upsert.

    Attributes:
        outcome: "created", "updated" or "skipped"
        page_id: Destination page id (None when skipped or dry run create)
        fields: Field values written (after option canonicalisation)
        annotated: Whether the audit annotation was appended
        warnings: Non-fatal problems (annotation/timestamp failures)
    """

    outcome: str
    page_id: str | None = None
    fields: NormalizedFieldSet = field(default_factory=dict)
    annotated: bool = False
    warnings: list[str] = field(default_factory=list)


class UpsertCoordinator:
    """Creates or updates one destination page per upstream record."""

    def __init__(
        self,
        client: NotionClient,
        registry: SchemaRegistry,
        database_id: str,
        mapping: MappingConfig,
        sync: SyncConfig,
        required_label: str,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.registry = registry
        self.database_id = database_id
        self.mapping = mapping
        self.sync = sync
        self.required_label = required_label
        self.logger = logger
        self.clock = clock

    async def upsert(self, record: UpstreamRecord) -> UpsertResult:
        """Sync one record.

        Raises:
            SchemaFetchError, SchemaMutationError: If option preparation fails
            UpsertError: If lookup, create or patch fails
        """
        if not record.has_label(self.required_label):
            return UpsertResult(outcome="skipped")

        fields = map_record(record, self.mapping)
        if not self.sync.dry_run:
            fields = await self._prepare_options(fields)

        synced_at = self.clock().isoformat()
        schema = await self.registry.get_schema()
        if schema.get(self.mapping.last_synced_property) is not None:
            fields[self.mapping.last_synced_property] = FieldValue("date", synced_at)
        properties = build_properties(fields, schema, self.logger)

        page_id = await self.find_page(record.identifier)
        if self.sync.dry_run:
            outcome = "updated" if page_id else "created"
            return UpsertResult(outcome=outcome, page_id=page_id, fields=fields)

        if page_id:
            resp = await self.client.update_page(page_id, properties)
            _raise_for_write(resp, "PATCH", f"/pages/{page_id}")
            outcome = "updated"
        else:
            resp = await self.client.create_page(self.database_id, properties)
            data = _raise_for_write(resp, "POST", "/pages")
            page_id = data.get("id")
            if not page_id:
                raise UpsertError(
                    "Created page response has no id",
                    method="POST",
                    endpoint="/pages",
                    status_code=200,
                    body=truncate_text(str(data)),
                )
            outcome = "created"

        result = UpsertResult(outcome=outcome, page_id=page_id, fields=fields)
        if self.sync.annotate:
            result.annotated = await self._annotate(record, result, synced_at)
        if self.sync.refresh_timestamp and self.mapping.last_synced_property in properties:
            await self._refresh_timestamp(record, result)
        return result

    async def find_page(self, identifier: str) -> str | None:
        """Id of the page holding ``identifier``, or None.

        Two results are requested so duplicates can be reported; the first
        match is always the one used.
        """
        body = {
            "filter": {
                "property": self.mapping.id_property,
                "rich_text": {"equals": identifier},
            },
            "page_size": 2,
        }
        endpoint = f"/databases/{self.database_id}/query"
        resp = await self.client.query_database(self.database_id, body)
        if not resp.is_success:
            raise UpsertError(
                f"Lookup failed for {identifier}",
                method="POST",
                endpoint=endpoint,
                status_code=resp.status_code,
                body=truncate_text(resp.text),
            )
        results = resp.json().get("results") or []
        if len(results) > 1:
            log_event(
                self.logger,
                "Multiple pages share an identifier; using the first",
                level=logging.WARNING,
                event="duplicate_match",
                identifier=identifier,
                page_ids=[r.get("id") for r in results],
            )
        return results[0].get("id") if results else None

    async def _prepare_options(self, fields: NormalizedFieldSet) -> NormalizedFieldSet:
        # Option appends are read-modify-write; never run these concurrently.
        prepared = dict(fields)
        for name, value in fields.items():
            if value.kind != "categorical" or not isinstance(value.value, str):
                continue
            canonical = await self.registry.ensure_option(name, value.value)
            if canonical and canonical != value.value:
                prepared[name] = FieldValue("categorical", canonical)
        return prepared

    async def _annotate(self, record: UpstreamRecord, result: UpsertResult, synced_at: str) -> bool:
        def text(prop: str) -> str | None:
            value = result.fields.get(prop)
            return value.value if value is not None and isinstance(value.value, str) else None

        blocks = audit_blocks(
            synced_at,
            text(self.mapping.status_property),
            text(self.mapping.priority_property),
            text(self.mapping.cycle_property),
        )
        try:
            resp = await self.client.append_blocks(result.page_id, blocks)
        except httpx.HTTPError as exc:
            self._warn(record, result, "annotation_failed", f"{type(exc).__name__}: {exc}")
            return False
        if not resp.is_success:
            self._warn(
                record,
                result,
                "annotation_failed",
                f"HTTP {resp.status_code}: {truncate_text(resp.text, 300)}",
            )
            return False
        return True

    async def _refresh_timestamp(self, record: UpstreamRecord, result: UpsertResult) -> None:
        now = self.clock().isoformat()
        properties = {self.mapping.last_synced_property: {"date": {"start": now}}}
        try:
            resp = await self.client.update_page(result.page_id, properties)
        except httpx.HTTPError as exc:
            self._warn(record, result, "timestamp_refresh_failed", f"{type(exc).__name__}: {exc}")
            return
        if not resp.is_success:
            self._warn(
                record,
                result,
                "timestamp_refresh_failed",
                f"HTTP {resp.status_code}: {truncate_text(resp.text, 300)}",
            )
            return
        result.fields[self.mapping.last_synced_property] = FieldValue("date", now)

    def _warn(self, record: UpstreamRecord, result: UpsertResult, event: str, detail: str) -> None:
        result.warnings.append(f"{event}: {detail}")
        log_event(
            self.logger,
            "Post-write step failed",
            level=logging.WARNING,
            event=event,
            identifier=record.identifier,
            page_id=result.page_id,
            error=detail,
        )

