"""
Destination schema cache and option management.

The schema is fetched lazily and kept in an explicit SchemaCache handle
owned by the run, never in module state. Appending an option is a
read-modify-write against the shared database schema; it is only safe
because the runner issues these calls one at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from ..core.types import DestinationSchema, PropertySchema
from ..errors import SchemaFetchError, SchemaMutationError
from ..utils.logging import log_event, truncate_text
from .client import NotionClient


@dataclass
class SchemaCache:
    """Holds the cached schema for one run. ``None`` means stale."""

    schema: DestinationSchema | None = None

    def invalidate(self) -> None:
        self.schema = None


class SchemaRegistry:
    """Cached view of the destination database schema.

    Attributes:
        client: Notion transport
        database_id: Destination database
        cache: Cache handle; pass a shared one to reuse a fetched schema
    """

    def __init__(
        self,
        client: NotionClient,
        database_id: str,
        cache: SchemaCache | None = None,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.database_id = database_id
        self.cache = cache if cache is not None else SchemaCache()
        self.logger = logger

    async def get_schema(self) -> DestinationSchema:
        """Return the cached schema, fetching it on first use or after invalidation.

        Raises:
            SchemaFetchError: On a non-success response
        """
        if self.cache.schema is None:
            self.cache.schema = await self._fetch()
        return self.cache.schema

    async def refresh(self) -> DestinationSchema:
        self.cache.invalidate()
        return await self.get_schema()

    async def ensure_option(self, property_name: str, option_name: str | None) -> str | None:
        """Make sure ``option_name`` exists on a categorical property.

        No-op when the option is empty, the property is missing, or the
        property is not select/multi_select. Existing options are matched
        case-insensitively; a missing one is appended after all existing
        options and the cache is refreshed.

        Returns:
            The option name as it exists in the schema (existing casing wins),
            or ``option_name`` unchanged for the no-op cases

        Raises:
            SchemaFetchError: If reading the schema fails
            SchemaMutationError: If the append is rejected
        """
        if not option_name:
            return option_name
        schema = await self.get_schema()
        prop = schema.get(property_name)
        if prop is None or not prop.is_categorical:
            return option_name

        existing = prop.find_option(option_name)
        if existing is not None:
            return existing.name

        await self._append_option(prop, option_name)
        log_event(
            self.logger,
            "Added option",
            event="option_added",
            property=property_name,
            option=option_name,
        )
        await self.refresh()
        return option_name

    async def _fetch(self) -> DestinationSchema:
        resp = await self.client.get_database(self.database_id)
        if not resp.is_success:
            raise SchemaFetchError(
                "Failed to fetch database schema",
                method="GET",
                endpoint=f"/databases/{self.database_id}",
                status_code=resp.status_code,
                body=truncate_text(resp.text),
            )
        return DestinationSchema.from_api(resp.json())

    async def _append_option(self, prop: PropertySchema, option_name: str) -> None:
        options = [option.to_payload() for option in prop.options]
        options.append({"name": option_name})
        resp = await self.client.update_database(
            self.database_id, {prop.name: {prop.kind: {"options": options}}}
        )
        if not resp.is_success:
            raise SchemaMutationError(
                f"Failed to add option {option_name!r} to {prop.name!r}",
                property_name=prop.name,
                option_name=option_name,
                method="PATCH",
                endpoint=f"/databases/{self.database_id}",
                status_code=resp.status_code,
                body=truncate_text(resp.text),
            )
