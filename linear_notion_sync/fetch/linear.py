"""
Change feed over the Linear GraphQL API.

Issues updated since a timestamp are paged through with cursor-based
pagination and yielded one at a time as UpstreamRecord snapshots. Any
failed page aborts iteration with UpstreamQueryError; there is no partial
page retry at this layer.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import httpx

from ..config import LinearConfig
from ..core.types import UpstreamRecord
from ..errors import UpstreamQueryError
from ..utils.logging import log_event, truncate_text

ISSUE_FIELDS = """
            pageInfo { hasNextPage endCursor }
            edges {
              node {
                identifier
                title
                url
                priority
                dueDate
                updatedAt
                description
                state { name }
                labels { nodes { name } }
                cycle { name }
              }
            }
"""

UPDATED_ISSUES_QUERY = (
    """
query UpdatedIssues($first: Int!, $after: String, $since: DateTime!) {
  issues(first: $first, after: $after, orderBy: updatedAt,
         filter: { updatedAt: { gte: $since } }) {"""
    + ISSUE_FIELDS
    + """  }
}
"""
)

UPDATED_LABELLED_ISSUES_QUERY = (
    """
query UpdatedLabelledIssues($first: Int!, $after: String, $since: DateTime!, $label: String!) {
  issues(first: $first, after: $after, orderBy: updatedAt,
         filter: { updatedAt: { gte: $since }, labels: { some: { name: { eqIgnoreCase: $label } } } }) {"""
    + ISSUE_FIELDS
    + """  }
}
"""
)


def build_linear_client(
    cfg: LinearConfig,
    api_key: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an HTTP client preconfigured for the Linear API.

    Linear expects the raw API key in the Authorization header, without a
    Bearer prefix.
    """
    return httpx.AsyncClient(
        headers={"Authorization": api_key, "Content-Type": "application/json"},
        timeout=cfg.timeout_seconds,
        transport=transport,
    )


def parse_issue(node: dict[str, Any]) -> UpstreamRecord:
    """Convert a GraphQL issue node into an UpstreamRecord."""
    state = node.get("state") or {}
    cycle = node.get("cycle") or {}
    label_nodes = (node.get("labels") or {}).get("nodes") or []
    labels = tuple(
        str(item.get("name")).strip()
        for item in label_nodes
        if isinstance(item, dict) and item.get("name")
    )
    return UpstreamRecord(
        identifier=str(node.get("identifier") or ""),
        title=node.get("title") or "",
        url=node.get("url"),
        priority=node.get("priority"),
        due_date=node.get("dueDate"),
        updated_at=node.get("updatedAt"),
        state=state.get("name"),
        labels=labels,
        cycle=cycle.get("name"),
        description=node.get("description"),
    )


class LinearFeed:
    """Reads issues changed since a timestamp, page by page.

    Attributes:
        client: HTTP client carrying the Linear auth header
        cfg: Linear settings (endpoint, page size, server-side filtering)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cfg: LinearConfig,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.cfg = cfg
        self.logger = logger

    async def iter_updated_since(
        self, since: str, required_label: str | None = None
    ) -> AsyncIterator[UpstreamRecord]:
        """Yield every issue updated at or after ``since``.

        Args:
            since: ISO-8601 inclusive lower bound
            required_label: Label to filter on server-side when enabled; the
                consumer still re-checks labels on every record

        Raises:
            UpstreamQueryError: If any page request fails
        """
        use_label = bool(required_label) and self.cfg.server_side_label_filter
        query = UPDATED_LABELLED_ISSUES_QUERY if use_label else UPDATED_ISSUES_QUERY
        after: str | None = None
        page = 0

        while True:
            variables: dict[str, Any] = {
                "first": self.cfg.page_size,
                "after": after,
                "since": since,
            }
            if use_label:
                variables["label"] = required_label
            connection = await self._fetch_page(query, variables)
            page += 1

            edges = connection.get("edges") or []
            log_event(
                self.logger,
                "Feed page fetched",
                level=logging.DEBUG,
                event="page_fetched",
                page=page,
                count=len(edges),
            )
            for edge in edges:
                node = (edge or {}).get("node")
                if node:
                    yield parse_issue(node)

            page_info = connection.get("pageInfo") or {}
            if page_info.get("hasNextPage") and page_info.get("endCursor"):
                after = page_info["endCursor"]
            else:
                break

    async def _fetch_page(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self.client.post(
                self.cfg.api_url, json={"query": query, "variables": variables}
            )
        except httpx.HTTPError as exc:
            raise UpstreamQueryError(
                f"Linear request failed: {type(exc).__name__}: {exc}", None, str(exc)
            ) from exc

        body = resp.text
        if not resp.is_success:
            raise UpstreamQueryError(
                f"Linear query returned HTTP {resp.status_code}",
                resp.status_code,
                truncate_text(body),
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamQueryError(
                "Linear query returned invalid JSON", resp.status_code, truncate_text(body)
            ) from exc

        if payload.get("errors"):
            raise UpstreamQueryError(
                "Linear query returned errors", resp.status_code, truncate_text(body)
            )
        connection = (payload.get("data") or {}).get("issues")
        if not isinstance(connection, dict):
            raise UpstreamQueryError(
                "Linear query returned no issues connection",
                resp.status_code,
                truncate_text(body),
            )
        return connection
