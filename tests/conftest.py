"""Shared fakes for the Linear and Notion HTTP APIs."""

from __future__ import annotations

import itertools
import json
from typing import Any

import httpx
import pytest

from linear_notion_sync.config import AppConfig

DATABASE_ID = "db-123"


def make_issue(
    identifier: str,
    *,
    title: str | None = None,
    labels: list[str] | None = None,
    priority: Any = 2,
    state: str | None = "In Progress",
    cycle: str | None = None,
    description: str | None = None,
    due_date: str | None = None,
    updated_at: str = "2026-10-18T10:00:00.000Z",
) -> dict[str, Any]:
    """A Linear GraphQL issue node."""
    return {
        "identifier": identifier,
        "title": title or f"Issue {identifier}",
        "url": f"https://linear.app/acme/issue/{identifier}",
        "priority": priority,
        "dueDate": due_date,
        "updatedAt": updated_at,
        "description": description,
        "state": {"name": state} if state is not None else None,
        "labels": {"nodes": [{"name": name} for name in (labels or [])]},
        "cycle": {"name": cycle} if cycle else None,
    }


def default_schema() -> dict[str, Any]:
    """Raw Notion database properties matching the default mapping."""

    def select(*names: str) -> dict[str, Any]:
        return {
            "type": "select",
            "select": {
                "options": [
                    {"id": f"opt-{name.lower()}", "name": name, "color": "blue"} for name in names
                ]
            },
        }

    return {
        "Title": {"type": "title", "title": {}},
        "Linear Issue ID": {"type": "rich_text", "rich_text": {}},
        "Linear URL": {"type": "url", "url": {}},
        "Status": select("In Progress", "Done"),
        "Priority": select("Urgent", "High", "Medium", "Low"),
        "Due Date": {"type": "date", "date": {}},
        "Module": select("Planning"),
        "Sub-Area": select("Lab"),
        "Type": select("Bug", "Chore"),
        "Cycle": {
            "type": "multi_select",
            "multi_select": {"options": []},
        },
        "Description": {"type": "rich_text", "rich_text": {}},
        "Last Synced": {"type": "date", "date": {}},
    }


class FakeNotion:
    """In-memory Notion API speaking just enough of the REST surface.

    Attributes:
        schema: Raw database properties
        pages: Page id -> properties as last written
        blocks: Page id -> appended children
        calls: (method, path, body) for every request received
        rate_limits: (method, path) -> number of 429s still to return
        failures: (method, path) -> (status, body) returned every time
    """

    def __init__(self, schema: dict[str, Any] | None = None):
        self.schema = schema if schema is not None else default_schema()
        self.pages: dict[str, dict[str, Any]] = {}
        self.blocks: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.rate_limits: dict[tuple[str, str], int] = {}
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self._ids = itertools.count(1)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, method: str, path: str | None = None) -> int:
        return sum(
            1 for m, p, _ in self.calls if m == method and (path is None or p == path)
        )

    def add_page(self, identifier: str, **properties: Any) -> str:
        page_id = f"page-{next(self._ids)}"
        self.pages[page_id] = {
            "Linear Issue ID": {"rich_text": [{"text": {"content": identifier}}]},
            **properties,
        }
        return page_id

    def page_for(self, identifier: str) -> dict[str, Any] | None:
        for props in self.pages.values():
            if _plain_text(props.get("Linear Issue ID")) == identifier:
                return props
        return None

    def option_names(self, prop: str) -> list[str]:
        raw = self.schema[prop]
        return [o["name"] for o in raw[raw["type"]]["options"]]

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        body = json.loads(request.content) if request.content else None
        method = request.method
        self.calls.append((method, path, body))

        key = (method, path)
        if self.rate_limits.get(key, 0) > 0:
            self.rate_limits[key] -= 1
            return httpx.Response(429, json={"code": "rate_limited"}, headers={"Retry-After": "0"})
        if key in self.failures:
            status, text = self.failures[key]
            return httpx.Response(status, text=text)

        if path == f"/databases/{DATABASE_ID}" and method == "GET":
            return httpx.Response(200, json={"id": DATABASE_ID, "properties": self.schema})
        if path == f"/databases/{DATABASE_ID}" and method == "PATCH":
            for name, change in body["properties"].items():
                kind = self.schema[name]["type"]
                options = []
                for option in change[kind]["options"]:
                    options.append(
                        {
                            "id": option.get("id") or f"opt-{next(self._ids)}",
                            "name": option["name"],
                            "color": option.get("color") or "default",
                        }
                    )
                self.schema[name][kind]["options"] = options
            return httpx.Response(200, json={"id": DATABASE_ID, "properties": self.schema})
        if path == f"/databases/{DATABASE_ID}/query" and method == "POST":
            wanted = body["filter"]["rich_text"]["equals"]
            prop = body["filter"]["property"]
            results = [
                {"id": page_id, "properties": props}
                for page_id, props in self.pages.items()
                if _plain_text(props.get(prop)) == wanted
            ]
            return httpx.Response(200, json={"results": results[: body.get("page_size", 100)]})
        if path == "/pages" and method == "POST":
            page_id = f"page-{next(self._ids)}"
            self.pages[page_id] = dict(body["properties"])
            return httpx.Response(200, json={"id": page_id, "object": "page"})
        if path.startswith("/pages/") and method == "PATCH":
            page_id = path.split("/")[2]
            if page_id not in self.pages:
                return httpx.Response(404, json={"code": "object_not_found"})
            self.pages[page_id].update(body["properties"])
            return httpx.Response(200, json={"id": page_id, "object": "page"})
        if path.startswith("/blocks/") and method == "PATCH":
            page_id = path.split("/")[2]
            self.blocks.setdefault(page_id, []).extend(body["children"])
            return httpx.Response(200, json={"results": body["children"]})
        return httpx.Response(404, json={"code": "not_found", "path": path})


def _plain_text(prop: dict[str, Any] | None) -> str | None:
    if not prop:
        return None
    runs = prop.get("rich_text") or prop.get("title") or []
    return "".join(run["text"]["content"] for run in runs)


class FakeLinear:
    """Serves pre-built pages of issue nodes, following the cursor chain."""

    def __init__(self, pages: list[list[dict[str, Any]]]):
        self.pages = pages
        self.requests: list[dict[str, Any]] = []
        self.status = 200
        self.error_body: str | None = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if self.status != 200:
            return httpx.Response(self.status, text=self.error_body or "error")
        after = payload["variables"].get("after")
        index = 0 if after is None else int(after.split("-")[1]) + 1
        has_next = index + 1 < len(self.pages)
        nodes = self.pages[index] if self.pages else []
        return httpx.Response(
            200,
            json={
                "data": {
                    "issues": {
                        "pageInfo": {
                            "hasNextPage": has_next,
                            "endCursor": f"cursor-{index}" if has_next else None,
                        },
                        "edges": [{"node": node} for node in nodes],
                    }
                }
            },
        )


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records the delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def cfg(clear_sync_env) -> AppConfig:
    config = AppConfig()
    config.linear.api_key = "lin_test"
    config.notion.token = "secret_test"
    config.notion.database_id = DATABASE_ID
    config.sync.required_label = "Customer - Hapag Lloyd"
    config.sync.lookback_minutes = 15
    config.sync.pacing_seconds = 0
    return config


@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def clear_sync_env(monkeypatch):
    for name in (
        "LINEAR_API_KEY",
        "NOTION_TOKEN",
        "NOTION_DATABASE_ID",
        "REQUIRED_LABEL",
        "LOOKBACK_MINUTES",
        "GITHUB_STEP_SUMMARY",
        "FAIL_ON_ERROR",
    ):
        monkeypatch.delenv(name, raising=False)
