"""
Thin async transport for the Notion REST API.

All destination calls go through NotionClient.request, which retries HTTP
429 responses with bounded exponential backoff. Other statuses are returned
as-is; callers decide which typed error to raise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from ..config import NotionConfig, RetryConfig
from ..utils.logging import log_event

RATE_LIMIT_STATUS = 429

Sleep = Callable[[float], Awaitable[None]]


def build_notion_client(
    cfg: NotionConfig,
    token: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an HTTP client preconfigured for the Notion API."""
    return httpx.AsyncClient(
        base_url=cfg.api_url.rstrip("/"),
        headers={
            "Authorization": f"Bearer {token}",
            "Notion-Version": cfg.api_version,
            "Content-Type": "application/json",
        },
        timeout=cfg.timeout_seconds,
        transport=transport,
    )


def backoff_delay(attempt: int, retry: RetryConfig, retry_after: str | None = None) -> float:
    """Delay before retry number ``attempt`` (0-based).

    A numeric Retry-After header wins when enabled; every delay is capped at
    ``retry.max_delay_seconds``.
    """
    if retry.respect_retry_after and retry_after:
        try:
            return min(retry.max_delay_seconds, max(0.0, float(retry_after)))
        except ValueError:
            pass
    return min(retry.max_delay_seconds, retry.base_delay_seconds * (2**attempt))


class NotionClient:
    """Notion API transport with rate-limit retry.

    Attributes:
        http: Underlying httpx client (base URL and auth headers set)
        retry: Backoff settings
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        retry: RetryConfig,
        logger: logging.Logger | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.http = http
        self.retry = retry
        self.logger = logger
        self._sleep = sleep

    async def request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Send a request, retrying while the API signals rate limiting.

        Returns the last response. When every attempt was rate limited that
        response is the final 429, which the caller reports as a failure.
        """
        attempts = max(1, self.retry.max_attempts)
        attempt = 0
        while True:
            resp = await self.http.request(method, path, json=json)
            if resp.status_code != RATE_LIMIT_STATUS or attempt + 1 >= attempts:
                return resp
            delay = backoff_delay(attempt, self.retry, resp.headers.get("Retry-After"))
            log_event(
                self.logger,
                "Rate limited, backing off",
                level=logging.WARNING,
                event="rate_limited",
                method=method,
                path=path,
                attempt=attempt + 1,
                delay=delay,
            )
            await self._sleep(delay)
            attempt += 1

    async def get_database(self, database_id: str) -> httpx.Response:
        return await self.request("GET", f"/databases/{database_id}")

    async def update_database(self, database_id: str, properties: dict[str, Any]) -> httpx.Response:
        return await self.request(
            "PATCH", f"/databases/{database_id}", json={"properties": properties}
        )

    async def query_database(self, database_id: str, body: dict[str, Any]) -> httpx.Response:
        return await self.request("POST", f"/databases/{database_id}/query", json=body)

    async def create_page(self, database_id: str, properties: dict[str, Any]) -> httpx.Response:
        return await self.request(
            "POST",
            "/pages",
            json={"parent": {"database_id": database_id}, "properties": properties},
        )

    async def update_page(self, page_id: str, properties: dict[str, Any]) -> httpx.Response:
        return await self.request("PATCH", f"/pages/{page_id}", json={"properties": properties})

    async def append_blocks(self, block_id: str, children: list[dict[str, Any]]) -> httpx.Response:
        return await self.request(
            "PATCH", f"/blocks/{block_id}/children", json={"children": children}
        )
