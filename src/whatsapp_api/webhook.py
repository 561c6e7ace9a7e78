"""
Webhook notifier.

Posts lifecycle and inbound-message events to the configured WEBHOOK_URL.
Delivery is best effort: failures are logged, never retried and never
raised to the caller. Uses the shared httpx.AsyncClient passed via the
constructor for connection pooling.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

import httpx

from .logger import logger


def iso_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision (e.g. 2024-01-01T12:00:00.000Z)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WebhookNotifier:
    """Fire-and-forget webhook client."""

    def __init__(self, http_client: httpx.AsyncClient, url: str | None, timeout: float = 10.0):
        """
        Initialize the notifier.

        Args:
            http_client: Shared httpx.AsyncClient
            url: Webhook endpoint; None or empty disables all webhook traffic
            timeout: Per-request timeout in seconds
        """
        self._client = http_client
        self._url = url or None
        self._timeout = timeout
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._url is not None

    def notify(self, event: str, data: dict[str, Any] | None = None) -> asyncio.Task | None:
        """
        Schedule one webhook POST without waiting for it.

        Args:
            event: Event name ("connection", "error", ...)
            data: Extra fields merged into the payload

        Returns:
            The detached delivery task, or None when no webhook is configured
        """
        if not self.enabled:
            return None

        task = asyncio.create_task(self.deliver(event, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, event: str, data: dict[str, Any] | None = None) -> bool:
        """POST {event, timestamp, **data}. Returns True on a 2xx response."""
        if not self.enabled:
            return False
        payload = {"event": event, "timestamp": iso_timestamp(), **(data or {})}
        return await self._post(payload)

    async def send_message(self, message: dict[str, Any]) -> bool:
        """POST one inbound message as {event: "message", timestamp, data}."""
        if not self.enabled:
            return False
        payload = {"event": "message", "timestamp": iso_timestamp(), "data": message}
        return await self._post(payload)

    async def drain(self) -> None:
        """Wait for every detached delivery still in flight."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _post(self, payload: dict[str, Any]) -> bool:
        try:
            response = await self._client.post(self._url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.error(f"Error during webhook notification ({payload['event']}): {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected webhook failure ({payload['event']}): {e}", exc_info=True)
            return False

        if response.is_success:
            logger.debug(f"Webhook delivered: {payload['event']}")
            return True

        logger.error(
            f"Failed to send webhook ({payload['event']}): "
            f"{response.status_code} {response.reason_phrase}"
        )
        return False
