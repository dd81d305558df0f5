"""
cairn.services.notification_service — Outbound user notifications
==================================================================

Delivery itself belongs to the platform API; Cairn only POSTs a
notification payload to ``{notify_url}/v2/users/{id}/notifications``.
Calls are always made from background tasks, so errors surface as
``httpx`` exceptions to the :class:`~cairn.services.tasks.TaskRunner`,
which logs them.
"""

from __future__ import annotations

import logging
import os

import httpx

from cairn.config import CairnConfig

logger = logging.getLogger(__name__)


class Notifier:
    """Thin async client for the platform notification endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        source: str = "cloud",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.source = source
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        transport = httpx.AsyncHTTPTransport(retries=1)
        self._client = client or httpx.AsyncClient(
            timeout=10, transport=transport, headers=headers,
        )

    @classmethod
    def from_config(cls, cfg: CairnConfig) -> Notifier:
        return cls(cfg.notify_url, os.getenv("NOTIFY_API_KEY"), source=cfg.notify_source)

    async def send(
        self,
        user_id: str,
        title: str,
        description: str,
        link: str | None = None,
        type: str = "info",
    ) -> None:
        payload = {
            "title": title,
            "description": description,
            "link": link,
            "type": type,
            "source": self.source,
        }
        resp = await self._client.post(
            f"{self.base_url}/v2/users/{user_id}/notifications", json=payload,
        )
        resp.raise_for_status()
        logger.debug("Notification '%s' sent to user %s", title, user_id)

    async def aclose(self) -> None:
        await self._client.aclose()
