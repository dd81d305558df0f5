"""
cairn.runtime — Collaborators shared by the orchestrating services
===================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cairn.config import DEFAULT_CONFIG, CairnConfig
from cairn.services.tasks import TaskRunner

if TYPE_CHECKING:
    from cairn.database.kv import KVStore
    from cairn.services.notification_service import Notifier


@dataclass(slots=True)
class Runtime:
    """Everything a badge / journey / leaderboard operation needs.

    ``cache_kv`` holds derived snapshots (leaderboards); it defaults to
    the primary store.  ``notifier`` may be None to disable notifications.
    """

    kv: KVStore
    cache_kv: KVStore | None = None
    tasks: TaskRunner = field(default_factory=TaskRunner)
    notifier: Notifier | None = None
    cfg: CairnConfig = DEFAULT_CONFIG

    def __post_init__(self) -> None:
        if self.cache_kv is None:
            self.cache_kv = self.kv

    async def aclose(self) -> None:
        """Let pending side effects finish, then release the HTTP client."""
        await self.tasks.drain()
        if self.notifier is not None:
            await self.notifier.aclose()
