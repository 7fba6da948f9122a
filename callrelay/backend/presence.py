"""Presence registry mapping user identities to live connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from callrelay.backend.hub import ConnectionHub
from callrelay.backend.models import PresenceEntry

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Any]

STATUS_EVENT = "user-status-change"


def loop_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class PresenceRegistry:
    def __init__(
        self,
        hub: ConnectionHub,
        grace_seconds: float = 2.0,
        scheduler: Scheduler = loop_scheduler,
    ) -> None:
        self._hub = hub
        self._grace_seconds = grace_seconds
        self._scheduler = scheduler
        self._entries: dict[str, str] = {}

    def register(self, user_id: str, connection_id: str) -> PresenceEntry:
        """Bind ``user_id`` to ``connection_id``, superseding any prior binding."""
        previous = self._entries.get(user_id)
        self._entries[user_id] = connection_id
        if previous is not None and previous != connection_id:
            logger.info("User %s superseded connection %s with %s", user_id, previous, connection_id)
        self._broadcast_status(user_id, "online")
        logger.info("User %s registered on %s - STATUS: ONLINE", user_id, connection_id)
        return PresenceEntry(user_id=user_id, connection_id=connection_id)

    def resolve(self, user_id: str | None) -> str | None:
        if user_id is None:
            return None
        return self._entries.get(user_id)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._entries

    def online_users(self) -> list[str]:
        return list(self._entries)

    def mark_offline(self, user_id: str, connection_id: str) -> bool:
        """Remove the user only while it is still bound to ``connection_id``."""
        if self._entries.get(user_id) != connection_id:
            return False
        del self._entries[user_id]
        self._broadcast_status(user_id, "offline")
        logger.info("User %s went offline after disconnect of %s", user_id, connection_id)
        return True

    def logout(self, user_id: str) -> bool:
        if self._entries.pop(user_id, None) is None:
            return False
        self._broadcast_status(user_id, "offline")
        logger.info("User %s logged out - STATUS: OFFLINE", user_id)
        return True

    def schedule_offline_check(
        self,
        user_id: str,
        connection_id: str,
        on_offline: Callable[[str], None] | None = None,
    ) -> None:
        """Arm the grace-period check for a closed connection.

        The check re-reads the live mapping when it fires; a ``register`` in
        the meantime turns it into a no-op.
        """

        def check() -> None:
            if not self.mark_offline(user_id, connection_id):
                logger.info("User %s reconnected within grace period", user_id)
                return
            if on_offline is not None:
                on_offline(user_id)

        logger.debug("Offline check for %s in %.1fs", user_id, self._grace_seconds)
        self._scheduler(self._grace_seconds, check)

    def _broadcast_status(self, user_id: str, status: str) -> None:
        self._hub.broadcast(STATUS_EVENT, {"userId": user_id, "status": status})
