"""Live connection bookkeeping: user id -> set of socket ids.

The registry is owned by a ``RealtimeServer`` and lives only as long as the
process. Mutations happen from connect/disconnect callbacks on the server's
event loop. Presence writes and broadcasts are best-effort.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Protocol

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.utils import timezone

from .events import USER_OFFLINE
from .events import USER_ONLINE

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The subset of ``socketio.AsyncServer`` the realtime layer relies on."""

    async def emit(
        self,
        event: str,
        data: Any = None,
        *,
        room: str | None = None,
        skip_sid: str | None = None,
    ) -> None: ...

    async def disconnect(self, sid: str) -> None: ...

    async def enter_room(self, sid: str, room: str) -> None: ...

    async def leave_room(self, sid: str, room: str) -> None: ...


class Presence(Protocol):
    async def set_online(self, user_id: int) -> None: ...

    async def set_offline(self, user_id: int) -> None: ...


class DatabasePresence:
    """Persist presence on the ``User`` row."""

    def write(self, user_id: int, *, online: bool) -> None:
        get_user_model().objects.filter(pk=user_id).update(
            is_online=online,
            last_seen=timezone.now(),
        )

    async def set_online(self, user_id: int) -> None:
        await database_sync_to_async(self.write)(user_id, online=True)

    async def set_offline(self, user_id: int) -> None:
        await database_sync_to_async(self.write)(user_id, online=False)


class ConnectionRegistry:
    def __init__(self, transport: Transport, presence: Presence | None = None):
        self._transport = transport
        self._presence = presence
        self._connections: dict[int, set[str]] = {}

    async def register(self, user_id: int, sid: str) -> bool:
        """Track ``sid``; returns True when this is the user's first connection."""

        sids = self._connections.setdefault(user_id, set())
        first = not sids
        sids.add(sid)
        if first:
            await self._mark(user_id, online=True)
            await self._broadcast(USER_ONLINE, user_id, skip_sid=sid)
        return first

    async def unregister(self, user_id: int, sid: str) -> bool:
        """Forget ``sid``; returns True when the user went offline."""

        sids = self._connections.get(user_id)
        if not sids or sid not in sids:
            return False
        sids.discard(sid)
        if sids:
            return False
        del self._connections[user_id]
        await self._mark(user_id, online=False)
        await self._broadcast(USER_OFFLINE, user_id)
        return True

    async def force_disconnect(self, user_id: int) -> int:
        """Close every connection of ``user_id``; returns how many were closed."""

        sids = self._connections.pop(user_id, set())
        for sid in sorted(sids):
            try:
                await self._transport.disconnect(sid)
            except Exception:
                logger.exception("Failed to disconnect %s for user %s", sid, user_id)
        if sids:
            await self._mark(user_id, online=False)
            await self._broadcast(USER_OFFLINE, user_id)
            logger.info(
                "Force-disconnected user %s (%d connections)",
                user_id,
                len(sids),
            )
        return len(sids)

    def is_online(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    def count_online(self) -> int:
        return len(self._connections)

    def list_online(self) -> list[int]:
        return sorted(self._connections)

    def connections_for(self, user_id: int) -> frozenset[str]:
        return frozenset(self._connections.get(user_id, ()))

    async def _mark(self, user_id: int, *, online: bool) -> None:
        if self._presence is None:
            return
        try:
            if online:
                await self._presence.set_online(user_id)
            else:
                await self._presence.set_offline(user_id)
        except Exception:
            logger.exception("Presence update failed for user %s", user_id)

    async def _broadcast(
        self,
        event: str,
        user_id: int,
        *,
        skip_sid: str | None = None,
    ) -> None:
        payload = {"userId": user_id, "timestamp": timezone.now().isoformat()}
        try:
            await self._transport.emit(event, payload, skip_sid=skip_sid)
        except Exception:
            logger.exception("Failed to broadcast %s for user %s", event, user_id)
