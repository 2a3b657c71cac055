"""Bridge from synchronous Django code to the running realtime server.

The ASGI entrypoint activates one ``RealtimeServer``; everything else looks it
up here. With no active server (management commands, Celery workers, tests)
emits are dropped with a debug log.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync

if TYPE_CHECKING:
    from .server import RealtimeServer

logger = logging.getLogger(__name__)

_active: RealtimeServer | None = None


def activate(server: RealtimeServer) -> None:
    global _active  # noqa: PLW0603
    _active = server


def deactivate() -> None:
    global _active  # noqa: PLW0603
    _active = None


def active_server() -> RealtimeServer | None:
    return _active


def emit(room: str, event: str, payload: dict[str, Any]) -> bool:
    """Emit ``event`` to ``room``; returns False when nothing was sent."""

    server = _active
    if server is None:
        logger.debug("Realtime inactive, dropping %s for %s", event, room)
        return False
    async_to_sync(server.emit)(room, event, payload)
    return True


def disconnect_user(user_id: int) -> int:
    """Sever every live connection of ``user_id``; returns how many were cut."""

    server = _active
    if server is None:
        return 0
    return async_to_sync(server.registry.force_disconnect)(user_id)


def evict_from_rooms(user_id: int, rooms: Iterable[str]) -> int:
    """Make ``user_id``'s live sockets leave ``rooms``; returns sockets moved."""

    server = _active
    if server is None:
        return 0
    return async_to_sync(server.evict)(user_id, set(rooms))
