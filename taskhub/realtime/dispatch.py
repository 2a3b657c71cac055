"""Socket event plumbing shared by the server and its handlers."""

from __future__ import annotations

import re
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

from rest_framework import serializers

if TYPE_CHECKING:
    from .registry import ConnectionRegistry
    from .registry import Transport

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_keys(payload: dict[str, Any]) -> dict[str, Any]:
    """Clients send camelCase keys; serializers declare snake_case fields."""
    return {_CAMEL_BOUNDARY.sub("_", str(k)).lower(): v for k, v in payload.items()}


@dataclass
class Ack:
    success: bool
    data: Any = None
    error: str | None = None
    message: str | None = None
    details: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> Ack:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, message: str, details: Any = None) -> Ack:
        return cls(success=False, error=error, message=message, details=details)

    def as_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        body = {"success": False, "error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


@dataclass
class Connection:
    """One authenticated socket."""

    sid: str
    user: Any
    transport: Transport
    registry: ConnectionRegistry
    rooms: set[str] = field(default_factory=set)

    @property
    def user_id(self) -> int:
        return self.user.pk

    async def join(self, room: str) -> None:
        await self.transport.enter_room(self.sid, room)
        self.rooms.add(room)

    async def leave(self, room: str) -> None:
        await self.transport.leave_room(self.sid, room)
        self.rooms.discard(room)

    async def broadcast(self, room: str, event: str, payload: dict) -> None:
        """Emit to ``room`` without echoing back to this socket."""
        await self.transport.emit(event, payload, room=room, skip_sid=self.sid)


Handler = Callable[[Connection, dict[str, Any]], Awaitable[Ack]]


@dataclass(frozen=True)
class EventHandler:
    func: Handler
    serializer: type[serializers.Serializer] | None = None

    def validate(self, payload: Any) -> tuple[dict[str, Any] | None, Any]:
        data = snake_keys(payload) if isinstance(payload, dict) else {}
        if self.serializer is None:
            return data, None
        serializer = self.serializer(data=data)
        if serializer.is_valid():
            return dict(serializer.validated_data), None
        return None, serializer.errors
