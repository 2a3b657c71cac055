"""Socket.IO server.

Clients connect with a JWT access token in ``auth.token``, an
``Authorization: Bearer`` header, or ``?token=``. Expired tokens are refused
with ``jwt_expired`` so the client can refresh and retry; everything else is
``unauthorized``.

Every client event goes through ``RealtimeServer.dispatch`` and is answered
with an ack dict, ``{"success": true, "data": ...}`` or
``{"success": false, "error": <code>, "message": <text>}``. The user row is
re-read for every event, so a deactivated account is refused at once and role
changes take effect without reconnecting.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qs

import socketio
from channels.db import database_sync_to_async
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import exceptions as drf_exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken
from socketio import exceptions as sio_exceptions

from taskhub.core.exceptions import AppError

from .dispatch import Ack
from .dispatch import Connection
from .dispatch import EventHandler
from .handlers import HANDLERS
from .registry import ConnectionRegistry
from .registry import DatabasePresence
from .registry import Transport
from .rooms import user_room

logger = logging.getLogger(__name__)

JWT_EXPIRED = "jwt_expired"
UNAUTHORIZED = "unauthorized"


def build_socketio_server() -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.REALTIME_CORS_ALLOWED_ORIGINS,
        logger=False,
        engineio_logger=False,
    )


def _scope(environ: Any) -> dict:
    # python-socketio hands over a WSGI-style environ under ASGI, with the raw
    # scope tucked away in ``asgi.scope``
    if isinstance(environ, dict) and isinstance(environ.get("asgi.scope"), dict):
        return environ["asgi.scope"]
    return environ if isinstance(environ, dict) else {}


def _query_token(environ: Any) -> str | None:
    query_string: str | bytes = ""
    if isinstance(environ, dict) and "QUERY_STRING" in environ:
        query_string = environ.get("QUERY_STRING", "")
    else:
        query_string = _scope(environ).get("query_string", b"")
    if isinstance(query_string, bytes | bytearray):
        query_string = query_string.decode(errors="ignore")
    return parse_qs(str(query_string)).get("token", [None])[0]


def _header_token(environ: Any) -> str | None:
    header = ""
    if isinstance(environ, dict):
        header = environ.get("HTTP_AUTHORIZATION", "") or ""
    if not header:
        for name, value in _scope(environ).get("headers", []) or []:
            if name.lower() == b"authorization":
                header = value.decode(errors="ignore")
                break
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def extract_token(environ: Any, auth: object | None) -> str | None:
    if isinstance(auth, dict):
        token = auth.get("token")
        if isinstance(token, str) and token:
            return token
    return _header_token(environ) or _query_token(environ)


@database_sync_to_async
def authenticate_token(raw_token: str):
    """Resolve an access token to an active user.

    Raises ``TokenError`` for bad or expired tokens and DRF's
    ``AuthenticationFailed`` for unknown or inactive users.
    """

    token = AccessToken(raw_token)
    return JWTAuthentication().get_user(token)


@database_sync_to_async
def load_active_user(user_id: int):
    return get_user_model().objects.filter(pk=user_id, is_active=True).first()


class RealtimeServer:
    def __init__(
        self,
        sio: Transport | None = None,
        *,
        handlers: dict[str, EventHandler] | None = None,
        presence=None,
    ):
        self.sio = sio if sio is not None else build_socketio_server()
        self.registry = ConnectionRegistry(
            self.sio,
            presence if presence is not None else DatabasePresence(),
        )
        self.handlers = dict(HANDLERS if handlers is None else handlers)
        self.connections: dict[str, Connection] = {}
        if isinstance(self.sio, socketio.AsyncServer):
            self._bind(self.sio)

    def _bind(self, sio: socketio.AsyncServer) -> None:
        sio.on("connect", self.on_connect)
        sio.on("disconnect", self.on_disconnect)
        for event in self.handlers:
            sio.on(event, self._handler_for(event))

    def _handler_for(self, event: str):
        async def handle(sid: str, payload: Any = None) -> dict:
            return await self.dispatch(event, sid, payload)

        return handle

    def asgi_app(self, other_asgi_app=None, socketio_path: str | None = None):
        return socketio.ASGIApp(
            self.sio,
            other_asgi_app=other_asgi_app,
            socketio_path=socketio_path or settings.REALTIME_SOCKETIO_PATH,
        )

    async def on_connect(self, sid: str, environ: Any, auth: object | None = None):
        token = extract_token(environ, auth)
        if not token:
            raise sio_exceptions.ConnectionRefusedError(UNAUTHORIZED)
        try:
            user = await authenticate_token(token)
        except TokenError as exc:
            if "expired" in str(exc).lower():
                raise sio_exceptions.ConnectionRefusedError(JWT_EXPIRED) from exc
            raise sio_exceptions.ConnectionRefusedError(UNAUTHORIZED) from exc
        except drf_exceptions.AuthenticationFailed as exc:
            logger.info("Socket refused: %s", exc.detail)
            raise sio_exceptions.ConnectionRefusedError(UNAUTHORIZED) from exc

        connection = Connection(
            sid=sid,
            user=user,
            transport=self.sio,
            registry=self.registry,
        )
        self.connections[sid] = connection
        await connection.join(user_room(user.pk))
        await self.registry.register(user.pk, sid)
        logger.info("Socket %s connected for user %s", sid, user.pk)
        return True

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        connection = self.connections.pop(sid, None)
        if connection is None:
            return
        await self.registry.unregister(connection.user_id, sid)
        logger.info(
            "Socket %s disconnected for user %s (%s)",
            sid,
            connection.user_id,
            reason,
        )

    async def dispatch(self, event: str, sid: str, payload: Any = None) -> dict:
        connection = self.connections.get(sid)
        if connection is None:
            ack = Ack.fail("authentication_error", "Not authenticated")
            return ack.as_dict()
        # Role and account changes apply to the very next event
        user = await load_active_user(connection.user_id)
        if user is None:
            logger.info("Socket %s rejected: user %s gone", sid, connection.user_id)
            return Ack.fail("authentication_error", "Not authenticated").as_dict()
        connection.user = user
        handler = self.handlers.get(event)
        if handler is None:
            return Ack.fail("unknown_event", f"Unknown event '{event}'").as_dict()
        data, errors = handler.validate(payload)
        if errors is not None:
            return Ack.fail("validation_error", "Invalid input", errors).as_dict()
        try:
            ack = await handler.func(connection, data)
        except AppError as exc:
            ack = Ack.fail(exc.error_code, exc.message, exc.details)
        except Exception:
            logger.exception("Socket handler %s failed for %s", event, sid)
            ack = Ack.fail("server_error", "Internal server error")
        return ack.as_dict()

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        await self.sio.emit(event, payload, room=room)

    async def evict(self, user_id: int, rooms: set[str]) -> int:
        """Pull every socket of ``user_id`` out of ``rooms``; returns sockets moved."""

        moved = 0
        for sid in sorted(self.registry.connections_for(user_id)):
            connection = self.connections.get(sid)
            if connection is None:
                continue
            joined = connection.rooms & rooms
            for room in sorted(joined):
                await connection.leave(room)
            moved += bool(joined)
        if moved:
            logger.info("Evicted user %s from %d socket(s)", user_id, moved)
        return moved
