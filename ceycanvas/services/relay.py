"""
Real-time chat relay.

A Socket.IO server that shares the ASGI process with the REST API. Clients
join a room named after their user id; events addressed to a user are
emitted to that room and reach every socket currently in it. Delivery is
best-effort: nothing is acknowledged, queued or retried, and the relay
persists nothing.

Client events: ``join`` (user id), ``sendMessage``, ``typing``,
``stopTyping``. Server events: ``newMessage``, ``userTyping``,
``messagesRead``.
"""

import logging
from typing import Any, Optional

import socketio

from ceycanvas.config import settings

LOGGER = logging.getLogger(__name__)

NAMESPACE = "/"

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=list(settings.cors_origins),
    logger=False,
    engineio_logger=False,
)


def _recipient(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    recipient_id = data.get("recipientId")
    if recipient_id is None or recipient_id == "":
        return None
    return str(recipient_id)


async def emit_to_user(user_id: Any, event: str, data: Any) -> None:
    await sio.emit(event, data, to=str(user_id), namespace=NAMESPACE)


def room_size(room: str) -> int:
    return len(sio.manager.rooms.get(NAMESPACE, {}).get(room, {}))


async def on_connect(sid: str, environ: dict, auth: Any = None) -> None:
    LOGGER.info("Socket connected: %s", sid)


async def on_disconnect(sid: str, reason: Any = None) -> None:
    LOGGER.info("Socket disconnected: %s", sid)


async def on_join(sid: str, user_id: Any = None) -> None:
    if user_id is None or user_id == "":
        LOGGER.warning("join without a user id ignored (sid=%s)", sid)
        return
    await sio.enter_room(sid, str(user_id), namespace=NAMESPACE)
    LOGGER.info("Socket %s joined room %s", sid, user_id)


async def on_send_message(sid: str, data: Any = None) -> None:
    recipient = _recipient(data)
    if recipient is None:
        LOGGER.warning("sendMessage without recipientId ignored (sid=%s)", sid)
        return
    await emit_to_user(recipient, "newMessage", data.get("message"))


async def on_typing(sid: str, data: Any = None) -> None:
    await _emit_typing(sid, data, is_typing=True)


async def on_stop_typing(sid: str, data: Any = None) -> None:
    await _emit_typing(sid, data, is_typing=False)


async def _emit_typing(sid: str, data: Any, is_typing: bool) -> None:
    recipient = _recipient(data)
    if recipient is None:
        LOGGER.warning("typing indicator without recipientId ignored (sid=%s)", sid)
        return
    await emit_to_user(
        recipient,
        "userTyping",
        {"conversationId": data.get("conversationId"), "isTyping": is_typing},
    )


sio.on("connect", on_connect, namespace=NAMESPACE)
sio.on("disconnect", on_disconnect, namespace=NAMESPACE)
sio.on("join", on_join, namespace=NAMESPACE)
sio.on("sendMessage", on_send_message, namespace=NAMESPACE)
sio.on("typing", on_typing, namespace=NAMESPACE)
sio.on("stopTyping", on_stop_typing, namespace=NAMESPACE)
