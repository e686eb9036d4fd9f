# backend/app/realtime/events.py
"""
Real-time event names and frame helpers.

Every frame in either direction is a JSON object:
{
    "event": str,   # Event name (see ClientEvent / ServerEvent)
    "data": Any     # Event-specific payload
}

Replies to a client event reuse the client event's name; errors for a
specific event come back on that event as {"error": ..., "code": ...}.
Frames that cannot be attributed to an event come back on "error".
"""

import json
from enum import Enum
from typing import Any, Dict, Tuple

from fastapi.encoders import jsonable_encoder

from ..core.exceptions import ValidationException


class ClientEvent(str, Enum):
    """Events a client may send."""

    LOGIN = "login"
    GET_CHATS = "getChats"
    GET_CHAT = "getChat"
    JOIN_ROOM = "joinRoom"
    OUT_ROOM = "outRoom"
    READ = "read"
    FORCE_READ = "forceRead"
    SEND_MESSAGE = "sendMessage"


class ServerEvent(str, Enum):
    """Events the server pushes unprompted."""

    GET_CHATS = "getChats"
    NEW_MESSAGE = "newMessage"
    NEW_READ = "newRead"
    NOTIFICATION = "notification"
    ERROR = "error"


def build_frame(event: str, data: Any) -> Dict[str, Any]:
    """
    Build a wire frame.

    Args:
        event: Event name
        data: Payload (pydantic models, dataclasses and datetimes are encoded)

    Returns:
        JSON-ready frame dict
    """
    name = event.value if isinstance(event, Enum) else event
    return {"event": name, "data": jsonable_encoder(data)}


def parse_frame(raw: str) -> Tuple[str, Any]:
    """
    Split a raw text frame into (event, data).

    Raises:
        ValidationException: not JSON, not an object, or no event name
    """
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationException("Frame is not valid JSON", code="MALFORMED_FRAME")
    if not isinstance(frame, dict):
        raise ValidationException("Frame must be a JSON object", code="MALFORMED_FRAME")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise ValidationException("Frame is missing an event name", code="MALFORMED_FRAME")
    return event, frame.get("data")


def error_payload(message: str, code: str = "ERROR") -> Dict[str, Any]:
    return {"error": message, "code": code}
