from .connection import Connection, ConnectionUser
from .directory import ConnectionDirectory
from .gateway import ChatGateway, NotificationGateway, RealtimeGateway
from .hub import RealtimeHub
from .notifier import FanoutNotifier
from .relay import ChatRelay

__all__ = [
    "ChatGateway",
    "ChatRelay",
    "Connection",
    "ConnectionDirectory",
    "ConnectionUser",
    "FanoutNotifier",
    "NotificationGateway",
    "RealtimeGateway",
    "RealtimeHub",
]
