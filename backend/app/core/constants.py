"""Application-wide constants for the course chat backend."""

BRAND_NAME = "Coursehub"

API_TITLE = f"{BRAND_NAME} Chat API"
API_DESCRIPTION = "Real-time chat and notification fan-out for the course marketplace"
API_VERSION = "1.0.0"

# Real-time namespaces
CHAT_NAMESPACE = "chat"
NOTIFICATION_NAMESPACE = "notification"

# WebSocket mount points, one per namespace
CHAT_WS_PATH = "/ws/chats"
NOTIFICATION_WS_PATH = "/ws/notifications"

# Room key prefixes
SELF_ARCHIVE_ROOM_PREFIX = "self_archive_"
DIRECT_ROOM_PREFIX = "dm_"
GROUP_ROOM_PREFIX = "group_"
COURSE_ROOM_PREFIX = "course-"

# Text constraints
MAX_MESSAGE_LENGTH = 4000
MAX_CONVERSATION_NAME_LENGTH = 120
