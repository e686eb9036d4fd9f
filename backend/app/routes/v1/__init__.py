# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1, plus the WebSocket namespaces and
the metrics scrape endpoint.
"""

from . import chats, courses, hearts, prometheus, realtime

__all__ = [
    "chats",
    "courses",
    "hearts",
    "prometheus",
    "realtime",
]
