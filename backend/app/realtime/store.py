# backend/app/realtime/store.py
"""
Store access from async handlers.

Repositories and services are synchronous; every call runs in a worker
thread with its own short-lived session, so each store call is a
suspension point for the event loop.
"""

import asyncio
from typing import Any, Callable, ContextManager, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")

SessionFactory = Callable[[], ContextManager[Session]]


def _call_in_session(session_factory: SessionFactory, fn: Callable[..., T], *args: Any) -> T:
    with session_factory() as db:
        return fn(db, *args)


async def run_in_session(session_factory: SessionFactory, fn: Callable[..., T], *args: Any) -> T:
    """
    Run ``fn(db, *args)`` in a worker thread.

    NOTE: ``fn`` must return plain data (schemas, ids), never ORM objects that
    outlive the session.
    """
    return await asyncio.to_thread(_call_in_session, session_factory, fn, *args)
