# backend/app/api/dependencies/database.py
"""
Database-related dependencies.

Re-exports ``app.database.get_db`` so routes and ``app.auth`` share one
dependency (a single ``dependency_overrides`` entry covers both).
"""

from ...database import get_db

__all__ = ["get_db"]
