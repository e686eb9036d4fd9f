#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

    python run.py            # http://localhost:8000, docs at /docs

Settings come from the environment / backend/.env (see app.core.config).
"""
import uvicorn

from app.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
    )
