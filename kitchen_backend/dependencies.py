"""
Dependency wiring for the FastAPI app.

The storage backend is chosen once, when the app is built, and handed to the
app explicitly; request handlers receive it through ``get_storage``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from kitchen_backend.config import Settings, get_settings
from kitchen_backend.db import InMemoryStorage, SqlStorage, Storage

logger = logging.getLogger(__name__)


def select_storage(settings: Optional[Settings] = None) -> Storage:
    """
    Return SQL storage when a database URL is configured, in-memory otherwise.
    """
    settings = settings or get_settings()
    database_url = (settings.database_url or "").strip()
    if not database_url:
        logger.info("Using in-memory storage implementation")
        return InMemoryStorage()

    storage = SqlStorage(database_url, echo=settings.echo_sql)
    if storage.engine.dialect.name == "postgresql":
        logger.info("Using PostgreSQL storage implementation")
    else:
        logger.info(
            "Using SQL storage implementation (%s)", storage.engine.dialect.name
        )
    return storage


def get_storage(request: Request) -> Storage:
    """Return the storage instance the app was built with."""
    return request.app.state.storage
