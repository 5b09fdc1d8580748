"""
FastAPI application entry point for the site backend.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from kitchen_backend.config import get_settings
from kitchen_backend.db import Storage
from kitchen_backend.dependencies import select_storage
from kitchen_backend.routes import INTERNAL_ERROR_MESSAGE, error_response, router

logger = logging.getLogger(__name__)


def format_validation_errors(errors) -> str:
    """Build a readable message such as 'Validation error: Field required at "phone"'."""
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p != "body"]
        if loc and error.get("type") != "json_invalid":
            parts.append(f'{error["msg"]} at "{".".join(loc)}"')
        else:
            parts.append(error["msg"])
    return "Validation error: " + "; ".join(parts)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(400, format_validation_errors(exc.errors()))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, INTERNAL_ERROR_MESSAGE)


def create_app(storage: Optional[Storage] = None) -> FastAPI:
    """
    Build the app around ``storage``, or around the backend chosen from the
    settings when none is given.
    """
    settings = get_settings()
    if storage is None:
        storage = select_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if await storage.initialize_database():
            logger.info("Database initialized successfully")
        else:
            logger.warning("Database initialization failed, continuing anyway")
        yield
        await storage.close()

    app = FastAPI(title="Kitchen Site Backend", version="0.1.0", lifespan=lifespan)
    app.state.storage = storage
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            # Unhandled errors re-raise through call_next; they are logged as 500.
            if request.url.path.startswith(settings.api_prefix):
                logger.info(
                    "%s %s %d in %.0fms",
                    request.method,
                    request.url.path,
                    status_code,
                    (time.perf_counter() - start) * 1000,
                )

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
