from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from habitlog.context import HabitLogContext, build_context
from habitlog.logging_config import configure_logging
from habitlog.repositories import PersistenceError
from habitlog.routes import categories, entries, metrics, oauth, settings, sync
from habitlog.services.sync_engine import SyncState
from habitlog.settings import get_settings


def create_app(context: HabitLogContext | None = None) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.context.sync.state == SyncState.DISCONNECTED:
            await app.state.context.sync.restore()
        yield
        await app.state.context.sync.drain()

    app = FastAPI(title="Habit Log API", version="0.1.0", lifespan=lifespan)
    app.state.context = context or build_context(get_settings())

    app.include_router(entries.router)
    app.include_router(categories.router)
    app.include_router(settings.router)
    app.include_router(metrics.router)
    app.include_router(sync.router)
    app.include_router(oauth.router)

    @app.exception_handler(PersistenceError)
    async def _persistence_error_handler(request: Request, exc: PersistenceError):
        return JSONResponse(status_code=500, content={"detail": "Local data could not be saved"})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logging.getLogger("habitlog").exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app
