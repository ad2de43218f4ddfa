"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from okrflow.config import get_settings
from okrflow.dependencies import get_db_client
from okrflow.errors import register_error_handlers
from okrflow.routes import router
from okrflow.scheduler import ensure_background_scheduler, shutdown_background_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_background_scheduler(get_db_client())
    try:
        yield
    finally:
        shutdown_background_scheduler()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="OKRFlow API", version="0.1.0", lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/healthz", include_in_schema=False)
    def healthz():
        return {"ok": True}

    return app


app = create_app()
