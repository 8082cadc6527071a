#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
LoreVault — FastAPI application factory
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lorevault.core.config import get_settings
from lorevault.core.database import create_all_tables, init_db
from lorevault.routes import pages, render, templates

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    init_db()
    await create_all_tables()   # safe: CREATE TABLE IF NOT EXISTS
    log.info("LoreVault ready")
    yield


# -----------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()

    if settings.debug:
        logging.getLogger("lorevault").setLevel(logging.DEBUG)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="A campaign wiki whose pages keep secrets from the characters reading them.",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # ── CORS ──────────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routers ───────────────────────────────────────────────────────

    prefix = "/api/v1"

    app.include_router(pages.router,     prefix=prefix)
    app.include_router(render.router,    prefix=prefix)
    app.include_router(templates.router, prefix=prefix)

    # ── Global exception handlers ─────────────────────────────────────────

    @app.exception_handler(500)
    async def server_error(request: Request, exc):
        log.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Health check ──────────────────────────────────────────────────────

    @app.get("/api/health", tags=["system"])
    async def health():
        return {"status": "ok", "version": settings.app_version, "app": settings.app_name}

    return app


# -----------------------------------------------------------------------------

app = create_app()


# -----------------------------------------------------------------------------
