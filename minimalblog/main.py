"""
Minimal Blog

Small FastAPI site serving blog posts from a realtime database, with a local
fallback store when the database cannot be reached.
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from minimalblog.config import get_settings
from minimalblog.dependencies import create_repository
from minimalblog.middleware import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    configure_logging,
)
from minimalblog.routers import blogs, env, pages
from minimalblog.services.workflow import AdminSessions

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: bind the repository to a backend, then release it."""
    configure_logging(settings.log_level)
    repository = create_repository(settings)
    await repository.initialize()
    app.state.repository = repository
    app.state.admin_sessions = AdminSessions(settings.secret_code)
    logger.info("Serving blogs from %s storage", repository.backend)
    yield
    await repository.close()


app = FastAPI(
    title="Minimal Blog",
    description="Minimal blog publishing site",
    version="0.1.0",
    lifespan=lifespan,
)

# Security headers and request IDs (wrapped by CORS below)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Routers
app.include_router(blogs.router, prefix="/api")
app.include_router(env.router)
app.include_router(pages.router)


@app.get("/api/health")
async def health_check(request: Request) -> JSONResponse:
    """Report which backend the repository is bound to."""
    repository = getattr(request.app.state, "repository", None)
    backend = repository.backend if repository is not None else "uninitialized"
    return JSONResponse(
        content={
            "status": "ok" if repository is not None else "starting",
            "service": "minimalblog",
            "version": "0.1.0",
            "backend": backend,
        }
    )


# Registered last so it only sees paths no router claimed
@app.api_route(
    "/api/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def api_not_found(path: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "API route not found."})
