"""
kudos.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn kudos.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.staticfiles import StaticFiles

load_dotenv()

from kudos.api.deps import get_config, get_engine  # noqa: E402
from kudos.api.routes.catalog import router as catalog_router  # noqa: E402
from kudos.api.routes.feed import router as feed_router  # noqa: E402
from kudos.api.routes.review import router as review_router  # noqa: E402
from kudos.api.routes.scores import router as scores_router  # noqa: E402
from kudos.api.routes.submissions import router as submissions_router  # noqa: E402
from kudos.api.routes.teams import router as teams_router  # noqa: E402
from kudos.errors import KudosError  # noqa: E402
from kudos.services.upload_service import ensure_upload_dir, upload_root  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    ensure_upload_dir(get_config())

    engine = get_engine()
    logger.info("Kudos API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Kudos API shutting down")


app = FastAPI(
    title="Kudos API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KudosError)
async def kudos_error_handler(request: Request, exc: KudosError) -> JSONResponse:
    """Map the core's error taxonomy onto HTTP status codes."""
    if exc.http_status >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "code": exc.code},
    )


# Mount routers
app.include_router(submissions_router, prefix="/api")
app.include_router(review_router, prefix="/api")
app.include_router(scores_router, prefix="/api")
app.include_router(feed_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")
app.include_router(teams_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Serve uploaded proof media as static files
if upload_root(get_config()).exists():
    app.mount(
        "/api/uploads",
        StaticFiles(directory=str(upload_root(get_config()))),
        name="uploads",
    )
