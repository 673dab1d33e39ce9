"""
pawprint.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn pawprint.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from pawprint.api.deps import get_config, get_engine  # noqa: E402
from pawprint.api.rate_limit import configure_rate_limiter  # noqa: E402
from pawprint.api.routes.admin import router as admin_router  # noqa: E402
from pawprint.api.routes.points import router as points_router  # noqa: E402
from pawprint.api.routes.shop import router as shop_router  # noqa: E402

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
    """Startup/shutdown lifecycle — warm the DB engine, build the limiter."""
    cfg = get_config()
    engine = get_engine()
    configure_rate_limiter(cfg)
    logger.info(
        "Pawprint API started for %s — engine ready (%s)",
        cfg.community_name, engine.url.database,
    )
    yield
    logger.info("Pawprint API shutting down")


app = FastAPI(
    title="Pawprint Points API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Store failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Mount routers
app.include_router(points_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(shop_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
