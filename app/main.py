"""FastAPI application entrypoint for the fleet jobs service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .db import create_schema
from .dependencies import configure_logging, get_settings

logger = logging.getLogger(__name__)

app = FastAPI(title="Fleet Jobs API", version="0.1.0")
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def load_settings_cache() -> None:
    """Prime configuration cache and logging during startup."""

    settings = get_settings()
    configure_logging(settings)
    if settings.auto_create_schema:
        create_schema()
        logger.info("Job tables created or already present")
    logger.info("Fleet jobs API started in %s", settings.app_env)


@app.get("/health/live", status_code=status.HTTP_200_OK, include_in_schema=False)
def health_live() -> dict[str, str]:
    """Return service liveness."""

    return {"status": "live"}


@app.get("/health/ready", status_code=status.HTTP_200_OK, include_in_schema=False)
def health_ready() -> dict[str, str]:
    """Return readiness information, including environment."""

    settings = get_settings()
    return {"status": "ready", "environment": settings.app_env}


@app.get("/health/startup", status_code=status.HTTP_200_OK, include_in_schema=False)
def health_startup() -> dict[str, str]:
    """Return startup probe information."""

    return {"status": "started"}


__all__ = ["app"]
