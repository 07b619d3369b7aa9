"""Dependency helpers for the FastAPI service."""

from __future__ import annotations

import logging
from functools import lru_cache

from .config import Settings


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured log level to the root logger."""

    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["configure_logging", "get_settings"]
