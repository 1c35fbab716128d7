"""Entrypoint for ``matchday-api``: serves the HTTP API under uvicorn."""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging("api")
    # Hosting platforms inject PORT; it wins over MD_API_PORT.
    port = int(os.environ.get("PORT", settings.api_port))
    logger.info(
        "api_starting",
        host=settings.api_host,
        port=port,
        workers=settings.api_workers,
        cache_backend=settings.cache_backend.value,
        credentials=settings.key_count,
    )

    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=port,
        workers=settings.api_workers,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
