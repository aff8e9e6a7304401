"""Run the Andrate service with ``python -m andrate``."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger("andrate")


def main() -> None:
    """Serve ``app.main:app`` on the configured host and port."""

    logging.basicConfig(level=logging.INFO)
    if not settings.has_tmdb_credentials:
        logger.warning(
            "Neither TMDB_BEARER nor TMDB_API_KEY is set; only anime results will load"
        )
    logger.info(
        "Starting %s on %s:%s (%s)",
        settings.app_name,
        settings.server_host,
        settings.server_port,
        settings.environment,
    )
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
