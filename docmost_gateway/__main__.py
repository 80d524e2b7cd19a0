"""Run the gateway: python -m docmost_gateway (or the docmost-gateway script).

Configuration errors exit with status 1 before the listener starts. Logging is
configured from settings by the application lifespan. A failed Docmost login
aborts uvicorn's startup, which also exits non-zero.
SIGINT/SIGTERM trigger uvicorn's graceful shutdown.
"""

from __future__ import annotations

import sys

import structlog
import uvicorn

from docmost_gateway.config.settings import load_settings
from docmost_gateway.gateway.app import create_app
from docmost_gateway.infra.errors import ConfigError
from docmost_gateway.infra.logging import setup_logging

logger = structlog.get_logger()


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging(json_output=False)
        logger.error("startup_config_invalid", error=str(e))
        sys.exit(1)

    uvicorn.run(
        create_app(settings),
        host=settings.gateway.host,
        port=settings.gateway.port,
    )


if __name__ == "__main__":
    main()
