"""Daemon entry point.

Runs the HTTP API and, through its lifespan, the scheduled message
dispatch loop in a single asyncio process.

Run with: automagic  (or python -m automagic.daemon)
"""

import logging

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from automagic.config import settings  # noqa: E402
from automagic.utils.logging import configure_logging  # noqa: E402

logger = logging.getLogger(__name__)


def main() -> None:
    """Entry point with graceful shutdown handling."""
    configure_logging(settings.log_level.upper(), json_output=settings.log_json)

    from automagic.interfaces.api.main import app

    logger.info("Starting automagic on %s:%d", settings.api_host, settings.api_port)
    try:
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_config=None,
        )
    except KeyboardInterrupt:
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
