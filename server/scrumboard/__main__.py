"""
Run the scrumboard server under uvicorn.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from scrumboard.config import get_settings

logger = logging.getLogger(__name__)

# Handlers are stateless, so in-flight requests are not drained on SIGTERM/SIGINT.
SHUTDOWN_GRACE_SECONDS = 1


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Scrumboard API and SPA server")
    parser.add_argument(
        "--host",
        type=str,
        default=settings.host,
        help="Address to bind",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=settings.port,
        help="Port to listen on (defaults to $PORT or 3000)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    logger.info("Scrumboard server running on port %d", args.port)
    logger.info("Frontend: http://localhost:%d", args.port)
    logger.info("API: http://localhost:%d%s", args.port, settings.api_prefix)

    uvicorn.run(
        "scrumboard.app:app",
        host=args.host,
        port=args.port,
        timeout_graceful_shutdown=SHUTDOWN_GRACE_SECONDS,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
