from __future__ import annotations

import argparse
import sys

import structlog
import uvicorn

from app.config import get_settings
from app.exceptions import ConfigurationError
from app.main import create_app
from app.observability.logging import configure_logging


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Rent-a-Ride backend API server")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    args = parser.parse_args()

    configure_logging(settings.log_level)

    try:
        app = create_app(settings)
    except ConfigurationError as exc:
        structlog.get_logger("startup").error("startup_failed", error=str(exc))
        sys.exit(1)

    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
