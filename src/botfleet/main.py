"""Application entrypoint."""

from __future__ import annotations

import uvicorn

from botfleet.api.app import create_app
from botfleet.config import Environment, get_settings
from botfleet.infrastructure.observability.logging import setup_logging


app = create_app()


def main() -> None:
    """Run the application."""
    settings = get_settings()
    setup_logging(
        settings.observability.log_level,
        json_logs=settings.environment != Environment.DEVELOPMENT,
    )

    uvicorn.run(
        "botfleet.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.debug,
        log_level=settings.observability.log_level.lower(),
    )


if __name__ == "__main__":
    main()
