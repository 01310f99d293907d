"""Structured logging configuration."""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structured logging with structlog.

    JSON lines in deployed environments, the coloured console renderer for
    local development.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ],
            ),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route third-party stdlib loggers (uvicorn, azure) to stdout as well
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)


def bind_instance_context(instance_id: str, backend_kind: str) -> None:
    """Attach the instance being provisioned to every log line of this task."""
    structlog.contextvars.bind_contextvars(instance_id=instance_id, backend_kind=backend_kind)


def clear_instance_context() -> None:
    structlog.contextvars.unbind_contextvars("instance_id", "backend_kind")
