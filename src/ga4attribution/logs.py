"""structlog setup shared by library callers and scripts."""

from __future__ import annotations

import logging

import structlog

__all__ = ["configure_logging"]


def configure_logging(debug: bool = False) -> None:
    """Install the package's structlog processors.

    Debug mode renders human readable console lines at DEBUG level; otherwise
    events are emitted as JSON at INFO level and above.
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
    )
