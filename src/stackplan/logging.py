"""
Logging setup for the stackplan CLI.

Library modules only call ``structlog.get_logger()``; the command line
configures rendering once at startup. Context bound with
``manifest_context`` is merged into every event logged while loading,
validating or planning that manifest.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from stackplan.config import get_settings


def configure_logging(level: int | str | None = None, renderer: str | None = None) -> None:
    """Configure structlog/standard logging bridge from arguments or settings."""
    settings = get_settings()
    level = level if level is not None else settings.log_level.upper()
    renderer = renderer or settings.log_renderer

    final_processor: Any
    if renderer == "console":
        final_processor = structlog.dev.ConsoleRenderer()
    else:
        final_processor = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            final_processor,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


@contextmanager
def manifest_context(manifest_file: str, command: str) -> Iterator[None]:
    """Tag log events emitted inside the block with the manifest and command."""
    with structlog.contextvars.bound_contextvars(manifest=str(manifest_file), command=command):
        yield
