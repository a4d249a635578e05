"""Logging configuration.

The library only emits through ``structlog.get_logger(__name__)``; the
application decides where the output goes by calling configure_logging()
once at startup.

Environment variables:
- DOC_MAPPER_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- DOC_MAPPER_LOG_FORMAT: json | console (default: console)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    fmt: Literal["json", "console"] | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and the stdlib root handler.

    Subsequent calls are no-ops unless ``force`` is set.
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("DOC_MAPPER_LOG_LEVEL", "WARNING")).upper()
    log_format = (fmt or os.environ.get("DOC_MAPPER_LOG_FORMAT", "console")).lower()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level),
        force=True,
    )
    logging.getLogger("doc_mapper").setLevel(getattr(logging, log_level))

    _configured = True


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured
