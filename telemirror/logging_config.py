"""telemirror logging configuration.

telemirror logs through `structlog` with keyword context, e.g.
`logger.info("telegram message sent", chat_id=chat_id, parts=3)`.

Output goes to stderr: the hook entrypoints print their result summary on
stdout, and Claude Code shows hook stdout to the user.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import structlog

_LEVEL_ENV = "TELEMIRROR_LOG_LEVEL"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure telemirror logging.

    Args:
        level: Optional override for `TELEMIRROR_LOG_LEVEL`.
    """
    if level:
        os.environ[_LEVEL_ENV] = level

    level_name = os.getenv(_LEVEL_ENV, "INFO").upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
