"""Structured logging for statement parsing.

Parser modules log through ``structlog.get_logger(__name__)`` with the
file name and format bound as keys:

    logger.info("statement_parse_started", file_name="jan.csv", format="csv")

Records are routed through stdlib logging to stderr, keeping stdout free
for the CLI report. pdfminer (under pdfplumber) and msoffcrypto log every
object they touch at DEBUG, so they are held at WARNING unless a stricter
level is requested.
"""

import logging
import sys
from typing import IO, Optional

import structlog

NOISY_LIBRARY_LOGGERS = ("pdfminer", "msoffcrypto", "openpyxl")


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    stream: Optional[IO[str]] = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR; unknown names fall back to INFO.
        json_output: one JSON object per line when True, colorized console
                     lines otherwise.
        stream: destination for log lines, stderr by default.
    """
    level = _resolve_level(log_level)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
