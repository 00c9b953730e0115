"""structlog configuration shared by the API, the CLI and stdlib loggers.

Library loggers (uvicorn, SQLAlchemy, httpx, redis) are routed through the
same processor chain as ``structlog.get_logger()`` so every line has one
shape: JSON in production, coloured console output in development.
"""

import logging
import sys
from collections.abc import Iterable

import structlog

# httpx logs each request URL at INFO; provider URLs carry API keys
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    json_output: bool = True,
    log_level: str = "INFO",
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_output: Render JSON lines (with structured tracebacks) instead of
            the console renderer.
        log_level: Root log level name.
        quiet_loggers: Stdlib loggers capped at WARNING regardless of level.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level.upper())

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
