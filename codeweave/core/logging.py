"""structlog setup for applications embedding the orchestrator.

The library itself only calls ``structlog.get_logger()``; applications call
``configure_logging()`` once at startup.
"""

import logging

import structlog

from .config import get_settings


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog processors and the minimum log level.

    Args:
        level: Log level name, defaults to ``Settings.log_level``
        json_logs: Render JSON lines instead of console output,
            defaults to ``Settings.log_json``
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    use_json = settings.log_json if json_logs is None else json_logs

    level_int = logging.getLevelName(level_name)
    if not isinstance(level_int, int):
        level_int = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_int),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
