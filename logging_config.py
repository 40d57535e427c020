"""
Logging setup for the OKR tracker.
All modules log through structlog with snake_case event names and keyword context.
"""
import logging
import os
import sys
from typing import Any, Optional

import structlog


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or '').strip().lower() in ('1', 'true', 'yes', 'on')


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog on top of the stdlib logging root.

    :param level: logging level name; defaults to OKR_LOG_LEVEL or INFO.
    :param json_logs: render JSON lines instead of console output; defaults to OKR_LOG_JSON.
    """
    level_name = (level or os.getenv('OKR_LOG_LEVEL') or 'INFO').upper()
    if json_logs is None:
        json_logs = _env_flag('OKR_LOG_JSON')

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(
        format='%(message)s',
        stream=sys.stderr,
        level=getattr(logging, level_name, logging.INFO),
    )


def get_logger(name: Optional[str] = None) -> Any:
    """Return a structlog logger, e.g. ``get_logger(__name__).info("goal_created", goal_id=...)``."""
    return structlog.get_logger(name)


__all__ = ['setup_logging', 'get_logger']
