"""structlog configuration.

Modules grab a logger with ``log = get_logger(__name__)`` and emit dotted
event names with key/value context, e.g. ``log.info("ssh.exec_start", host=h)``.
"""

from __future__ import annotations

import logging
import sys

import structlog

from remoteops.config import Settings, settings

_configured = False


def setup_logging(cfg: Settings | None = None, *, force: bool = False) -> None:
    """Configure stdlib logging and structlog once per process."""
    global _configured
    if _configured and not force:
        return
    _cfg = cfg or settings
    level = getattr(logging, _cfg.log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if _cfg.log_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
