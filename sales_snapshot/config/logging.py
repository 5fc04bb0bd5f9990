"""
Logging for the snapshot batch.

Every stage logs through structlog into the stdlib root logger. A snapshot
run binds its run id into the context so brand worker, data quality and
state transition events of one run can be picked out of a shared log.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from sales_snapshot.config.settings import get_settings


def bind_run_context(**context) -> None:
    """Replace the bound context with the given run fields"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Route structlog and stdlib records to stdout.

    Args:
        log_level: Override of MONITORING log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override of MONITORING log format, ``json`` or ``console``
    """
    monitoring = get_settings().monitoring
    level = (log_level or monitoring.log_level).upper()
    fmt = log_format or monitoring.log_format

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Japanese store and product names stay readable in json lines
    if fmt == "json":
        renderer = JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))

    structlog.get_logger(__name__).debug("Logging configured", level=level, format=fmt)
