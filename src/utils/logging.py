"""Logging setup for SceneCraft.

Module code logs through ``logging.getLogger(__name__)``; structlog renders
every record, adding the id of the background job that emitted it.
"""

import logging
import sys
from contextlib import AbstractContextManager

import structlog

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "botocore", "boto3", "urllib3", "aiosqlite")


def job_log_context(job_id: str) -> AbstractContextManager:
    """Stamp job_id on every record logged inside the block.

    Context variables are copied into tasks at creation, so jobs scheduled from
    inside the block start with the same id until they bind their own.
    """
    return structlog.contextvars.bound_contextvars(job_id=job_id)


def _render_chain(json_output: bool) -> list:
    if json_output:
        # ConsoleRenderer formats tracebacks itself, JSON needs them as strings
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Route all logging through structlog.

    Safe to call more than once; the root handler is replaced each time.

    Args:
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL (INFO if unknown)
        json_output: One JSON object per line instead of console output
    """
    level = log_level.upper() if log_level else "INFO"
    if level not in LEVELS:
        level = "INFO"

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_render_chain(json_output),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
