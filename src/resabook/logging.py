"""structlog setup for the booker.

Console output while developing, one JSON object per line when run from the
scheduler. Modules log through get_logger(); the run id and the current
attempt number live in contextvars (bind_run_context) so every event of a
booking run carries them without loggers being passed around.
"""

import logging
import sys

import structlog


def _renderer(json_output: bool) -> list:
    if json_output:
        # Tracebacks become a string field instead of breaking the JSON line
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog once per process.

    Args:
        json_output: JSON lines for the scheduler, console format otherwise.
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *_renderer(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Playwright and asyncio log through stdlib; send them to the same stream
    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(sys.stdout)]
    root.setLevel(numeric_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger named after the calling module."""
    return structlog.get_logger(name)


def bind_run_context(**values) -> None:
    """Tag every later event of this run with the given key/values.

    Binding a key again (e.g. attempt=2) replaces the previous value.
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()
