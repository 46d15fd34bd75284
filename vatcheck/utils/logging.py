"""structlog setup for vatcheck.

Log lines always go to a stream separate from command output (stderr by
default), because the CLI prints verification results, often as JSON, on
stdout.  Console rendering is used interactively and JSON rendering in
production; both share one processor chain, which is also installed on the
standard-library root logger so httpx and aiosqlite records look the same.

httpx logs every request at INFO.  Those library loggers are held at
WARNING unless vatcheck itself runs at DEBUG, so a batch ``from-file`` run
does not print one line per registry call.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from vatcheck.config.settings import Settings

_LIBRARY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _select_renderer(use_json: bool, stream: TextIO) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer(sort_keys=True)
    isatty = getattr(stream, "isatty", None)
    return structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty()))


def _route_stdlib_logging(
    level: int,
    stream: TextIO,
    processors: list[structlog.types.Processor],
    renderer: structlog.types.Processor,
) -> None:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *processors,
                renderer,
            ],
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Render JSON lines instead of console output.
        stream: Destination for log lines; defaults to ``sys.stderr``.

    Returns:
        A configured structlog BoundLogger.
    """
    out = stream or sys.stderr
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors = _shared_processors()
    renderer = _select_renderer(json_output, out)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )
    _route_stdlib_logging(level, out, processors, renderer)

    return structlog.get_logger()


def configure_from_settings(app_settings: Settings, *, quiet: bool = False) -> structlog.BoundLogger:
    """Configure logging from :class:`~vatcheck.config.settings.Settings`.

    ``app_env == "production"`` selects JSON rendering.  *quiet* raises the
    threshold to WARNING, which the CLI uses when it prints JSON results.
    """
    return configure_logging(
        log_level="WARNING" if quiet else app_settings.log_level,
        json_output=app_settings.app_env == "production",
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*, configuring defaults first if needed."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
