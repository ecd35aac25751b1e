"""structlog setup for dzslide.

Pyramid events reach structlog through ``LoggingObserver``. Records are
tagged with the slide being served and, for tile commands, the tile
address, so one slide's output can be filtered out of an interleaved log.
Logs go to stderr; stdout is reserved for CLI output such as ``--json``
summaries and .dzi descriptors.
"""

import logging
import sys
from collections.abc import MutableMapping
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import Processor

from dzslide.config import settings

_slide: ContextVar[str | None] = ContextVar("slide", default=None)
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_correlation_context(
    slide: str | None = None,
    request_id: str | None = None,
) -> None:
    """Tag later log records with a slide and tile request.

    Arguments left as None keep their current value.

    Args:
        slide: Path or identifier of the slide being served
        request_id: Tile address in DZI form (e.g. "12/3_4.jpeg")
    """
    if slide is not None:
        _slide.set(slide)
    if request_id is not None:
        _request_id.set(request_id)


def clear_correlation_context() -> None:
    """Drop the slide and tile request tags."""
    _slide.set(None)
    _request_id.set(None)


def _add_correlation_ids(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Copy the slide and tile request tags into the event."""
    _ = logger, method_name
    slide = _slide.get()
    if slide is not None:
        event_dict["slide"] = slide
    request_id = _request_id.get()
    if request_id is not None:
        event_dict["request_id"] = request_id
    return event_dict


def _processors(log_format: str) -> list[Processor]:
    """Build the processor chain for "json" or "console" output."""
    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_correlation_ids,
    ]
    if log_format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def configure_logging(
    level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Route structlog through stdlib logging on stderr.

    Args:
        level: Log level name. Defaults to settings.LOG_LEVEL.
        log_format: "console" or "json". Defaults to settings.LOG_FORMAT.
    """
    level = level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT

    structlog.configure(
        processors=_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
