"""Trace hooks for the pyramid core.

Components receive an observer at construction instead of writing to a
process-wide callback, so callers (and tests) decide where trace events go.
"""

from __future__ import annotations

from typing import Any, Protocol

from dzslide.utils.logging import get_logger


class PyramidObserver(Protocol):
    """Receives named trace events with structured fields."""

    def on_event(self, event: str, **fields: Any) -> None:
        """Handle one trace event."""
        ...


class LoggingObserver:
    """Forwards trace events to a structlog logger at debug level.

    Failure events (names ending in ``_failed``) are logged as warnings.
    """

    __slots__ = ("_logger",)

    def __init__(self, name: str = "dzslide.core") -> None:
        self._logger = get_logger(name)

    def on_event(self, event: str, **fields: Any) -> None:
        if event.endswith("_failed"):
            self._logger.warning(event, **fields)
        else:
            self._logger.debug(event, **fields)


class NullObserver:
    """Discards every event."""

    __slots__ = ()

    def on_event(self, event: str, **fields: Any) -> None:
        del event, fields
