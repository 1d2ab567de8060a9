"""
Bundle lifecycle events.

Bundles never call into rendering code. They publish ``LifecycleEvent``
values to listeners registered with ``subscribe``; the CLI reporter is one
such listener.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class BundleEvent(StrEnum):
    """Lifecycle event types emitted by bundles."""

    BUILD_START = "build_start"
    BUILD_END = "build_end"
    BUNDLE_END = "bundle_end"
    WRITE_START = "write_start"
    WRITE_PROGRESS = "write_progress"
    WRITE_END = "write_end"
    ERROR = "error"
    WARN = "warn"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class LifecycleEvent:
    """
    One lifecycle notification.

    Attributes:
        type: Event type
        bundle: Bundle that emitted the event
        input: Input file (BUILD_START / BUILD_END)
        code: Inline source, when the bundle has no input file
        child: Child bundle the event originates from, if forwarded
        file: Written file (WRITE_PROGRESS)
        error: Failure (ERROR)
        message: Warning text (WARN)
        report: Analysis payload (ANALYSIS)
    """

    type: BundleEvent
    bundle: Any
    input: Path | None = None
    code: str | None = None
    child: Any = None
    file: Path | None = None
    error: BaseException | None = None
    message: str | None = None
    report: Any = None


Listener = Callable[[LifecycleEvent], None]


class EventSource:
    """Listener registry mixed into bundles."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: LifecycleEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed on %s", event.type)
