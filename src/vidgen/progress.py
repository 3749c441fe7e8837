"""Progress reporting shared by every pipeline stage.

Callers hand in a plain ``Callable[[str], None]``; stages talk to a
:class:`ProgressReporter`, which forwards the human-readable message and keeps
a structured :class:`ProgressEvent` record that tests (or richer UIs) can read.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update."""

    stage: str
    fraction: float
    message: str


class ProgressReporter:
    """Delivers ordered progress updates for one pipeline call.

    Fractions within a stage never go backwards, and nothing is delivered
    once :meth:`complete` or :meth:`fail` has been called.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._closed = False
        self._stage: Optional[str] = None
        self._fraction = 0.0
        self.events: list[ProgressEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def update(self, stage: str, fraction: float, message: str) -> None:
        """Report ``message`` for ``stage`` at ``fraction`` (0.0-1.0)."""
        if self._closed:
            logger.debug(f"Dropping progress after close: {message}")
            return

        fraction = max(0.0, min(1.0, fraction))
        if stage == self._stage:
            fraction = max(fraction, self._fraction)
        self._stage = stage
        self._fraction = fraction

        self._emit(ProgressEvent(stage=stage, fraction=fraction, message=message))

    def complete(self, stage: str, message: str) -> None:
        """Report final completion and close the reporter."""
        if self._closed:
            return
        self._emit(ProgressEvent(stage=stage, fraction=1.0, message=message))
        self._closed = True

    def fail(self, message: str) -> None:
        """Record a failure and close the reporter.

        The failure is kept in :attr:`events` but not sent to the callback;
        the caller gets the exception itself.
        """
        if self._closed:
            return
        self.events.append(ProgressEvent(stage="failed", fraction=self._fraction, message=message))
        self._closed = True

    def _emit(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if self._callback is not None:
            self._callback(event.message)


def as_reporter(progress: "Optional[ProgressCallback | ProgressReporter]") -> ProgressReporter:
    """Wrap a bare callback (or None) into a reporter; pass reporters through."""
    if isinstance(progress, ProgressReporter):
        return progress
    return ProgressReporter(progress)


def percent(done: int, total: int) -> int:
    """Whole-number percentage used in status strings."""
    if total <= 0:
        return 100
    return round(done / total * 100)
