"""Cooperative cancellation for long frame loops."""

import threading

from .errors import PipelineCancelled


class CancellationToken:
    """Flag a running pipeline call checks between frames.

    ``cancel()`` may be called from any thread; the pipeline raises
    :class:`PipelineCancelled` at its next check and cleans up its scratch.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            suffix = f" during {where}" if where else ""
            raise PipelineCancelled(f"Cancelled{suffix}")
