"""Progress reporting: an explicit observer interface for pipeline events."""

import threading
from collections import deque
from typing import Callable

from loguru import logger

from study_construct.models.events import EventKind, ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]

DEFAULT_HISTORY_SIZE = 500

_LOG_LEVELS = {
    EventKind.ERROR: "WARNING",
    EventKind.START: "INFO",
    EventKind.DONE: "INFO",
    EventKind.MEMORY: "INFO",
}


class ProgressReporter:
    """
    Fan progress events out to subscribers.

    Emission is fire-and-forget: a failing subscriber is logged and skipped,
    never raised into the pipeline. Generation branches emit from worker
    threads; the lock only guards the subscriber list and the history, and
    callbacks run outside it, so a subscriber may emit again.

    Args:
        callbacks: Subscribers registered up front
        history_size: Number of recent events kept in ``events``
    """

    def __init__(
        self, *callbacks: ProgressCallback, history_size: int = DEFAULT_HISTORY_SIZE
    ) -> None:
        self._callbacks: list[ProgressCallback] = list(callbacks)
        self._lock = threading.Lock()
        self._history: deque[ProgressEvent] = deque(maxlen=history_size)

    @property
    def events(self) -> list[ProgressEvent]:
        """The most recent events, oldest first."""
        with self._lock:
            return list(self._history)

    def clear(self) -> None:
        """Forget the recorded events."""
        with self._lock:
            self._history.clear()

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """
        Register a callback for every future event.

        Returns:
            A function that removes the subscription again
        """
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, source: str, kind: EventKind, message: str) -> ProgressEvent:
        """Build an event, log it and hand it to every subscriber."""
        event = ProgressEvent(source=source, kind=kind, message=message)
        logger.log(_LOG_LEVELS.get(kind, "DEBUG"), str(event))

        with self._lock:
            self._history.append(event)
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.opt(exception=True).warning(
                    f"Progress subscriber {callback!r} failed on {event.kind.value}"
                )
        return event
