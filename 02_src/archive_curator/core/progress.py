"""Progress channel and cancellation token used by the scheduler."""

import logging
import queue
import threading
from typing import Callable, List, Optional

from ..schemas.common import ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Fan-out of structured progress events to subscribers.

    Subscriber errors are logged and never interrupt the producer.
    """

    def __init__(self) -> None:
        self._subscribers: List[ProgressCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Progress subscriber failed: {e}")


class QueueProgressSink:
    """Queue-backed subscriber for consumers that poll."""

    def __init__(self, channel: Optional[ProgressChannel] = None) -> None:
        self._queue: "queue.Queue[ProgressEvent]" = queue.Queue()
        self._unsubscribe = channel.subscribe(self) if channel is not None else None

    def __call__(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> ProgressEvent:
        return self._queue.get(timeout=timeout)

    def drain(self) -> List[ProgressEvent]:
        """Return every queued event without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class CancellationToken:
    """Cooperative cancellation signal with interruptible waits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to seconds; returns True if cancelled meanwhile."""
        if seconds <= 0:
            return self.cancelled
        return self._event.wait(seconds)
