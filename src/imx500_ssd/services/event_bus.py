"""Event bus between the frame processor and the detection sink."""

from __future__ import annotations

import logging
import queue
from typing import Iterator, List, Optional

from .events import StopEvent

logger = logging.getLogger("services.event_bus")


class EventBus:
    """Thread-safe queue of pipeline events.

    A bounded bus never blocks the decode loop: once full, new events are
    dropped and counted in ``dropped``. ``maxsize=0`` makes it unbounded.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self._events: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: object) -> bool:
        try:
            self._events.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning("Event bus full, dropped %s (%d so far)", type(event).__name__, self.dropped)
            return False
        return True

    def get(self, timeout: Optional[float] = None) -> object:
        return self._events.get(timeout=timeout)

    def drain(self) -> List[object]:
        """Return every queued event without waiting."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events

    def listen(self, timeout: Optional[float] = None) -> Iterator[object]:
        """Yield events as they arrive, ending after the first StopEvent.

        ``queue.Empty`` propagates when nothing arrives within ``timeout``.
        """
        while True:
            event = self._events.get(timeout=timeout)
            yield event
            if isinstance(event, StopEvent):
                return

    def stop(self, reason: str | None = None) -> None:
        self.publish(StopEvent(reason=reason))
