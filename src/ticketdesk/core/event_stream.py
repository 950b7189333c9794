from __future__ import annotations

import logging
from collections import deque
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Mapping


APP_STARTED = "app.started"
TICKET_CREATED = "tickets.created"
TICKET_SAVED = "tickets.saved"
TICKET_MERGED = "tickets.merged"
TICKET_PERSIST_FAILED = "tickets.persist_failed"
TICKET_IMPORT_SKIPPED = "tickets.import_skipped"
TICKET_ACTIVE_MISSING = "tickets.active_missing"
TICKET_SNAPSHOT_INVALID = "tickets.snapshot_invalid"

_DEFAULT_HISTORY_LIMIT = 500
_logger = logging.getLogger("ticketdesk.events")


@dataclass(frozen=True, slots=True)
class StreamEvent:
    sequence: int
    timestamp: str
    event_type: str
    source: str
    payload: dict[str, Any]


class StateStreamer:
    """Journal of ticket events.

    The window subscribes to surface storage problems in its status bar and
    tests read the history back with :meth:`events_of`. Only the newest
    ``history_limit`` events are kept.
    """

    def __init__(self, *, history_limit: int = _DEFAULT_HISTORY_LIMIT) -> None:
        self._sequence = 0
        self._events: deque[StreamEvent] = deque(maxlen=max(1, int(history_limit)))
        self._subscribers: list[Callable[[StreamEvent], None]] = []
        self._lock = RLock()

    def record(
        self,
        event_type: str,
        *,
        source: str,
        payload: Mapping[str, Any] | None = None,
    ) -> StreamEvent:
        with self._lock:
            self._sequence += 1
            event = StreamEvent(
                sequence=self._sequence,
                timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
                event_type=event_type,
                source=source,
                payload=deepcopy(dict(payload or {})),
            )
            self._events.append(event)
            subscribers = tuple(self._subscribers)

        _logger.debug("%s from %s: %s", event_type, source, event.payload)
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                _logger.exception("Event subscriber failed on %s", event_type)
        return event

    def tail(self, *, limit: int = 100) -> tuple[StreamEvent, ...]:
        with self._lock:
            events = tuple(self._events)
        return events[-max(1, int(limit)):]

    def events_of(self, event_type: str) -> tuple[StreamEvent, ...]:
        with self._lock:
            return tuple(event for event in self._events if event.event_type == event_type)

    def subscribe(self, callback: Callable[[StreamEvent], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe
