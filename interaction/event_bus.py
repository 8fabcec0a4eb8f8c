"""Thread-safe event bus between the pipeline and output devices."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import threading
import time
from typing import Deque, Iterable

from core.logging import logger


_PRIORITIES = {"high": 2, "normal": 1, "low": 0}


@dataclass(frozen=True)
class Event:
    """Output event for a display or speech consumer."""

    kind: str
    content: str
    priority: str = "normal"
    metadata: dict[str, object] = field(default_factory=dict)
    dedupe_key: str | None = None
    ttl_s: float | None = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: float | None = None) -> bool:
        if self.ttl_s is None:
            return False
        if now is None:
            now = time.time()
        return now - self.created_at > self.ttl_s


class EventBus:
    """Bounded queue that hands the highest-priority pending event out first."""

    def __init__(self, maxlen: int = 200) -> None:
        self._maxlen = maxlen
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._queue: Deque[Event] = deque()

    def publish(self, event: Event, *, coalesce: bool = False) -> None:
        with self._cond:
            if coalesce and event.dedupe_key:
                self._remove_matching(event.dedupe_key)
            if len(self._queue) >= self._maxlen:
                dropped = self._queue.popleft()
                logger.warning("Event bus full; dropping oldest %s event.", dropped.kind)
            self._queue.append(event)
            self._cond.notify()

    def get_next(self, timeout: float | None = None) -> Event | None:
        with self._cond:
            self._discard_expired()
            if not self._queue:
                self._cond.wait(timeout=timeout)
                self._discard_expired()
            if not self._queue:
                return None
            return self._pop_highest_priority()

    def drain(self) -> Iterable[Event]:
        with self._cond:
            self._discard_expired()
            events = list(self._queue)
            self._queue.clear()
            return events

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def _discard_expired(self) -> None:
        now = time.time()
        if any(event.is_expired(now) for event in self._queue):
            self._queue = deque(event for event in self._queue if not event.is_expired(now))

    def _remove_matching(self, dedupe_key: str) -> None:
        for index, event in enumerate(self._queue):
            if event.dedupe_key == dedupe_key:
                del self._queue[index]
                return

    def _pop_highest_priority(self) -> Event:
        best_index = 0
        best_score = -1
        for index, event in enumerate(self._queue):
            score = _PRIORITIES.get(event.priority, 1)
            if score > best_score:
                best_score = score
                best_index = index
        event = self._queue[best_index]
        del self._queue[best_index]
        return event
