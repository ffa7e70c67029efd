from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections import deque
from datetime import datetime, timezone

from shared.model import iso_utc

logger = logging.getLogger(__name__)


def _now() -> str:
    return iso_utc(datetime.now(timezone.utc)) or ""


def rebuilt_event(version: int, duration_ms: float, timestamp: str | None = None) -> dict:
    return {"type": "rebuilt", "version": version, "timestamp": timestamp or _now(), "durationMs": round(duration_ms, 3)}


def build_failed_event(error: str, timestamp: str | None = None) -> dict:
    return {"type": "buildFailed", "error": error, "timestamp": timestamp or _now()}


def file_changed_event(event: str, path: str, timestamp: str | None = None) -> dict:
    return {"type": "fileChanged", "event": event, "path": path, "timestamp": timestamp or _now()}


class Subscription:
    def __init__(self, sub_id: int, capacity: int):
        self.id = sub_id
        self.capacity = capacity
        self.closed = False
        self._events: deque[dict] = deque()
        self._cond = threading.Condition()

    def offer(self, event: dict) -> bool:
        with self._cond:
            if self.closed or len(self._events) >= self.capacity:
                return False
            self._events.append(event)
            self._cond.notify()
            return True

    def get(self, timeout: float | None = None) -> dict | None:
        with self._cond:
            self._cond.wait_for(lambda: self._events or self.closed, timeout)
            if self._events:
                return self._events.popleft()
            return None

    async def next_event(self, timeout: float = 1.0) -> dict | None:
        return await asyncio.to_thread(self.get, timeout)

    def close(self) -> None:
        with self._cond:
            self.closed = True
            self._events.clear()
            self._cond.notify_all()


class ChangeBroadcaster:
    """Best-effort fan-out of build events.

    Every subscriber has a bounded inbox. ``publish`` never blocks: a subscriber whose
    inbox is full is closed and removed, and the remaining subscribers still receive the
    event.
    """

    def __init__(self, capacity: int = 64):
        self.capacity = capacity
        self._subs: dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def subscribe(self) -> Subscription:
        sub = Subscription(next(self._ids), self.capacity)
        with self._lock:
            self._subs[sub.id] = sub
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subs.pop(sub.id, None)
        sub.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: dict) -> int:
        with self._lock:
            targets = list(self._subs.values())
        delivered = 0
        for sub in targets:
            try:
                ok = sub.offer(event)
            except Exception:
                logger.exception("subscriber %s failed; dropping it", sub.id)
                ok = False
            if ok:
                delivered += 1
                continue
            if not sub.closed:
                logger.warning("subscriber %s is not keeping up; dropping it", sub.id)
            self.unsubscribe(sub)
        return delivered

    def close_all(self) -> None:
        with self._lock:
            targets = list(self._subs.values())
            self._subs.clear()
        for sub in targets:
            sub.close()
