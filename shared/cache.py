from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from shared.model import AggregateDocument


@dataclass(frozen=True, slots=True)
class CacheSnapshot:
    version: int
    document: AggregateDocument | None
    last_build_time: datetime | None = None


class DocumentCache:
    """Holds the latest published document.

    Readers get one immutable CacheSnapshot per call, so version and document always
    come from the same publish. ``publish`` is the only mutation and swaps the
    reference under a lock shared with no reader.
    """

    def __init__(self, fallback: dict | None = None):
        self._state = CacheSnapshot(version=0, document=None)
        self._publish_lock = threading.Lock()
        self._fallback = fallback
        self._rendered: tuple[CacheSnapshot, dict] | None = None

    def get_current(self) -> CacheSnapshot:
        return self._state

    @property
    def version(self) -> int:
        return self._state.version

    def publish(self, document: AggregateDocument) -> int:
        with self._publish_lock:
            state = CacheSnapshot(
                version=self._state.version + 1,
                document=document,
                last_build_time=datetime.now(timezone.utc),
            )
            self._state = state
            return state.version

    def seed(self, fallback: dict | None) -> None:
        self._fallback = fallback

    def payload(self) -> dict | None:
        """JSON for the current document, or the cold-start snapshot before the first build."""
        state = self._state
        if state.document is not None:
            rendered = self._rendered
            if rendered is not None and rendered[0] is state:
                return rendered[1]
            data = state.document.to_dict()
            self._rendered = (state, data)
            return data
        return self._fallback
