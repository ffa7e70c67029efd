from __future__ import annotations

import itertools
import logging
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from shared.workspace import WorkspaceReader

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    BUILDING = "building"


class RebuildScheduler:
    """Debounces change notifications into single builds.

    Idle -> Pending on the first notification; every further notification re-arms the
    quiet-period timer. When the timer fires the build runs on the timer thread.
    Notifications that arrive while building mark the pipeline dirty, which arms one more
    debounce cycle once the build finishes. At most one build runs at a time.
    """

    def __init__(self, build: Callable[[], Any], quiet_period: float):
        self._build = build
        self.quiet_period = quiet_period
        self._cond = threading.Condition()
        self._state = PipelineState.IDLE
        self._timer: threading.Timer | None = None
        self._tokens = itertools.count(1)
        self._armed_token = 0
        self._dirty = False
        self._closed = False
        self._completed = 0
        self._last_result: Any = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def completed_builds(self) -> int:
        return self._completed

    def _arm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        token = next(self._tokens)
        self._armed_token = token
        timer = threading.Timer(self.quiet_period, self._fire, args=(token,))
        timer.daemon = True
        self._timer = timer
        self._state = PipelineState.PENDING
        timer.start()

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._armed_token = 0

    def notify(self) -> None:
        with self._cond:
            if self._closed:
                return
            if self._state is PipelineState.BUILDING:
                self._dirty = True
                return
            self._arm()

    def _fire(self, token: int) -> None:
        with self._cond:
            if self._closed or token != self._armed_token or self._state is not PipelineState.PENDING:
                return
            self._timer = None
            self._armed_token = 0
            self._state = PipelineState.BUILDING
        self._run()

    def _run(self) -> Any:
        result = None
        try:
            result = self._build()
        except Exception:
            logger.exception("rebuild raised")
        finally:
            with self._cond:
                self._completed += 1
                self._last_result = result
                if self._dirty and not self._closed:
                    self._dirty = False
                    self._arm()
                else:
                    self._dirty = False
                    self._state = PipelineState.IDLE
                self._cond.notify_all()
        return result

    def rebuild_now(self, timeout: float | None = None) -> Any:
        """Run a build in the calling thread, or wait for the follow-up build if one is running."""
        with self._cond:
            if self._closed:
                raise RuntimeError("scheduler is closed")
            if self._state is PipelineState.BUILDING:
                self._dirty = True
                target = self._completed + 2
                self._cond.wait_for(lambda: self._completed >= target or self._closed, timeout)
                return self._last_result
            self._disarm()
            self._state = PipelineState.BUILDING
        return self._run()

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._state is PipelineState.IDLE or self._closed, timeout)

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._disarm()
            self._cond.notify_all()


class _WorkspaceEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: WorkspaceWatcher):
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        self.watcher.handle("created", event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self.watcher.handle("modified", event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.watcher.handle("deleted", event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self.watcher.handle("moved", event.src_path, event.is_directory, dest_path=getattr(event, "dest_path", None))


class WorkspaceWatcher:
    def __init__(self, reader: WorkspaceReader, on_change: Callable[[str, str], None], *, observer_factory: Callable[[], Any] = Observer):
        self.reader = reader
        self.on_change = on_change
        self.observer_factory = observer_factory
        self._observer: Any = None

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> bool:
        try:
            observer = self.observer_factory()
            observer.schedule(_WorkspaceEventHandler(self), str(self.reader.root), recursive=True)
            observer.start()
        except Exception:
            logger.exception("could not start file watcher for %s", self.reader.root)
            self._observer = None
            return False
        self._observer = observer
        logger.info("watching %s", self.reader.root)
        return True

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout=2)
        except Exception:
            logger.exception("error stopping file watcher")
            return
        logger.info("stopped watching %s", self.reader.root)

    def ensure_running(self) -> bool:
        if self.running:
            return True
        logger.warning("file watcher for %s is not running; restarting", self.reader.root)
        self.stop()
        return self.start()

    def _relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.reader.root.resolve()).as_posix()
        except (OSError, ValueError):
            return str(path)

    def handle(self, kind: str, src_path: Any, is_directory: bool, *, dest_path: Any = None) -> None:
        try:
            if is_directory and kind == "modified":
                return
            candidates = [Path(os.fsdecode(p)) for p in (dest_path, src_path) if p]
            for path in candidates:
                if self.reader.is_source_path(path):
                    self.on_change(kind, self._relative(path))
                    return
        except Exception:
            logger.exception("error handling %s event for %s", kind, src_path)
