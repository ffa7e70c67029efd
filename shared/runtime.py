from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from shared.broadcaster import ChangeBroadcaster, build_failed_event, file_changed_event, rebuilt_event
from shared.builder import DataBuilder
from shared.cache import DocumentCache
from shared.config import MissionControlConfig
from shared.model import AggregateDocument, iso_utc
from shared.snapshot import read_snapshot, write_snapshot
from shared.watcher import RebuildScheduler, WorkspaceWatcher
from shared.workspace import WorkspaceReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOutcome:
    ok: bool
    version: int | None = None
    error: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "version": self.version, "durationMs": round(self.duration_ms, 3)}
        return {"ok": False, "error": self.error}


class MissionControlRuntime:
    """Owns the pipeline for one workspace: reader, builder, cache, broadcaster, scheduler and watcher.

    Construct once per process, ``start()`` it, hand it to the delivery layer, and ``stop()``
    it on shutdown.
    """

    def __init__(
        self,
        config: MissionControlConfig,
        *,
        builder: DataBuilder | None = None,
        observer_factory: Callable[[], Any] | None = None,
    ):
        self.config = config
        self.reader = WorkspaceReader(config.workspace)
        self.builder = builder or DataBuilder(
            self.reader,
            commit_limit=config.commit_limit,
            git_timeout=config.git_timeout_s,
            recent_commit_count=config.recent_commit_count,
        )
        self.cache = DocumentCache()
        self.broadcaster = ChangeBroadcaster(config.subscriber_capacity)
        self.scheduler = RebuildScheduler(self.run_build, config.quiet_period_s)
        watcher_kwargs = {"observer_factory": observer_factory} if observer_factory else {}
        self.watcher = WorkspaceWatcher(self.reader, self._on_file_change, **watcher_kwargs)
        self.started_at = time.monotonic()

    def run_build(self) -> BuildOutcome:
        logger.info("building data for %s", self.config.workspace)
        try:
            document = self.builder.build()
        except Exception as exc:
            logger.exception("build failed for %s", self.config.workspace)
            self.broadcaster.publish(build_failed_event(str(exc)))
            return BuildOutcome(ok=False, error=str(exc))

        version = self.cache.publish(document)
        duration_ms = document.metadata.build_duration_ms
        self._persist(document)
        self.broadcaster.publish(rebuilt_event(version, duration_ms, iso_utc(document.metadata.generated_at)))
        logger.info(
            "built v%d in %.1fms (%d agents, %d tasks, %d projects)",
            version,
            duration_ms,
            len(document.agents),
            len(document.tasks),
            len(document.projects),
        )
        return BuildOutcome(ok=True, version=version, duration_ms=duration_ms)

    def _persist(self, document: AggregateDocument) -> None:
        try:
            write_snapshot(self.config.snapshot_path, document.to_dict())
        except OSError:
            logger.exception("could not write snapshot %s", self.config.snapshot_path)

    def _on_file_change(self, kind: str, rel_path: str) -> None:
        logger.info("%s: %s", kind, rel_path)
        self.broadcaster.publish(file_changed_event(kind, rel_path))
        self.scheduler.notify()

    def start(self, *, watch: bool = True) -> BuildOutcome:
        self.cache.seed(read_snapshot(self.config.snapshot_path))
        outcome = self.scheduler.rebuild_now()
        if watch:
            self.watcher.start()
        return outcome

    def rebuild_now(self) -> BuildOutcome:
        outcome = self.scheduler.rebuild_now()
        if outcome is None:
            return BuildOutcome(ok=False, error="rebuild did not complete")
        return outcome

    def stop(self) -> None:
        self.watcher.stop()
        self.scheduler.close()
        self.broadcaster.close_all()

    def health(self) -> dict:
        state = self.cache.get_current()
        return {
            "status": "ok",
            "version": state.version,
            "lastModified": iso_utc(state.last_build_time),
            "uptimeSeconds": round(time.monotonic() - self.started_at, 3),
            "subscribers": len(self.broadcaster),
            "state": self.scheduler.state.value,
            "watching": self.watcher.running,
        }
