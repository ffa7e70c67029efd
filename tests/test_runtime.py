import json
import time

from shared.builder import DataBuilder
from shared.config import MissionControlConfig
from shared.model import RepositoryAnalytics
from shared.runtime import MissionControlRuntime
from shared.snapshot import write_snapshot
from shared.workspace import WorkspaceReader


class ExplodingBuilder:
    def build(self):
        raise ValueError("unreadable roster")


def _runtime(root, **kwargs):
    cfg = MissionControlConfig(workspace=root, debounce_ms=50)
    builder = kwargs.pop("builder", None) or DataBuilder(
        WorkspaceReader(root), analytics=lambda r: RepositoryAnalytics.failed(str(r), "Not a git repository")
    )
    return MissionControlRuntime(cfg, builder=builder, **kwargs)


def test_run_build_publishes_persists_and_broadcasts(workspace):
    rt = _runtime(workspace)
    sub = rt.broadcaster.subscribe()
    outcome = rt.run_build()
    assert outcome.ok
    assert outcome.version == 1
    assert rt.cache.version == 1

    event = sub.get(timeout=1)
    assert event["type"] == "rebuilt"
    assert event["version"] == 1

    on_disk = json.loads(rt.config.snapshot_path.read_text(encoding="utf-8"))
    assert on_disk["agents"]["quinn"]["role"] == "Code Architect"
    rt.stop()


def test_failed_build_keeps_previous_document(workspace):
    rt = _runtime(workspace)
    assert rt.run_build().ok
    before = rt.cache.get_current()

    rt.builder = ExplodingBuilder()
    sub = rt.broadcaster.subscribe()
    outcome = rt.run_build()
    assert not outcome.ok
    assert "unreadable roster" in outcome.error
    assert rt.cache.get_current() is before

    event = sub.get(timeout=1)
    assert event["type"] == "buildFailed"
    assert event["error"] == "unreadable roster"
    rt.stop()


def test_cold_start_serves_snapshot_until_first_build(tmp_path):
    cfg_root = tmp_path / "ws"
    cfg_root.mkdir()
    rt = _runtime(cfg_root, builder=ExplodingBuilder())
    write_snapshot(rt.config.snapshot_path, {"metadata": {"generatedAt": "2026-01-01T00:00:00Z"}})
    outcome = rt.start(watch=False)
    assert not outcome.ok
    assert rt.cache.payload() == {"metadata": {"generatedAt": "2026-01-01T00:00:00Z"}}
    rt.stop()


def test_file_change_is_broadcast_and_debounced(workspace):
    rt = _runtime(workspace)
    rt.start(watch=False)
    sub = rt.broadcaster.subscribe()
    rt._on_file_change("modified", "active-tasks.md")
    rt._on_file_change("modified", "active-tasks.md")

    first = sub.get(timeout=1)
    assert first["type"] == "fileChanged"
    assert (first["event"], first["path"]) == ("modified", "active-tasks.md")
    assert rt.scheduler.wait_idle(timeout=2)
    time.sleep(0.05)
    types = []
    while (event := sub.get(timeout=0.5)) is not None:
        types.append(event["type"])
        if event["type"] == "rebuilt":
            break
    assert types.count("rebuilt") == 1
    assert rt.cache.version == 2
    rt.stop()


def test_health_report(workspace):
    rt = _runtime(workspace)
    rt.start(watch=False)
    health = rt.health()
    assert health["status"] == "ok"
    assert health["version"] == 1
    assert health["lastModified"].endswith("Z")
    assert health["state"] == "idle"
    assert health["subscribers"] == 0
    assert health["watching"] is False
    rt.stop()
