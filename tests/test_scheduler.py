import threading
import time

import pytest

from shared.watcher import PipelineState, RebuildScheduler, WorkspaceWatcher
from shared.workspace import WorkspaceReader


class Recorder:
    def __init__(self, duration=0.0):
        self.duration = duration
        self.starts = []
        self.active = 0
        self.max_active = 0
        self.lock = threading.Lock()

    def __call__(self):
        with self.lock:
            self.starts.append(time.monotonic())
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.duration)
        with self.lock:
            self.active -= 1
        return len(self.starts)


def test_burst_of_events_builds_once():
    rec = Recorder()
    sched = RebuildScheduler(rec, quiet_period=0.3)
    for _ in range(3):
        sched.notify()
        last_event = time.monotonic()
        time.sleep(0.1)
    time.sleep(0.6)
    sched.close()
    assert len(rec.starts) == 1
    assert rec.starts[0] - last_event >= 0.25


def test_spaced_events_build_each_time():
    rec = Recorder()
    sched = RebuildScheduler(rec, quiet_period=0.05)
    for _ in range(3):
        sched.notify()
        time.sleep(0.25)
    sched.close()
    assert len(rec.starts) == 3


def test_change_during_build_triggers_one_follow_up():
    rec = Recorder(duration=0.3)
    sched = RebuildScheduler(rec, quiet_period=0.05)
    sched.notify()
    time.sleep(0.15)
    assert sched.state is PipelineState.BUILDING
    for _ in range(5):
        sched.notify()
    time.sleep(0.9)
    sched.close()
    assert len(rec.starts) == 2
    assert rec.max_active == 1
    assert sched.state is PipelineState.IDLE


def test_rebuild_now_runs_inline_and_cancels_pending():
    rec = Recorder()
    sched = RebuildScheduler(rec, quiet_period=0.2)
    sched.notify()
    assert sched.state is PipelineState.PENDING
    assert sched.rebuild_now() == 1
    time.sleep(0.35)
    sched.close()
    assert len(rec.starts) == 1
    assert sched.completed_builds == 1


def test_rebuild_now_during_build_waits_for_follow_up():
    rec = Recorder(duration=0.2)
    sched = RebuildScheduler(rec, quiet_period=0.05)
    sched.notify()
    time.sleep(0.1)
    result = sched.rebuild_now(timeout=2)
    sched.close()
    assert result == 2
    assert rec.max_active == 1


def test_failing_build_returns_to_idle():
    def boom():
        raise RuntimeError("bad markdown day")

    sched = RebuildScheduler(boom, quiet_period=0.05)
    assert sched.rebuild_now() is None
    assert sched.state is PipelineState.IDLE
    sched.close()


def test_closed_scheduler_rejects_rebuild():
    sched = RebuildScheduler(lambda: None, quiet_period=0.05)
    sched.close()
    sched.notify()
    with pytest.raises(RuntimeError):
        sched.rebuild_now()


def test_watcher_filters_events(tmp_path):
    changes = []
    watcher = WorkspaceWatcher(WorkspaceReader(tmp_path), lambda kind, rel: changes.append((kind, rel)))
    watcher.handle("modified", str(tmp_path / "AGENTS.md"), False)
    watcher.handle("modified", str(tmp_path / "other.md"), False)
    watcher.handle("modified", str(tmp_path / "agents" / "q"), True)
    watcher.handle("created", str(tmp_path / "agents" / "q"), True)
    watcher.handle("moved", str(tmp_path / ".tmp123"), False, dest_path=str(tmp_path / "projects.md"))
    watcher.handle("created", (tmp_path / "agents" / "q" / "SOUL.md").as_posix().encode(), False)
    assert changes == [
        ("modified", "AGENTS.md"),
        ("created", "agents/q"),
        ("moved", "projects.md"),
        ("created", "agents/q/SOUL.md"),
    ]


def test_watcher_start_failure_is_reported(tmp_path):
    class BrokenObserver:
        def schedule(self, *args, **kwargs):
            raise OSError("inotify limit reached")

    watcher = WorkspaceWatcher(WorkspaceReader(tmp_path), lambda kind, rel: None, observer_factory=BrokenObserver)
    assert watcher.start() is False
    assert watcher.running is False


def test_watcher_sees_real_file_changes(tmp_path):
    changes = []
    done = threading.Event()

    def on_change(kind, rel):
        changes.append(rel)
        done.set()

    watcher = WorkspaceWatcher(WorkspaceReader(tmp_path), on_change)
    assert watcher.start()
    try:
        time.sleep(0.2)
        (tmp_path / "active-tasks.md").write_text("- [ ] new\n", encoding="utf-8")
        assert done.wait(5)
    finally:
        watcher.stop()
    assert "active-tasks.md" in changes
