import shutil
import subprocess

import pytest

from shared import git_analytics
from shared.git_analytics import collect_repository_analytics, contribution_graph, parse_commit_log, parse_numstat, summarize_authors

LOG = (
    "abcdef1234567890|Ada|ada@example.com|2026-10-02T10:00:00+02:00|Second | with pipe\n"
    "1234567abcdef000|Bob|bob@example.com|2026-10-01T09:00:00Z|First\n"
    "garbage line\n"
)


def test_parse_commit_log():
    commits = parse_commit_log(LOG)
    assert len(commits) == 2
    first = commits[0]
    assert first.hash == "abcdef1"
    assert first.full_hash == "abcdef1234567890"
    assert first.timestamp == "2026-10-02T08:00:00Z"
    assert first.message == "Second | with pipe"


def test_parse_numstat_skips_binary():
    assert parse_numstat("3\t1\ta.py\n-\t-\tlogo.png\n\n10\t0\tb.py\n") == (13, 1)


def test_author_summary_and_graph():
    commits = parse_commit_log(LOG + "9999999aaaaaaa|Ada|ada@example.com|2026-09-30T12:00:00Z|Zeroth\n")
    stats = summarize_authors(commits)
    assert stats["Ada"].commits == 2
    assert stats["Ada"].first_commit == "2026-09-30T12:00:00Z"
    assert stats["Ada"].last_commit == "2026-10-02T08:00:00Z"
    assert contribution_graph(commits) == {"2026-09-30": 1, "2026-10-01": 1, "2026-10-02": 1}


def test_not_a_repository(tmp_path):
    analytics = collect_repository_analytics(tmp_path)
    assert analytics.error == "Not a git repository"
    assert analytics.commits == ()


def test_timeout_is_reported(tmp_path, monkeypatch):
    (tmp_path / ".git").mkdir()

    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

    monkeypatch.setattr(git_analytics.subprocess, "run", fake_run)
    analytics = collect_repository_analytics(tmp_path, timeout=0.5)
    assert analytics.error is not None
    assert "timed out" in analytics.error


def test_git_missing_is_reported(tmp_path, monkeypatch):
    (tmp_path / ".git").mkdir()

    def fake_run(cmd, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr(git_analytics.subprocess, "run", fake_run)
    assert collect_repository_analytics(tmp_path).error


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_real_repository(tmp_path):
    def git(*args):
        subprocess.run(["git", "-C", str(tmp_path), *args], check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.name", "Ada")
    git("config", "user.email", "ada@example.com")
    git("config", "commit.gpgsign", "false")
    (tmp_path / "a.txt").write_text("one\ntwo\n", encoding="utf-8")
    git("add", "a.txt")
    git("commit", "-q", "-m", "first")
    (tmp_path / "a.txt").write_text("one\n", encoding="utf-8")
    git("commit", "-q", "-am", "second")

    analytics = collect_repository_analytics(tmp_path, recent_count=1)
    assert analytics.error is None
    assert [c.message for c in analytics.commits] == ["second", "first"]
    assert analytics.additions == 2
    assert analytics.deletions == 1
    data = analytics.to_dict()
    assert data["totalCommits"] == 2
    assert len(data["recentCommits"]) == 1
    assert data["lastCommit"]["message"] == "second"
    assert data["byAuthor"]["Ada"]["commits"] == 2
