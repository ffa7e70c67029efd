from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from shared.model import AuthorStats, CommitRecord, RepositoryAnalytics, frozen_map, iso_utc

logger = logging.getLogger(__name__)

LOG_FORMAT = "%H|%an|%ae|%aI|%s"


def _git(root: Path, args: list[str], timeout: float) -> str:
    proc = subprocess.run(  # noqa: S603
        ["git", "-C", str(root), *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout,
        check=True,
    )
    return proc.stdout


def _normalize_date(raw: str) -> str:
    try:
        return iso_utc(datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))) or raw.strip()
    except ValueError:
        return raw.strip()


def parse_commit_log(output: str) -> list[CommitRecord]:
    commits: list[CommitRecord] = []
    for line in output.splitlines():
        parts = line.split("|", 4)
        if len(parts) < 5 or not parts[0].strip():
            continue
        full_hash, author, email, date, message = parts
        commits.append(
            CommitRecord(
                hash=full_hash.strip()[:7],
                full_hash=full_hash.strip(),
                author=author.strip(),
                email=email.strip(),
                timestamp=_normalize_date(date),
                message=message.strip(),
            )
        )
    return commits


def parse_numstat(output: str) -> tuple[int, int]:
    additions = deletions = 0
    for line in output.splitlines():
        fields = line.split("\t") if "\t" in line else line.split()
        if len(fields) < 2:
            continue
        # binary files report "-" for both counts
        if fields[0].isdigit():
            additions += int(fields[0])
        if fields[1].isdigit():
            deletions += int(fields[1])
    return additions, deletions


def summarize_authors(commits: list[CommitRecord]) -> dict[str, AuthorStats]:
    stats: dict[str, AuthorStats] = {}
    for commit in commits:
        prev = stats.get(commit.author)
        if prev is None:
            stats[commit.author] = AuthorStats(email=commit.email, commits=1, first_commit=commit.timestamp, last_commit=commit.timestamp)
            continue
        stats[commit.author] = AuthorStats(
            email=prev.email,
            commits=prev.commits + 1,
            first_commit=min(prev.first_commit, commit.timestamp),
            last_commit=max(prev.last_commit, commit.timestamp),
        )
    return stats


def contribution_graph(commits: list[CommitRecord]) -> dict[str, int]:
    graph: dict[str, int] = {}
    for commit in commits:
        day = commit.timestamp.split("T", 1)[0]
        graph[day] = graph.get(day, 0) + 1
    return dict(sorted(graph.items()))


def collect_repository_analytics(root: Path, *, limit: int = 50, timeout: float = 10.0, recent_count: int = 10) -> RepositoryAnalytics:
    repository = str(root)
    if not (root / ".git").exists():
        return RepositoryAnalytics.failed(repository, "Not a git repository")
    try:
        log_output = _git(root, ["log", f"--format={LOG_FORMAT}", "--all", f"-n{int(limit)}"], timeout)
    except subprocess.TimeoutExpired:
        logger.warning("git log timed out after %.1fs in %s", timeout, root)
        return RepositoryAnalytics.failed(repository, f"git log timed out after {timeout:g}s")
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        logger.warning("git log failed in %s: %s", root, detail)
        return RepositoryAnalytics.failed(repository, f"git log failed: {detail}")
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("git unavailable for %s: %s", root, exc)
        return RepositoryAnalytics.failed(repository, str(exc))

    commits = parse_commit_log(log_output)

    additions = deletions = 0
    try:
        additions, deletions = parse_numstat(_git(root, ["log", "--numstat", "--format=", "--all"], timeout))
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("could not collect line stats for %s: %s", root, exc)

    return RepositoryAnalytics(
        repository=repository,
        commits=tuple(commits),
        by_author=frozen_map(summarize_authors(commits)),
        contribution_graph=frozen_map(contribution_graph(commits)),
        additions=additions,
        deletions=deletions,
        recent_count=recent_count,
    )
