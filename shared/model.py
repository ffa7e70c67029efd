from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

SCHEMA_VERSION = "1.0.0"
UNCATEGORIZED = "uncategorized"


def agent_id_for(name: str) -> str:
    return "".join(ch for ch in name.casefold() if ch.isalnum())


def project_id_for(name: str) -> str:
    out: list[str] = []
    for ch in name.casefold():
        if ch.isalnum():
            out.append(ch)
        elif out and out[-1] != "-":
            out.append("-")
    return "".join(out).strip("-")


def frozen_map(data: Mapping | None = None) -> Mapping:
    return MappingProxyType(dict(data or {}))


def iso_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class PersonaDocument:
    personality: str = ""
    specialties: tuple[str, ...] = ()
    when_to_use: tuple[str, ...] = ()
    core_truths: tuple[str, ...] = ()
    model: str | None = None
    base: str | None = None
    purpose: str | None = None
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "personality": self.personality,
            "specialties": list(self.specialties),
            "whenToUse": list(self.when_to_use),
            "coreTruths": list(self.core_truths),
            "model": self.model,
            "base": self.base,
            "purpose": self.purpose,
            "path": self.path,
        }


@dataclass(frozen=True, slots=True)
class Agent:
    id: str
    name: str
    role: str
    model: str
    responsibilities: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    persona: PersonaDocument | None = None

    def with_persona(self, persona: PersonaDocument) -> Agent:
        skills = tuple(dict.fromkeys((*self.skills, *persona.specialties)))
        return replace(self, persona=persona, skills=skills)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "model": self.model,
            "responsibilities": list(self.responsibilities),
            "skills": list(self.skills),
            "persona": self.persona.to_dict() if self.persona else None,
        }


@dataclass(frozen=True, slots=True)
class Task:
    title: str
    completed: bool
    section: str
    detail: str | None = None
    priority: str | None = None
    assignee: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "completed": self.completed,
            "section": self.section,
            "detail": self.detail,
            "priority": self.priority,
            "assignee": self.assignee,
        }


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    status: str = "Unknown"
    url: str | None = None
    description: str | None = None
    tech_stack: tuple[str, ...] = ()
    details: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "url": self.url,
            "description": self.description,
            "techStack": list(self.tech_stack),
            "details": list(self.details),
        }


@dataclass(frozen=True, slots=True)
class CommitRecord:
    hash: str
    full_hash: str
    author: str
    email: str
    timestamp: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "fullHash": self.full_hash,
            "author": self.author,
            "email": self.email,
            "date": self.timestamp,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class AuthorStats:
    email: str
    commits: int
    first_commit: str
    last_commit: str

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.email, "commits": self.commits, "firstCommit": self.first_commit, "lastCommit": self.last_commit}


@dataclass(frozen=True, slots=True)
class RepositoryAnalytics:
    repository: str
    commits: tuple[CommitRecord, ...] = ()
    by_author: Mapping[str, AuthorStats] = field(default_factory=frozen_map)
    contribution_graph: Mapping[str, int] = field(default_factory=frozen_map)
    additions: int = 0
    deletions: int = 0
    recent_count: int = 10
    error: str | None = None

    @classmethod
    def failed(cls, repository: str, error: str) -> RepositoryAnalytics:
        return cls(repository=repository, error=error)

    @property
    def last_commit(self) -> CommitRecord | None:
        return self.commits[0] if self.commits else None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"repository": self.repository, "error": self.error}
        last = self.last_commit
        return {
            "repository": self.repository,
            "lastCommit": last.to_dict() if last else None,
            "totalCommits": len(self.commits),
            "byAuthor": {name: stats.to_dict() for name, stats in self.by_author.items()},
            "recentCommits": [c.to_dict() for c in self.commits[: self.recent_count]],
            "commits": [c.to_dict() for c in self.commits],
            "contributionGraph": dict(self.contribution_graph),
            "linesChanged": {"additions": self.additions, "deletions": self.deletions},
            "lastActivityTimestamp": last.timestamp if last else None,
        }


@dataclass(frozen=True, slots=True)
class BuildMetadata:
    generated_at: datetime
    build_duration_ms: float
    workspace: str
    last_commit: str | None = None
    last_commit_date: str | None = None
    tasks_last_updated: str | None = None
    missing_sources: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": iso_utc(self.generated_at),
            "buildDurationMs": round(self.build_duration_ms, 3),
            "schemaVersion": self.schema_version,
            "workspace": self.workspace,
            "lastGitCommit": self.last_commit or "unknown",
            "lastGitCommitDate": self.last_commit_date or "unknown",
            "tasksLastUpdated": self.tasks_last_updated,
            "missingSources": list(self.missing_sources),
            "notes": list(self.notes),
        }


@dataclass(frozen=True, slots=True)
class AggregateDocument:
    metadata: BuildMetadata
    agents: tuple[Agent, ...] = ()
    tasks: tuple[Task, ...] = ()
    projects: tuple[Project, ...] = ()
    repository_analytics: RepositoryAnalytics | None = None
    user_preferences: str | None = None

    def agent(self, agent_id: str) -> Agent | None:
        return next((a for a in self.agents if a.id == agent_id), None)

    def project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "agents": {a.id: a.to_dict() for a in self.agents},
            "tasks": [t.to_dict() for t in self.tasks],
            "projects": {p.id: p.to_dict() for p in self.projects},
            "repositoryAnalytics": self.repository_analytics.to_dict() if self.repository_analytics else None,
            "userPreferences": self.user_preferences,
        }
