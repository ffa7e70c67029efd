from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from shared.extractors import extract_last_updated, extract_persona, extract_projects, extract_roster, extract_tasks
from shared.git_analytics import collect_repository_analytics
from shared.model import Agent, AggregateDocument, BuildMetadata, RepositoryAnalytics, agent_id_for
from shared.workspace import TOP_LEVEL_DOCUMENTS, PersonaSource, WorkspaceReader

logger = logging.getLogger(__name__)

AnalyticsFn = Callable[[Path], RepositoryAnalytics]


def match_persona(agents: dict[str, Agent], agent_dir: str) -> str | None:
    key = agent_id_for(agent_dir)
    if not key:
        return None
    if key in agents:
        return key
    for agent_id in agents:
        if key in agent_id or agent_id in key:
            return agent_id
    return None


def merge_personas(roster: list[Agent], personas: list[PersonaSource]) -> list[Agent]:
    agents = {agent.id: agent for agent in roster}
    for source in personas:
        persona = extract_persona(source.text, path=str(source.path))
        agent_id = match_persona(agents, source.agent_dir)
        if agent_id is not None:
            agents[agent_id] = agents[agent_id].with_persona(persona)
            continue
        synthesized_id = agent_id_for(source.agent_dir)
        if not synthesized_id:
            continue
        agents[synthesized_id] = Agent(
            id=synthesized_id,
            name=source.agent_dir[:1].upper() + source.agent_dir[1:],
            role="Subagent",
            model="unknown",
        ).with_persona(persona)
    return list(agents.values())


class DataBuilder:
    """Builds one AggregateDocument from a workspace.

    Holds no shared state beyond the reader's file cache and the last generation
    timestamp, which keeps successive documents strictly ordered in time.
    """

    def __init__(self, reader: WorkspaceReader, *, analytics: AnalyticsFn | None = None, commit_limit: int = 50, git_timeout: float = 10.0, recent_commit_count: int = 10):
        self.reader = reader
        self.analytics = analytics or (
            lambda root: collect_repository_analytics(root, limit=commit_limit, timeout=git_timeout, recent_count=recent_commit_count)
        )
        self._last_generated_at: datetime | None = None

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_generated_at is not None and now <= self._last_generated_at:
            now = self._last_generated_at + timedelta(microseconds=1)
        self._last_generated_at = now
        return now

    def build(self) -> AggregateDocument:
        started = time.perf_counter()
        sources = self.reader.read_all()

        missing = sources.missing
        notes = tuple(f"{TOP_LEVEL_DOCUMENTS[name]} not found; {name} left empty" for name in missing)
        for name in missing:
            if name != "user":
                logger.warning("%s not found in %s", TOP_LEVEL_DOCUMENTS[name], self.reader.root)

        tasks_text = sources.text("tasks")
        agents = merge_personas(extract_roster(sources.text("roster")), sources.personas)
        tasks = extract_tasks(tasks_text)
        projects = extract_projects(sources.text("projects"))
        analytics = self.analytics(self.reader.root)

        last = analytics.last_commit
        metadata = BuildMetadata(
            generated_at=self._next_timestamp(),
            build_duration_ms=(time.perf_counter() - started) * 1000.0,
            workspace=str(self.reader.root),
            last_commit=last.hash if last else None,
            last_commit_date=last.timestamp if last else None,
            tasks_last_updated=extract_last_updated(tasks_text),
            missing_sources=tuple(missing),
            notes=notes,
        )
        return AggregateDocument(
            metadata=metadata,
            agents=tuple(agents),
            tasks=tuple(tasks),
            projects=tuple(projects),
            repository_analytics=analytics,
            user_preferences=sources.text("user"),
        )
