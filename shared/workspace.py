from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from shared.errors import WorkspaceAccessError

logger = logging.getLogger(__name__)

ROSTER_FILE = "AGENTS.md"
TASKS_FILE = "active-tasks.md"
PROJECTS_FILE = "projects.md"
USER_FILE = "USER.md"
TOP_LEVEL_DOCUMENTS = {
    "roster": ROSTER_FILE,
    "tasks": TASKS_FILE,
    "projects": PROJECTS_FILE,
    "user": USER_FILE,
}
AGENTS_DIR = "agents"
PERSONA_CANDIDATES = ("SOUL.md", "agent/SOUL.md", "agents/SOUL.md")


@dataclass(frozen=True)
class SourceDocument:
    name: str
    path: Path
    text: str | None

    @property
    def found(self) -> bool:
        return self.text is not None


@dataclass(frozen=True)
class PersonaSource:
    agent_dir: str
    path: Path
    text: str


@dataclass(frozen=True)
class WorkspaceSources:
    documents: dict[str, SourceDocument]
    personas: list[PersonaSource]

    def text(self, name: str) -> str | None:
        doc = self.documents.get(name)
        return doc.text if doc else None

    @property
    def missing(self) -> list[str]:
        return [name for name, doc in self.documents.items() if not doc.found]


class WorkspaceReader:
    def __init__(self, root: Path):
        self.root = root
        self._cache: dict[Path, tuple[tuple[int, int], str]] = {}

    def check_root(self) -> None:
        if not self.root.exists():
            raise WorkspaceAccessError(f"workspace root does not exist: {self.root}")
        if not self.root.is_dir():
            raise WorkspaceAccessError(f"workspace root is not a directory: {self.root}")
        try:
            with os.scandir(self.root):
                pass
        except OSError as exc:
            raise WorkspaceAccessError(f"workspace root is not readable: {self.root}: {exc}") from exc

    def _read_cached(self, path: Path) -> str | None:
        try:
            st = path.stat()
        except FileNotFoundError:
            self._cache.pop(path, None)
            return None
        except OSError as exc:
            logger.warning("cannot stat %s: %s", path, exc)
            return None
        if not path.is_file():
            return None
        key = (st.st_mtime_ns, st.st_size)
        cached = self._cache.get(path)
        if cached and cached[0] == key:
            return cached[1]
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            self._cache.pop(path, None)
            return None
        except OSError as exc:
            logger.warning("cannot read %s: %s", path, exc)
            return None
        self._cache[path] = (key, content)
        return content

    def read_document(self, name: str) -> SourceDocument:
        path = self.root / TOP_LEVEL_DOCUMENTS[name]
        return SourceDocument(name=name, path=path, text=self._read_cached(path))

    def agent_dirs(self) -> list[Path]:
        agents_root = self.root / AGENTS_DIR
        if not agents_root.is_dir():
            return []
        try:
            entries = sorted(agents_root.iterdir())
        except OSError as exc:
            logger.warning("cannot list %s: %s", agents_root, exc)
            return []
        return [p for p in entries if p.is_dir() and not p.name.startswith(".")]

    def read_personas(self) -> list[PersonaSource]:
        out: list[PersonaSource] = []
        for agent_dir in self.agent_dirs():
            for rel in PERSONA_CANDIDATES:
                path = agent_dir / rel
                content = self._read_cached(path)
                if content:
                    out.append(PersonaSource(agent_dir=agent_dir.name, path=path, text=content))
                    break
        return out

    def read_all(self) -> WorkspaceSources:
        self.check_root()
        documents = {name: self.read_document(name) for name in TOP_LEVEL_DOCUMENTS}
        return WorkspaceSources(documents=documents, personas=self.read_personas())

    def is_source_path(self, path: Path) -> bool:
        try:
            rel = path.resolve().relative_to(self.root.resolve())
        except (OSError, ValueError):
            return False
        parts = rel.parts
        if len(parts) == 1:
            return parts[0] in TOP_LEVEL_DOCUMENTS.values()
        if len(parts) >= 3 and parts[0] == AGENTS_DIR:
            return "/".join(parts[2:]) in PERSONA_CANDIDATES
        # an agent directory itself appearing or disappearing
        return len(parts) == 2 and parts[0] == AGENTS_DIR
