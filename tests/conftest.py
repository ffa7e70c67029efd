import sys
from pathlib import Path

import pytest

# Add the repository root to sys.path so we can import 'services' and 'shared'
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

ROSTER = """# Agents

| Agent | Role | Model | Focus |
|-------|------|-------|-------|
| **Quinn** | Code Architect | model-x | reviews code |
| **Dex** | Builder | model-y | ships features |
"""

TASKS = """# Active Tasks

Last updated: 2026-10-01

## In Progress

- [ ] **Fix bug** [P1] @dex
- [ ] Write docs — user guide

## Recently Completed

- [x] **Ship v1** — done early
"""

PROJECTS = """# Projects

## Mission Control

**Status:** Active
**URL:** [repo](https://example.com/mc)
**Tech Stack:** Python, watchdog
**Purpose:** Dashboard data layer

Notes about the dashboard.

## Side Quest

- **Status:** Paused
"""

SOUL = """# Quinn

**Model:** model-x

## Specialties

- Architecture
- Code review

## When to use

- Large refactors
"""


def write_workspace(root: Path, **docs: str) -> Path:
    names = {"roster": "AGENTS.md", "tasks": "active-tasks.md", "projects": "projects.md", "user": "USER.md"}
    root.mkdir(parents=True, exist_ok=True)
    for key, text in docs.items():
        (root / names[key]).write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def workspace(tmp_path):
    root = write_workspace(tmp_path / "ws", roster=ROSTER, tasks=TASKS, projects=PROJECTS, user="Prefers short updates.\n")
    soul = root / "agents" / "quinn" / "SOUL.md"
    soul.parent.mkdir(parents=True)
    soul.write_text(SOUL, encoding="utf-8")
    return root
