from __future__ import annotations

import re
from dataclasses import replace

from shared.extractors.patterns import heading, normalize_heading, split_description, split_lines, strip_emphasis
from shared.model import Agent, agent_id_for

# | **Name** | Role | Model | Responsibility |
TABLE_ROW_RE = re.compile(r"^\s*\|\s*\*\*([^*|]+?)\*\*[^|]*\|\s*([^|]*?)\s*\|\s*([^|]*?)\s*\|\s*([^|]*?)\s*(?:\|.*)?$")
# - **Name:** Role (model) — responsibility
LIST_AGENT_RE = re.compile(r"^\s*[-*+]\s+\*\*\s*([^*:]+?)\s*(?::\s*\*\*|\*\*\s*:)\s*(.*?)\s*$")
# - **Responsibility** (continuation of the current agent)
LIST_ITEM_RE = re.compile(r"^\s*[-*+]\s+\*\*([^*]+?)\*\*")
MODEL_HINT_RE = re.compile(r"\(([^)]+)\)")
HEADER_NAMES = {"agent", "name"}
ROSTER_HEADINGS = ("agent", "team", "roster", "crew")


def _cell(text: str) -> str:
    return strip_emphasis(text)


def _is_roster_heading(title: str) -> bool:
    normalized = normalize_heading(title)
    return any(word in normalized for word in ROSTER_HEADINGS)


def _list_item_text(m: re.Match) -> str:
    label = strip_emphasis(m.group(1))
    rest = strip_emphasis(m.group(2))
    return f"{label}: {rest}" if rest else label


def _extend(agents: dict[str, Agent], agent_id: str, item: str) -> None:
    if item:
        prev = agents[agent_id]
        agents[agent_id] = replace(prev, responsibilities=(*prev.responsibilities, item))


def _from_table(m: re.Match) -> Agent | None:
    name = m.group(1).strip()
    agent_id = agent_id_for(name)
    if not agent_id or agent_id in HEADER_NAMES:
        return None
    responsibility = _cell(m.group(4))
    return Agent(
        id=agent_id,
        name=name,
        role=_cell(m.group(2)),
        model=_cell(m.group(3)) or "unknown",
        responsibilities=(responsibility,) if responsibility else (),
    )


def _from_list(m: re.Match) -> Agent | None:
    name = m.group(1).strip()
    agent_id = agent_id_for(name)
    if not agent_id:
        return None
    head, responsibility = split_description(strip_emphasis(m.group(2)))
    model = "unknown"
    hint = MODEL_HINT_RE.search(head)
    if hint:
        model = hint.group(1).strip()
        head = (head[: hint.start()] + head[hint.end() :]).strip()
    return Agent(
        id=agent_id,
        name=name,
        role=head,
        model=model,
        responsibilities=(responsibility,) if responsibility else (),
    )


def extract_roster(text: str | None) -> list[Agent]:
    """Parse an agent roster document.

    Table rows with a bold name cell are the primary layout. ``- **Name:** description``
    items declare an agent only under a roster heading ("Agents", "Team", ...) or when they
    carry a ``(model)`` hint. Bold bullets that follow a table row, or a heading naming a
    known agent, extend that agent's responsibilities instead. A repeated name replaces the
    earlier record.
    """
    agents: dict[str, Agent] = {}
    current: str | None = None
    in_roster_section = False

    for line in split_lines(text):
        m = TABLE_ROW_RE.match(line)
        if m:
            agent = _from_table(m)
            if agent is not None:
                agents[agent.id] = agent
                current = agent.id
            continue

        h = heading(line)
        if h is not None:
            candidate = agent_id_for(h[1])
            current = candidate if candidate in agents else None
            in_roster_section = current is None and _is_roster_heading(h[1])
            continue

        m = LIST_AGENT_RE.match(line)
        if m:
            if current is not None:
                _extend(agents, current, _list_item_text(m))
            elif in_roster_section or MODEL_HINT_RE.search(m.group(2)):
                agent = _from_list(m)
                if agent is not None:
                    agents[agent.id] = agent
            continue

        m = LIST_ITEM_RE.match(line)
        if m and current is not None:
            _extend(agents, current, m.group(1).strip())
    return list(agents.values())
