from __future__ import annotations

from dataclasses import dataclass, field

from shared.extractors.patterns import LINK_RE, RULE_RE, heading, key_value, split_lines, strip_emphasis
from shared.model import Project, project_id_for


@dataclass
class _Draft:
    name: str
    status: str = "Unknown"
    url: str | None = None
    description: str | None = None
    tech_stack: list[str] = field(default_factory=list)
    details: list[str] = field(default_factory=list)

    def freeze(self, project_id: str) -> Project:
        return Project(
            id=project_id,
            name=self.name,
            status=self.status,
            url=self.url,
            description=self.description,
            tech_stack=tuple(self.tech_stack),
            details=tuple(self.details),
        )


def _url(value: str) -> str:
    link = LINK_RE.search(value)
    if link:
        return link.group(2)
    return value.strip("<> ")


def extract_projects(text: str | None) -> list[Project]:
    drafts: dict[str, _Draft] = {}
    current: _Draft | None = None

    for line in split_lines(text):
        h = heading(line)
        if h is not None:
            level, title = h
            if level == 2:
                name = strip_emphasis(title)
                project_id = project_id_for(name)
                current = _Draft(name=name) if project_id else None
                if current is not None:
                    drafts[project_id] = current
            elif level == 1:
                current = None
            continue
        if current is None or not line.strip() or RULE_RE.match(line):
            continue

        kv = key_value(line)
        if kv is not None:
            key, value = kv
            if key == "status":
                current.status = strip_emphasis(value) or current.status
                continue
            if key in ("url", "link"):
                current.url = _url(value) or None
                continue
            if key in ("tech stack", "tech", "stack"):
                current.tech_stack = [s.strip() for s in strip_emphasis(value).split(",") if s.strip()]
                continue
            if key == "purpose":
                current.description = strip_emphasis(value) or None
                continue
        current.details.append(line.strip())

    return [draft.freeze(project_id) for project_id, draft in drafts.items()]
