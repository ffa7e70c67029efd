from __future__ import annotations

import re

from shared.extractors.patterns import heading, split_description, split_lines, strip_emphasis, strip_leading_separator
from shared.model import UNCATEGORIZED, Task

CHECKBOX_RE = re.compile(r"^\s*[-*+]\s*\[([ xX])\]\s*(.*?)\s*$")
PRIORITY_RE = re.compile(r"\[\s*(P[0-3]|HIGH|MEDIUM|MED|LOW|CRITICAL|URGENT)\s*\]", re.IGNORECASE)
ASSIGNEE_RE = re.compile(r"(?<![\w@])@([A-Za-z0-9][\w.-]*)")
BOLD_TITLE_RE = re.compile(r"^\*\*(.+?)\*\*\s*(.*)$")
LAST_UPDATED_RE = re.compile(r"last\s+updated:?\**\s*:?\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE)


def parse_task_line(line: str, section: str = UNCATEGORIZED) -> Task | None:
    m = CHECKBOX_RE.match(line)
    if not m:
        return None
    body = m.group(2)

    priority = None
    pm = PRIORITY_RE.search(body)
    if pm:
        priority = pm.group(1).upper()
        body = PRIORITY_RE.sub(" ", body)

    assignee = None
    am = ASSIGNEE_RE.search(body)
    if am:
        assignee = am.group(1).rstrip(".-")
        body = ASSIGNEE_RE.sub(" ", body)

    body = re.sub(r"\s+", " ", body).strip()
    bold = BOLD_TITLE_RE.match(body)
    if bold:
        title, detail = bold.group(1), strip_leading_separator(bold.group(2))
    else:
        title, detail = split_description(body)

    title = strip_emphasis(title)
    if not title:
        return None
    return Task(
        title=title,
        completed=m.group(1).lower() == "x",
        section=section,
        detail=strip_emphasis(detail) or None,
        priority=priority,
        assignee=assignee or None,
    )


def extract_tasks(text: str | None) -> list[Task]:
    tasks: list[Task] = []
    section = UNCATEGORIZED
    for line in split_lines(text):
        h = heading(line)
        if h is not None:
            if h[0] == 2 and h[1]:
                section = h[1]
            continue
        task = parse_task_line(line, section)
        if task is not None:
            tasks.append(task)
    return tasks


def extract_last_updated(text: str | None) -> str | None:
    m = LAST_UPDATED_RE.search(text or "")
    return m.group(1) if m else None
