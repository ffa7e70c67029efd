from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path

from shared.extractors.patterns import heading, key_value, split_lines, strip_emphasis
from shared.extractors.tasks import ASSIGNEE_RE, PRIORITY_RE, parse_task_line
from shared.model import Task, project_id_for
from shared.snapshot import atomic_write_text
from shared.workspace import PROJECTS_FILE, TASKS_FILE

DEFAULT_SECTION = "In Progress"
STATUS_PREFIX_RE = re.compile(r"^(\s*(?:[-*+]\s+)?)")


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8") if path.exists() else ""


def _single_line(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if "\n" in value or "\r" in value:
        raise ValueError(f"{field_name} must be a single line")
    return re.sub(r"\s+", " ", value) or None


def _plain_text(value: str | None, field_name: str) -> None:
    if value and (PRIORITY_RE.search(value) or ASSIGNEE_RE.search(value)):
        raise ValueError(f"{field_name} must not contain @mentions or [priority] tags")


def _section_end(lines: list[str], start: int) -> int:
    """Index just past the last non-blank line of the section whose heading is at ``start``."""
    end = start + 1
    last = start
    while end < len(lines):
        h = heading(lines[end])
        if h is not None and h[0] <= 2:
            break
        if lines[end].strip():
            last = end
        end += 1
    return last + 1


def format_task_line(title: str, *, detail: str | None = None, priority: str | None = None, assignee: str | None = None, completed: bool = False) -> str:
    line = f"- [{'x' if completed else ' '}] **{title}**"
    if priority:
        line += f" [{priority}]"
    if assignee:
        line += f" @{assignee}"
    if detail:
        line += f" — {detail}"
    return line


def add_task(
    root: Path,
    title: str,
    section: str = DEFAULT_SECTION,
    detail: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
) -> Task:
    title = _single_line(strip_emphasis(title or ""), "title") or ""
    if not title:
        raise ValueError("title is required")
    section = _single_line(section, "section") or DEFAULT_SECTION
    detail = _single_line(detail, "detail")
    assignee = (_single_line(assignee, "assignee") or "").lstrip("@") or None
    if assignee and not re.fullmatch(r"[A-Za-z0-9][\w.-]*", assignee):
        raise ValueError(f"invalid assignee: {assignee}")
    priority = _single_line(priority, "priority")
    if priority:
        priority = priority.strip("[]").upper()
        if not PRIORITY_RE.fullmatch(f"[{priority}]"):
            raise ValueError(f"invalid priority: {priority}")

    _plain_text(title, "title")
    _plain_text(detail, "detail")

    line = format_task_line(title, detail=detail, priority=priority, assignee=assignee)
    task = parse_task_line(line, section)
    if task is None or (task.title, task.detail, task.priority, task.assignee) != (title, detail, priority, assignee):
        raise ValueError(f"task line would not read back as written: {line}")

    path = root / TASKS_FILE
    lines = split_lines(_read(path))
    if lines and lines[-1] == "":
        lines.pop()

    target = section.casefold()
    index = next((i for i, ln in enumerate(lines) if (h := heading(ln)) and h[0] == 2 and h[1].casefold() == target), None)
    if index is None:
        if lines:
            lines.append("")
        lines.extend([f"## {section}", "", line])
    else:
        insert_at = _section_end(lines, index)
        if insert_at == index + 1:
            lines[insert_at:insert_at] = ["", line]
        else:
            lines.insert(insert_at, line)
        task = replace(task, section=heading(lines[index])[1])

    atomic_write_text(path, "\n".join(lines) + "\n")
    return task


def update_project_status(root: Path, project_id: str, status: str) -> None:
    status = _single_line(status, "status") or ""
    if not status:
        raise ValueError("status is required")
    path = root / PROJECTS_FILE
    lines = split_lines(_read(path))

    start = next((i for i, ln in enumerate(lines) if (h := heading(ln)) and h[0] == 2 and project_id_for(strip_emphasis(h[1])) == project_id), None)
    if start is None:
        raise KeyError(project_id)

    status_at = None
    for i in range(start + 1, len(lines)):
        h = heading(lines[i])
        if h is not None and h[0] <= 2:
            break
        kv = key_value(lines[i])
        if kv is not None and kv[0] == "status":
            status_at = i
            break

    if status_at is None:
        lines.insert(start + 1, f"**Status:** {status}")
    else:
        prefix = STATUS_PREFIX_RE.match(lines[status_at]).group(1)
        lines[status_at] = f"{prefix}**Status:** {status}"

    atomic_write_text(path, "\n".join(lines).rstrip("\n") + "\n")
