from __future__ import annotations

import asyncio
from typing import Any

from shared.editing import DEFAULT_SECTION, add_task, update_project_status
from shared.runtime import MissionControlRuntime


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def submit_task(runtime: MissionControlRuntime, payload: dict[str, Any]) -> dict:
    """Append a task to the tasks document and schedule a rebuild."""
    title = _optional_str(payload, "title")
    if not title:
        raise ValueError("title is required")
    task = add_task(
        runtime.config.workspace,
        title,
        section=_optional_str(payload, "section") or DEFAULT_SECTION,
        detail=_optional_str(payload, "detail"),
        priority=_optional_str(payload, "priority"),
        assignee=_optional_str(payload, "assignee"),
    )
    runtime.scheduler.notify()
    return {"ok": True, "task": task.to_dict()}


def submit_project_status(runtime: MissionControlRuntime, payload: dict[str, Any]) -> dict:
    project_id = _optional_str(payload, "projectId") or _optional_str(payload, "project")
    status = _optional_str(payload, "status")
    if not project_id:
        raise ValueError("project is required")
    if not status:
        raise ValueError("status is required")
    update_project_status(runtime.config.workspace, project_id, status)
    runtime.scheduler.notify()
    return {"ok": True, "project": project_id, "status": status.strip()}


class MissionControlService:
    def __init__(self, runtime: MissionControlRuntime):
        self.runtime = runtime

    async def get_data(self, payload, emit_event, req_id):
        state = self.runtime.cache.get_current()
        data = self.runtime.cache.payload()
        if data is None:
            return {"ok": False, "error": "no_data"}
        return {"ok": True, "version": state.version, "data": data}

    async def rebuild(self, payload, emit_event, req_id):
        outcome = await asyncio.to_thread(self.runtime.rebuild_now)
        if outcome.ok:
            await emit_event("data.rebuilt", outcome.to_dict())
        return outcome.to_dict()

    async def health(self, payload, emit_event, req_id):
        return self.runtime.health()

    async def add_task(self, payload, emit_event, req_id):
        try:
            return await asyncio.to_thread(submit_task, self.runtime, payload)
        except ValueError as exc:
            return {"ok": False, "error": str(exc)}

    async def set_project_status(self, payload, emit_event, req_id):
        try:
            return await asyncio.to_thread(submit_project_status, self.runtime, payload)
        except ValueError as exc:
            return {"ok": False, "error": str(exc)}
        except KeyError as exc:
            return {"ok": False, "error": f"unknown project: {exc.args[0]}"}

    def ops(self):
        return {
            "data.get": self.get_data,
            "data.rebuild": self.rebuild,
            "data.health": self.health,
            "tasks.add": self.add_task,
            "projects.set_status": self.set_project_status,
        }
