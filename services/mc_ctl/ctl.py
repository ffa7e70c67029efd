from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

import requests

from shared.builder import DataBuilder
from shared.config import MissionControlConfig, load_config
from shared.editing import DEFAULT_SECTION, add_task, update_project_status
from shared.errors import MissionControlError
from shared.snapshot import write_snapshot
from shared.workspace import WorkspaceReader

HTTP_TIMEOUT_S = 30


def _config(args) -> MissionControlConfig:
    workspace = Path(args.workspace).expanduser() if args.workspace else None
    return load_config(workspace)


def _base_url(cfg: MissionControlConfig) -> str:
    return f"http://{cfg.http_host}:{cfg.http_port}"


def cmd_build(args) -> int:
    cfg = _config(args)
    builder = DataBuilder(
        WorkspaceReader(cfg.workspace),
        commit_limit=cfg.commit_limit,
        git_timeout=cfg.git_timeout_s,
        recent_commit_count=cfg.recent_commit_count,
    )
    try:
        document = builder.build()
    except MissionControlError as exc:
        print(f"build failed: {exc}")
        return 1
    out = Path(args.output).expanduser() if args.output else cfg.snapshot_path
    write_snapshot(out, document.to_dict())
    meta = document.metadata
    print(f"wrote {out}")
    print(f"  agents:   {len(document.agents)}")
    print(f"  tasks:    {len(document.tasks)}")
    print(f"  projects: {len(document.projects)}")
    analytics = document.repository_analytics
    if analytics.error:
        print(f"  git:      {analytics.error}")
    else:
        print(f"  commits:  {len(analytics.commits)}")
    for note in meta.notes:
        print(f"  note: {note}")
    print(f"  took {meta.build_duration_ms:.1f}ms")
    return 0


def cmd_status(args) -> int:
    cfg = _config(args)
    try:
        resp = requests.get(f"{_base_url(cfg)}/api/health", timeout=HTTP_TIMEOUT_S)
        body = resp.json()
    except requests.RequestException as exc:
        print(f"mission control unreachable at {_base_url(cfg)}: {exc}")
        return 1
    print(json.dumps(body, indent=2))
    return 0 if resp.ok else 1


def cmd_rebuild(args) -> int:
    cfg = _config(args)
    try:
        resp = requests.post(f"{_base_url(cfg)}/api/rebuild", json={}, timeout=HTTP_TIMEOUT_S)
        body = resp.json()
    except requests.RequestException as exc:
        print(f"mission control unreachable at {_base_url(cfg)}: {exc}")
        return 1
    if resp.ok:
        print(f"rebuilt v{body.get('version')} in {body.get('durationMs')}ms")
        return 0
    print(f"rebuild failed: {body.get('error')}")
    return 1


def cmd_add_task(args) -> int:
    cfg = _config(args)
    try:
        task = add_task(
            cfg.workspace,
            args.title,
            section=args.section,
            detail=args.detail,
            priority=args.priority,
            assignee=args.assignee,
        )
    except ValueError as exc:
        print(f"error: {exc}")
        return 2
    print(f"added to {task.section}: {task.title}")
    return 0


def cmd_set_status(args) -> int:
    cfg = _config(args)
    try:
        update_project_status(cfg.workspace, args.project, args.status)
    except ValueError as exc:
        print(f"error: {exc}")
        return 2
    except KeyError:
        print(f"unknown project: {args.project}")
        return 1
    print(f"{args.project}: {args.status.strip()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mission-control-ctl")
    p.add_argument("--workspace", default=None, help="Workspace root (default: $MISSION_CONTROL_WORKSPACE)")
    sub = p.add_subparsers(dest="cmd", required=True)

    build = sub.add_parser("build", help="Build once and write the snapshot")
    build.add_argument("--output", default=None, help="Snapshot path (default: <workspace>/mission-control/data.json)")
    build.set_defaults(func=cmd_build)

    sub.add_parser("status", help="Show health of the running server").set_defaults(func=cmd_status)
    sub.add_parser("rebuild", help="Ask the running server to rebuild now").set_defaults(func=cmd_rebuild)

    at = sub.add_parser("add-task")
    at.add_argument("title")
    at.add_argument("--section", default=DEFAULT_SECTION)
    at.add_argument("--detail", default=None)
    at.add_argument("--priority", default=None, help="P0-P3, HIGH, MEDIUM or LOW")
    at.add_argument("--assignee", default=None)
    at.set_defaults(func=cmd_add_task)

    ss = sub.add_parser("set-status")
    ss.add_argument("project", help="Project id, e.g. mission-control")
    ss.add_argument("status")
    ss.set_defaults(func=cmd_set_status)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=os.environ.get("MC_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)
