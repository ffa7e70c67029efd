from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from shared.paths import config_path, workspace_root

logger = logging.getLogger(__name__)

MIN_DEBOUNCE_MS = 50

_ENV_OVERRIDES = {
    "MC_HOST": ("http_host", str),
    "MC_PORT": ("http_port", int),
    "MC_WS_PORT": ("ws_port", int),
    "MC_DEBOUNCE_MS": ("debounce_ms", int),
    "MC_GIT_TIMEOUT": ("git_timeout_s", float),
}


@dataclass
class MissionControlConfig:
    workspace: Path
    debounce_ms: int = 500
    git_timeout_s: float = 10.0
    commit_limit: int = 50
    recent_commit_count: int = 10
    http_host: str = "127.0.0.1"
    http_port: int = 3001
    ws_port: int = 3002
    subscriber_capacity: int = 64
    snapshot_relpath: str = "mission-control/data.json"

    @property
    def quiet_period_s(self) -> float:
        return max(self.debounce_ms, MIN_DEBOUNCE_MS) / 1000.0

    @property
    def snapshot_path(self) -> Path:
        return self.workspace / self.snapshot_relpath


def _file_overrides(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    if not isinstance(obj, dict):
        logger.warning("ignoring config %s: expected a JSON object", path)
        return {}
    known = {f.name for f in fields(MissionControlConfig)} - {"workspace"}
    return {k: v for k, v in obj.items() if k in known}


def _env_overrides(environ) -> dict:
    out = {}
    for var, (name, cast) in _ENV_OVERRIDES.items():
        raw = environ.get(var, "").strip()
        if not raw:
            continue
        try:
            out[name] = cast(raw)
        except ValueError:
            logger.warning("ignoring %s=%r: not a valid %s", var, raw, cast.__name__)
    return out


def load_config(workspace: Path | None = None, environ=None) -> MissionControlConfig:
    environ = os.environ if environ is None else environ
    if workspace is None and environ.get("MISSION_CONTROL_WORKSPACE"):
        workspace = Path(environ["MISSION_CONTROL_WORKSPACE"]).expanduser()
    root = workspace or workspace_root()
    cfg = MissionControlConfig(workspace=root)
    cfg = replace(cfg, **_file_overrides(config_path(root)))
    cfg = replace(cfg, **_env_overrides(environ))
    cfg.debounce_ms = max(int(cfg.debounce_ms), MIN_DEBOUNCE_MS)
    return cfg
