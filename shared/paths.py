from __future__ import annotations

import os
from pathlib import Path

DEFAULT_WORKSPACE = Path.home() / ".openclaw" / "workspace"


def workspace_root() -> Path:
    root = os.environ.get("MISSION_CONTROL_WORKSPACE")
    return Path(root).expanduser() if root else DEFAULT_WORKSPACE


def mission_control_dir(root: Path) -> Path:
    return root / "mission-control"


def config_path(root: Path) -> Path:
    return mission_control_dir(root) / "config.json"
