from __future__ import annotations

import os
from pathlib import Path


def base_root() -> Path:
    root = os.environ.get("MEDIAGATE_ROOT")
    return Path(root).expanduser() if root else Path.home() / ".mediagate"


def state_dir() -> Path:
    return base_root() / "state"
