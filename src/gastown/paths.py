from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

TOWN_MARKER = Path("mayor") / "town.json"


def find_town_root(start: Path) -> Optional[Path]:
    """Walk up from `start` to the directory holding `mayor/town.json`.

    `GT_TOWN_ROOT` wins when set.
    """
    env = os.environ.get("GT_TOWN_ROOT", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    cur = Path(start).expanduser().resolve()
    for candidate in (cur, *cur.parents):
        if (candidate / TOWN_MARKER).is_file():
            return candidate
    return None


def town_root_for(rig_path: Path) -> Path:
    return find_town_root(rig_path) or Path(rig_path).expanduser().resolve()


def provider_config_dir(dirname: str, explicit: str = "") -> Path:
    """Per-user config directory of an agent provider (e.g. `~/.copilot`).

    Explicit value first, then `$XDG_CONFIG_HOME/<dirname>`, then `~/<dirname>`.
    """
    if explicit and explicit.strip():
        return Path(explicit.strip()).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg:
        return Path(xdg).expanduser() / dirname
    return Path.home() / dirname
