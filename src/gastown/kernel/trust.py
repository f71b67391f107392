from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..paths import provider_config_dir
from .convergence import ensure_list, load_document, merge_entries, write_document
from .errors import ConvergenceError

logger = logging.getLogger("gastown.trust")

TRUST_FIELD = "trusted_folders"
COPILOT_CONFIG_DIRNAME = ".copilot"
COPILOT_CONFIG_FILE = "config.json"

PathLike = Union[str, Path]


def normalize_trust_path(path: PathLike) -> str:
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


def _is_within(child: str, parent: str) -> bool:
    try:
        return os.path.commonpath([child, parent]) == parent
    except ValueError:
        return False


def trust_path_for(role: str, rig_path: Optional[PathLike], work_dir: PathLike) -> str:
    """Polecat worktrees collapse onto `<rig>/polecats` so one entry covers all of them."""
    target = normalize_trust_path(work_dir)
    if role == "polecat" and rig_path:
        polecats_dir = normalize_trust_path(Path(rig_path) / "polecats")
        if _is_within(target, polecats_dir):
            return polecats_dir
    return target


def trust_config_path(config_dir: str = "") -> Path:
    return provider_config_dir(COPILOT_CONFIG_DIRNAME, config_dir) / COPILOT_CONFIG_FILE


def ensure_trusted_folder(path: PathLike, config_dir: str = "") -> bool:
    """Add `path` to the provider's trusted_folders. Returns True when the file was written."""
    cfg_path = trust_config_path(config_dir)
    doc = load_document(cfg_path)
    folders = ensure_list(doc, TRUST_FIELD, path=cfg_path)

    entry = normalize_trust_path(path)

    def _key(value: object) -> object:
        return normalize_trust_path(value) if isinstance(value, str) and value.strip() else value

    if not merge_entries(folders, [entry], key=_key):
        logger.debug("folder already trusted", extra={"path": entry})
        return False
    write_document(cfg_path, doc)
    logger.info("trusted folder %s", entry, extra={"path": str(cfg_path)})
    return True


@dataclass(frozen=True)
class TrustRequest:
    role: str = ""
    town_root: str = ""
    rig_path: str = ""
    work_dir: str = ""
    agent_override: str = ""
    config_dir: str = ""


def ensure_provider_trusted_folder(req: TrustRequest) -> bool:
    """Trust the session's working directory when the effective provider needs it."""
    from .runtime import provider_for
    from .settings import resolve_agent_config, resolve_agent_config_with_override, resolve_role_agent_config

    if not req.work_dir:
        return False

    if req.agent_override:
        rc = resolve_agent_config_with_override(req.town_root, req.rig_path, req.agent_override)
    elif req.role:
        rc = resolve_role_agent_config(req.role, req.town_root, req.rig_path)
    else:
        rc = resolve_agent_config(req.town_root, req.rig_path)

    spec = provider_for(rc)
    if spec is None or spec.trust_updater is None:
        return False

    trust_path = trust_path_for(req.role, req.rig_path, req.work_dir)
    try:
        return spec.trust_updater(trust_path, req.config_dir)
    except ConvergenceError as e:
        raise ConvergenceError("updating trusted_folders", trust_config_path(req.config_dir), e) from e
