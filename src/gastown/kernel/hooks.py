from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..contracts.v1 import RuntimeConfig
from .convergence import ensure_mapping, ensure_version, load_document, merge_collections, write_document
from .errors import ConfigError
from .roles import RoleType, role_type_for

logger = logging.getLogger("gastown.hooks")

HOOKS_SCHEMA_VERSION = 1

_TEMPLATES = {
    RoleType.AUTONOMOUS: "hooks-autonomous.json",
    RoleType.INTERACTIVE: "hooks-interactive.json",
}


def _load_resource(filename: str) -> str:
    try:
        import importlib.resources

        files = importlib.resources.files("gastown.resources")
        return (files / filename).read_text(encoding="utf-8")
    except (ImportError, OSError, TypeError, AttributeError):
        p = Path(__file__).resolve().parents[1] / "resources" / filename
        return p.read_text(encoding="utf-8")


def required_hooks_for_role(role: str) -> Dict[str, Any]:
    """Required hooks document for the role's autonomy class."""
    filename = _TEMPLATES[role_type_for(role)]
    try:
        doc = json.loads(_load_resource(filename))
    except (OSError, ValueError) as e:
        raise ConfigError(f"reading hooks template {filename}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError(f"hooks template {filename} is not an object")
    if not doc.get("version"):
        doc["version"] = HOOKS_SCHEMA_VERSION
    if not isinstance(doc.get("hooks"), dict):
        doc["hooks"] = {}
    return doc


def hooks_path(work_dir: Path, hooks_dir: str, hooks_file: str) -> Path:
    if not hooks_file:
        raise ConfigError("hooks file name is required")
    return Path(work_dir) / (hooks_dir or ".") / hooks_file


def ensure_hooks_for_role(work_dir: Path, role: str, hooks_dir: str, hooks_file: str) -> bool:
    """Merge the role's required hooks into `<work_dir>/<hooks_dir>/<hooks_file>`.

    Returns True when the file was written. User-added hooks, unknown hook
    names and unknown top-level keys are preserved.
    """
    path = hooks_path(work_dir, hooks_dir, hooks_file)
    existing = load_document(path)
    required = required_hooks_for_role(role)

    changed = ensure_version(existing, int(required.get("version") or HOOKS_SCHEMA_VERSION))
    hooks = ensure_mapping(existing, "hooks", path=path)
    if merge_collections(hooks, required["hooks"], path=path):
        changed = True

    if not changed:
        logger.debug("hooks already converged", extra={"path": str(path), "role": role})
        return False
    write_document(path, existing)
    return True


def copilot_hooks_installer(work_dir: Path, role: str, rc: RuntimeConfig) -> bool:
    hooks = rc.hooks
    if hooks is None:
        return False
    return ensure_hooks_for_role(work_dir, role, hooks.dir, hooks.settings_file)


def ensure_settings_for_role(work_dir: Path, role: str, rc: Optional[RuntimeConfig]) -> bool:
    """Install provider hook settings when the provider has a merge-style installer."""
    from .runtime import default_runtime_config, lookup_provider

    if rc is None:
        rc = default_runtime_config()
    if rc.hooks is None or not rc.hooks.provider:
        return False
    spec = lookup_provider(rc.hooks.provider)
    if spec is None or spec.hooks_installer is None:
        return False
    return spec.hooks_installer(Path(work_dir), role, rc)
