"""Town and rig agent settings.

Settings live in `<town>/settings/config.json` and `<rig>/settings/config.json`
and are parsed with PyYAML, so either JSON or YAML content is accepted:

    default_agent: copilot          # town only
    agent: codex                    # rig only
    role_agents: {witness: claude}
    agents:                         # custom agent aliases
      fast-claude: {provider: claude, args: ["--model", "haiku"]}
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml  # type: ignore

from ..contracts.v1 import RuntimeConfig
from . import constants
from .errors import ConfigError
from .runtime import default_runtime_config, lookup_provider

logger = logging.getLogger("gastown.settings")

SETTINGS_RELPATH = Path("settings") / "config.json"


def town_settings_path(town_root: Path) -> Path:
    return Path(town_root) / SETTINGS_RELPATH


def rig_settings_path(rig_path: Path) -> Path:
    return Path(rig_path) / SETTINGS_RELPATH


def load_settings(path: Path) -> Dict[str, Any]:
    """Load a settings document; a missing file is empty, a malformed one is an error."""
    p = Path(path)
    if not p.exists():
        return {}
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"loading settings {p}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError(f"loading settings {p}: top level is not a mapping")
    return doc


def _load_pair(town_root: str, rig_path: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    town = load_settings(town_settings_path(Path(town_root))) if town_root else {}
    rig = load_settings(rig_settings_path(Path(rig_path))) if rig_path else {}
    return town, rig


def _custom_agents(town: Dict[str, Any], rig: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for doc in (town, rig):
        agents = doc.get("agents")
        if not isinstance(agents, dict):
            continue
        for name, body in agents.items():
            if isinstance(name, str) and isinstance(body, dict):
                out[name.strip().lower()] = body
    return out


def _runtime_for_agent(name: str, town: Dict[str, Any], rig: Dict[str, Any]) -> Optional[RuntimeConfig]:
    key = str(name or "").strip().lower()
    if not key:
        return None
    custom = _custom_agents(town, rig).get(key)
    if custom is not None:
        provider = str(custom.get("provider") or "").strip().lower()
        if not provider:
            command = str(custom.get("command") or key)
            provider = Path(command).name.lower()
        base = default_runtime_config(provider) if lookup_provider(provider) else RuntimeConfig(provider=provider)
        patch = {k: v for k, v in custom.items() if k in RuntimeConfig.model_fields and v is not None}
        try:
            return RuntimeConfig.model_validate({**base.model_dump(), **patch})
        except ValueError as e:
            raise ConfigError(f"invalid agent {name}: {e}") from e
    if lookup_provider(key) is not None:
        return default_runtime_config(key)
    return None


def _role_agent(role: str, doc: Dict[str, Any]) -> str:
    role_agents = doc.get("role_agents")
    if not isinstance(role_agents, dict):
        return ""
    return str(role_agents.get(role) or "").strip()


def _default_agent_name(town: Dict[str, Any], rig: Dict[str, Any]) -> str:
    return (
        str(rig.get("agent") or "").strip()
        or str(town.get("default_agent") or "").strip()
        or constants.DEFAULT_AGENT
    )


def resolve_agent_config(town_root: str, rig_path: str) -> RuntimeConfig:
    """Rig agent, then town default agent, then the built-in default."""
    town, rig = _load_pair(town_root, rig_path)
    name = _default_agent_name(town, rig)
    rc = _runtime_for_agent(name, town, rig)
    if rc is None:
        logger.warning("unknown agent %r; using %s", name, constants.DEFAULT_AGENT)
        return default_runtime_config()
    return rc


def resolve_role_agent_config(role: str, town_root: str, rig_path: str) -> RuntimeConfig:
    """Rig role agent, then town role agent, then the general agent resolution."""
    town, rig = _load_pair(town_root, rig_path)
    for name in (_role_agent(role, rig), _role_agent(role, town)):
        if not name:
            continue
        rc = _runtime_for_agent(name, town, rig)
        if rc is not None:
            return rc
        logger.warning("unknown agent %r for role %s; ignoring", name, role, extra={"role": role})
    return resolve_agent_config(town_root, rig_path)


def resolve_agent_config_with_override(town_root: str, rig_path: str, agent_override: str) -> RuntimeConfig:
    town, rig = _load_pair(town_root, rig_path)
    rc = _runtime_for_agent(agent_override, town, rig)
    if rc is None:
        raise ConfigError(f"agent {agent_override!r} not found")
    return rc
