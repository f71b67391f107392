"""Launch command resolution for role sessions."""
from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..contracts.v1 import RoleConfig, RuntimeConfig
from . import constants
from .errors import ConfigError
from .roles import RoleIdentity
from .settings import resolve_agent_config_with_override, resolve_role_agent_config
from .templates import expand_role_pattern

_INITIAL_PROMPTS = {
    "witness": "I am {who}. Start patrol: check gt hook, if empty create mol-witness-patrol wisp and execute it.",
    "refinery": "I am {who}. Start patrol: check gt hook, if empty create mol-refinery-patrol wisp and execute it.",
    "deacon": "I am {who}. Start patrol: check gt hook, if empty create mol-deacon-patrol wisp and execute it.",
    "polecat": "I am {who}. Check gt hook and execute the attached work; if the hook is empty, check mail.",
    "mayor": "I am {who}. Check gt hook and mail, then report status.",
    "crew": "I am {who}. Check gt hook and mail, then wait for instructions.",
}


@dataclass
class StartupCommand:
    command: str
    initial_prompt: str = ""


def initial_prompt_for(identity: RoleIdentity) -> str:
    return _INITIAL_PROMPTS[identity.role].format(who=identity.display_name)


def agent_env(identity: RoleIdentity, town_root: str, session_id_env: str = "") -> Dict[str, str]:
    """Identity variables every role session gets."""
    env: Dict[str, str] = {
        "GT_ROLE": identity.role,
        "GT_ROOT": str(town_root),
        "BD_ACTOR": identity.bd_actor,
        "GIT_AUTHOR_NAME": identity.bd_actor,
    }
    if identity.rig:
        env["GT_RIG"] = identity.rig
    if identity.role == "polecat":
        env["GT_POLECAT"] = identity.name
    elif identity.role == "crew":
        env["GT_CREW"] = identity.name
    if session_id_env:
        env["GT_SESSION_ID_ENV"] = session_id_env
    no_daemon = os.environ.get(constants.NO_DAEMON_ENV, "").strip()
    if no_daemon:
        env[constants.NO_DAEMON_ENV] = no_daemon
    return env


def _expand(pattern: str, identity: RoleIdentity, town_root: str) -> str:
    return expand_role_pattern(pattern, town=str(town_root), rig=identity.rig, name=identity.name, role=identity.role)


def role_config_env_vars(role_config: Optional[RoleConfig], identity: RoleIdentity, town_root: str) -> Dict[str, str]:
    if role_config is None or not role_config.env_vars:
        return {}
    return {key: _expand(value, identity, town_root) for key, value in role_config.env_vars.items()}


def parse_env_overrides(overrides: Iterable[str]) -> Tuple[Dict[str, str], List[str]]:
    """Split `KEY=VALUE` pairs; returns (parsed, skipped). Later keys win."""
    parsed: Dict[str, str] = {}
    skipped: List[str] = []
    for item in overrides:
        key, sep, value = str(item).partition("=")
        key = key.strip()
        if not sep or not key:
            skipped.append(str(item))
            continue
        parsed[key] = value
    return parsed, skipped


def _export_prefix(env: Dict[str, str]) -> str:
    if not env:
        return ""
    parts = [f"{k}={shlex.quote(v)}" for k, v in env.items()]
    return "export " + " ".join(parts) + " && "


def build_agent_startup_command(
    identity: RoleIdentity,
    town_root: str,
    rig_path: str,
    prompt: str,
    agent_override: str = "",
) -> str:
    """Full launch line: identity exports, then the agent command with the prompt."""
    if agent_override:
        rc = resolve_agent_config_with_override(town_root, rig_path, agent_override)
    else:
        rc = resolve_role_agent_config(identity.role, town_root, rig_path)
    return compose_command(identity, town_root, rc, prompt)


def compose_command(identity: RoleIdentity, town_root: str, rc: RuntimeConfig, prompt: str) -> str:
    if not rc.command:
        raise ConfigError(f"agent {rc.provider or '?'} has no command")
    env = agent_env(identity, town_root, rc.session_id_env)
    env.update(rc.env)
    argv = [rc.command, *rc.args]
    if prompt:
        if rc.prompt_flag:
            argv.append(rc.prompt_flag)
        argv.append(prompt)
    return _export_prefix(env) + " ".join(shlex.quote(a) for a in argv)


def build_start_command(
    identity: RoleIdentity,
    rig_path: str,
    town_root: str,
    agent_override: str = "",
    role_config: Optional[RoleConfig] = None,
) -> StartupCommand:
    """Resolve the launch command.

    An agent override always means the generic command for that agent, so
    a stored role start command is ignored in that case.
    """
    if agent_override:
        role_config = None
    if role_config is not None and role_config.start_command:
        return StartupCommand(command=_expand(role_config.start_command, identity, town_root))

    prompt = initial_prompt_for(identity)
    try:
        command = build_agent_startup_command(identity, town_root, rig_path, prompt, agent_override)
    except ConfigError as e:
        raise ConfigError(f"building startup command: {e}") from e
    return StartupCommand(command=command, initial_prompt=prompt)


def default_agent_override(command: str) -> str:
    """Executable basename of a launch line, ignoring export/exec/env wrappers."""
    trimmed = (command or "").strip()
    while trimmed.startswith("export "):
        idx = trimmed.find("&&")
        if idx == -1:
            break
        trimmed = trimmed[idx + 2 :].strip()

    fields = trimmed.split()
    if fields and fields[0] == "exec":
        fields = fields[1:]
    if fields and fields[0] == "env":
        fields = fields[1:]
        while fields:
            if fields[0] == "--":
                fields = fields[1:]
                break
            if fields[0].startswith("-") or "=" in fields[0]:
                fields = fields[1:]
                continue
            break
    if not fields:
        return ""
    return os.path.basename(fields[0].strip("'\""))
