"""Agent provider registry.

Everything that differs between agent CLIs (launch flags, readiness
markers, hook locations, trust handling) is looked up here by provider name
so the session controller never branches on a specific provider.
"""
from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..contracts.v1 import RuntimeConfig, RuntimeHooksConfig, RuntimeSessionConfig, RuntimeTmuxConfig
from . import constants
from .hooks import copilot_hooks_installer
from .roles import is_autonomous_role
from .trust import ensure_trusted_folder

HooksInstaller = Callable[[Path, str, RuntimeConfig], bool]
TrustUpdater = Callable[[str, str], bool]


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    display_name: str
    command: str
    flags: List[str] = field(default_factory=list)
    prompt_flag: str = ""
    ready_prompt_prefix: str = ""
    ready_delay_ms: int = 0
    hooks_dir: str = ""
    hooks_file: str = ""
    session_id_env: str = ""
    config_dir_env: str = ""
    # Needs an explicit prompt wait before any keystrokes are injected.
    needs_ready_wait: bool = False
    # Hook settings always run the startup sequence; no fallback nudges needed.
    hooks_cover_startup: bool = False
    hooks_installer: Optional[HooksInstaller] = None
    trust_updater: Optional[TrustUpdater] = None


PROVIDERS: Dict[str, ProviderSpec] = {
    "claude": ProviderSpec(
        name="claude",
        display_name="Claude Code",
        command="claude",
        flags=["--dangerously-skip-permissions"],
        ready_prompt_prefix="❯",
        hooks_dir=".claude",
        hooks_file="settings.json",
        session_id_env="CLAUDE_SESSION_ID",
        config_dir_env="CLAUDE_CONFIG_DIR",
        hooks_cover_startup=True,
    ),
    "codex": ProviderSpec(
        name="codex",
        display_name="Codex CLI",
        command="codex",
        flags=["--dangerously-bypass-approvals-and-sandbox"],
        ready_delay_ms=3000,
        config_dir_env="CODEX_HOME",
    ),
    "copilot": ProviderSpec(
        name="copilot",
        display_name="GitHub Copilot CLI",
        command="copilot",
        flags=["--allow-all-tools", "--allow-all-paths"],
        prompt_flag="-i",
        ready_prompt_prefix=constants.COPILOT_READY_PROMPT_PREFIX,
        ready_delay_ms=constants.COPILOT_READY_DELAY_MS,
        hooks_dir=".github/hooks",
        hooks_file="gastown.json",
        config_dir_env="COPILOT_CONFIG_DIR",
        needs_ready_wait=True,
        hooks_installer=copilot_hooks_installer,
        trust_updater=ensure_trusted_folder,
    ),
    "gemini": ProviderSpec(
        name="gemini",
        display_name="Gemini CLI",
        command="gemini",
        flags=["--yolo"],
        prompt_flag="-i",
        ready_delay_ms=5000,
    ),
    "opencode": ProviderSpec(
        name="opencode",
        display_name="OpenCode",
        command="opencode",
        prompt_flag="--prompt",
        ready_delay_ms=3000,
        hooks_dir=".opencode/plugin",
        hooks_file="gastown.js",
    ),
}


def lookup_provider(name: str) -> Optional[ProviderSpec]:
    return PROVIDERS.get(str(name or "").strip().lower())


def provider_for(rc: Optional[RuntimeConfig]) -> Optional[ProviderSpec]:
    """Provider of a runtime: explicit `provider`, else the command's basename."""
    if rc is None:
        return None
    spec = lookup_provider(rc.provider)
    if spec is not None:
        return spec
    if not rc.command:
        return None
    return lookup_provider(os.path.basename(rc.command.strip()))


def default_runtime_config(name: str = constants.DEFAULT_AGENT) -> RuntimeConfig:
    """A fresh runtime config built from the provider's registry entry."""
    spec = lookup_provider(name)
    if spec is None:
        return RuntimeConfig(provider=name, command=name)
    hooks = None
    if spec.hooks_dir and spec.hooks_file:
        hooks = RuntimeHooksConfig(provider=spec.name, dir=spec.hooks_dir, settings_file=spec.hooks_file)
    return RuntimeConfig(
        provider=spec.name,
        command=spec.command,
        args=list(spec.flags),
        prompt_flag=spec.prompt_flag,
        tmux=RuntimeTmuxConfig(
            ready_prompt_prefix=spec.ready_prompt_prefix,
            ready_delay_ms=spec.ready_delay_ms,
        ),
        hooks=hooks,
        session=RuntimeSessionConfig(session_id_env=spec.session_id_env, config_dir_env=spec.config_dir_env),
    )


def session_id_from_env() -> str:
    """Runtime session id: `$GT_SESSION_ID_ENV` names the variable, else CLAUDE_SESSION_ID."""
    env_name = os.environ.get("GT_SESSION_ID_ENV", "").strip()
    if env_name:
        value = os.environ.get(env_name, "")
        if value:
            return value
    return os.environ.get(constants.SESSION_ID_ENV_FALLBACK, "")


def hooks_available(rc: Optional[RuntimeConfig], work_dir: Optional[Path] = None) -> bool:
    """Whether the runtime's hooks file exists where the agent will look for it."""
    if rc is None or rc.hooks is None:
        return False
    if not rc.hooks.dir or not rc.hooks.settings_file:
        return False
    rel = Path(rc.hooks.dir) / rc.hooks.settings_file
    if rel.is_absolute():
        return rel.exists()
    spec = provider_for(rc)
    if spec is not None and spec.needs_ready_wait:
        # Workspace-scoped hooks: resolved against the session's working directory.
        base = Path(work_dir) if work_dir is not None else Path.cwd()
        return (base / rel).exists()
    home = os.environ.get("HOME", "").strip()
    if not home:
        return False
    return (Path(home) / rel).exists()


def startup_fallback_commands(role: str, rc: Optional[RuntimeConfig], work_dir: Optional[Path] = None) -> List[str]:
    """Commands that approximate hook-driven startup when hooks are unavailable."""
    if rc is None:
        rc = default_runtime_config()
    if rc.hooks is not None and rc.hooks.provider:
        spec = lookup_provider(rc.hooks.provider)
        if spec is not None and spec.hooks_cover_startup:
            return []
        if hooks_available(rc, work_dir):
            return []

    command = "gt prime"
    if is_autonomous_role(role):
        command += " && gt mail check --inject"
    command += " && gt nudge deacon session-started"
    return [command]


@dataclass
class RuntimeInfo:
    """Information about an installed agent runtime."""
    name: str
    display_name: str
    command: str
    available: bool
    path: Optional[str]


def detect_runtime(name: str) -> RuntimeInfo:
    spec = lookup_provider(name)
    if spec is None:
        return RuntimeInfo(name=name, display_name=name, command=name, available=False, path=None)
    path = shutil.which(spec.command)
    return RuntimeInfo(
        name=spec.name,
        display_name=spec.display_name,
        command=spec.command,
        available=path is not None,
        path=path,
    )


def detect_all_runtimes() -> List[RuntimeInfo]:
    return [detect_runtime(name) for name in PROVIDERS]
