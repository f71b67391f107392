"""Role session lifecycle: start, observe, recover, stop.

There is no state file. The session backend is asked every time, so a
status can never drift from what is actually running.
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..contracts.v1 import RoleConfig, RuntimeConfig, SessionInfo
from ..paths import town_root_for
from ..runners.base import SessionBackend
from ..runners.tmux import assign_theme
from ..util.fs import first_existing_dir
from . import constants
from .errors import (
    AlreadyRunningError,
    ConfigError,
    ForegroundDeprecatedError,
    NotRunningError,
    StartupError,
)
from .hooks import ensure_settings_for_role
from .nudges import StartupNudge, propulsion_nudge_for_role, send_startup_nudge
from .readiness import ReadinessDetector
from .role_config import FileRoleConfigSource, RoleConfigSource, role_bead_id
from .roles import RoleIdentity, is_autonomous_role, settings_dir_for, work_dir_candidates
from .runtime import startup_fallback_commands
from .settings import resolve_agent_config_with_override, resolve_role_agent_config
from .startup import (
    agent_env,
    build_start_command,
    default_agent_override,
    parse_env_overrides,
    role_config_env_vars,
)
from .trust import TrustRequest, ensure_provider_trusted_folder

logger = logging.getLogger("gastown.lifecycle")


class SessionState(str, Enum):
    ABSENT = "absent"
    ZOMBIE = "zombie"
    HEALTHY = "healthy"


@dataclass(frozen=True)
class Advisory:
    """A best-effort step that failed without failing the start."""

    step: str
    message: str


@dataclass
class StartResult:
    session: str
    work_dir: str
    command: str
    agent: str
    initial_prompt: str = ""
    advisories: List[Advisory] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "session": self.session,
            "work_dir": self.work_dir,
            "command": self.command,
            "agent": self.agent,
            "initial_prompt": self.initial_prompt,
            "advisories": [{"step": a.step, "message": a.message} for a in self.advisories],
        }


class SessionManager:
    def __init__(
        self,
        identity: RoleIdentity,
        rig_path: Path,
        backend: SessionBackend,
        *,
        town_root: Optional[Path] = None,
        role_configs: Optional[RoleConfigSource] = None,
        detector: Optional[ReadinessDetector] = None,
        sleep: Callable[[float], None] = time.sleep,
        command_timeout: float = constants.COMMAND_START_TIMEOUT_S,
        ready_timeout: float = constants.READY_TIMEOUT_S,
    ):
        self.identity = identity
        self.rig_path = Path(rig_path)
        self.backend = backend
        self.town_root = Path(town_root) if town_root is not None else town_root_for(self.rig_path)
        self.role_configs = role_configs or FileRoleConfigSource.for_town(self.town_root)
        self.detector = detector or ReadinessDetector(backend, sleep=sleep)
        self._sleep = sleep
        self.command_timeout = command_timeout
        self.ready_timeout = ready_timeout

    @property
    def session_name(self) -> str:
        return self.identity.session_name

    def _log_extra(self, op: str) -> Dict[str, str]:
        return {"op": op, "session": self.session_name, "role": self.identity.role, "rig": self.identity.rig}

    def session_state(self) -> SessionState:
        if not self.backend.has_session(self.session_name):
            return SessionState.ABSENT
        if self.backend.is_agent_running(self.session_name):
            return SessionState.HEALTHY
        return SessionState.ZOMBIE

    def is_running(self) -> bool:
        return self.backend.has_session(self.session_name)

    def status(self) -> SessionInfo:
        if not self.backend.has_session(self.session_name):
            raise NotRunningError(f"{self.identity.role} not running")
        return self.backend.get_session_info(self.session_name)

    def work_dir(self) -> Path:
        return first_existing_dir(*work_dir_candidates(self.identity, self.rig_path, self.town_root))

    def settings_dir(self) -> Path:
        return settings_dir_for(self.identity, self.rig_path, self.town_root)

    def role_config(self) -> Optional[RoleConfig]:
        bead_id = role_bead_id(self.identity.role)
        try:
            return self.role_configs.get_role_config(bead_id)
        except ConfigError as e:
            raise ConfigError(f"loading {self.identity.role} role config: {e}") from e

    def _effective_runtime(self, agent: str, fallback: RuntimeConfig) -> Tuple[RuntimeConfig, bool]:
        if not agent:
            return fallback, False
        try:
            return resolve_agent_config_with_override(str(self.town_root), str(self.rig_path), agent), True
        except ConfigError:
            return fallback, False

    def _advise(self, advisories: List[Advisory], step: str, fn: Callable[[], object]) -> bool:
        try:
            fn()
            return True
        except Exception as e:
            advisories.append(Advisory(step=step, message=str(e) or e.__class__.__name__))
            logger.warning("%s failed: %s", step, e, extra={**self._log_extra("start"), "step": step})
            return False

    def start(
        self,
        foreground: bool = False,
        agent_override: str = "",
        env_overrides: Iterable[str] = (),
    ) -> StartResult:
        """Start the role's session.

        Raises AlreadyRunningError for a healthy session; a zombie session
        (container alive, agent gone) is killed and recreated.
        """
        if foreground:
            raise ForegroundDeprecatedError()

        session = self.session_name
        role = self.identity.role
        town = str(self.town_root)
        rig = str(self.rig_path)
        extra = self._log_extra("start")

        state = self.session_state()
        if state is SessionState.HEALTHY:
            raise AlreadyRunningError(f"{role} already running")
        if state is SessionState.ZOMBIE:
            logger.info("killing zombie session", extra=extra)
            try:
                self.backend.kill_session(session)
            except Exception as e:
                raise StartupError(f"killing zombie session: {e}") from e

        work_dir = self.work_dir()

        # Hook settings go in the role's parent dir, never into the nested checkout.
        if agent_override:
            rc = resolve_agent_config_with_override(town, rig, agent_override)
        else:
            rc = resolve_role_agent_config(role, town, rig)
        ensure_settings_for_role(self.settings_dir(), role, rc)

        role_config = self.role_config()
        startup = build_start_command(self.identity, rig, town, agent_override, role_config)
        role_env = role_config_env_vars(role_config, self.identity, town)
        overrides, skipped = parse_env_overrides(env_overrides)

        agent = agent_override or default_agent_override(startup.command)
        effective_rc, agent_known = self._effective_runtime(agent, rc)

        config_dir = os.environ.get(effective_rc.config_dir_env, "") if effective_rc.config_dir_env else ""
        ensure_provider_trusted_folder(
            TrustRequest(
                role=role,
                town_root=town,
                rig_path=rig,
                work_dir=str(work_dir),
                agent_override=agent if agent_known else "",
                config_dir=config_dir,
            )
        )

        try:
            self.backend.new_session_with_command(session, work_dir, startup.command)
        except Exception as e:
            try:
                self.backend.kill_session_with_processes(session)
            except Exception:
                logger.debug("cleanup after failed create also failed", extra=extra)
            raise StartupError(f"creating session {session}: {e}") from e
        logger.info("session created", extra={**extra, "provider": agent})

        advisories: List[Advisory] = []
        for item in skipped:
            advisories.append(Advisory(step="env", message=f"ignoring malformed override {item!r}"))

        # Ascending priority; later writers win on the same key.
        layered: List[Dict[str, str]] = [
            agent_env(self.identity, town, effective_rc.session_id_env),
            role_env,
            overrides,
        ]
        for layer in layered:
            for key, value in layer.items():
                self._advise(advisories, f"env {key}", lambda k=key, v=value: self.backend.set_environment(session, k, v))

        self._advise(
            advisories,
            "theme",
            lambda: self.backend.configure_session(
                session,
                theme=assign_theme(self.identity.rig or role),
                rig=self.identity.rig,
                role=role,
                kind=role,
            ),
        )

        try:
            self.backend.wait_for_command(session, constants.SUPPORTED_SHELLS, self.command_timeout)
        except Exception as e:
            try:
                self.backend.kill_session_with_processes(session)
            except Exception:
                logger.debug("cleanup after failed launch also failed", extra=extra)
            raise StartupError(f"waiting for {role} to start: {e}") from e

        self._advise(advisories, "bypass-permissions", lambda: self.backend.accept_bypass_permissions_warning(session))

        self._sleep(constants.NOTIFY_DELAY_S)
        self.detector.wait_for_provider_ready(session, effective_rc, self.ready_timeout)

        nudge = StartupNudge(
            recipient=self.identity.address,
            sender="mayor" if role == "deacon" else "deacon",
            topic="patrol" if is_autonomous_role(role) and role != "polecat" else "start",
        )
        self._advise(advisories, "startup-nudge", lambda: send_startup_nudge(self.backend, session, nudge))

        self.detector.sleep_for_ready_delay(effective_rc)
        self._advise(advisories, "startup-fallback", lambda: self._run_startup_fallback(session, effective_rc))

        # The startup nudge puts the agent to work; wait for the prompt so the
        # propulsion nudge's keystrokes cannot cancel that processing.
        if not self.detector.wait_before_propulsion(session, effective_rc, self.ready_timeout):
            advisories.append(Advisory(step="ready", message="prompt not observed; used fixed delay"))

        self._advise(
            advisories,
            "propulsion-nudge",
            lambda: self.backend.nudge_session(session, propulsion_nudge_for_role(role, str(work_dir))),
        )

        return StartResult(
            session=session,
            work_dir=str(work_dir),
            command=startup.command,
            agent=agent,
            initial_prompt=startup.initial_prompt,
            advisories=advisories,
        )

    def _run_startup_fallback(self, session: str, rc: RuntimeConfig) -> None:
        self.detector.wait_for_provider_ready(session, rc, self.ready_timeout)
        for cmd in startup_fallback_commands(self.identity.role, rc, self.settings_dir()):
            self.backend.nudge_session(session, cmd)

    def stop(self) -> None:
        """Kill the session, healthy or zombie alike."""
        if not self.backend.has_session(self.session_name):
            raise NotRunningError(f"{self.identity.role} not running")
        self.backend.kill_session(self.session_name)
        logger.info("session stopped", extra=self._log_extra("stop"))
