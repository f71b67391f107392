"""
Session backend interface.

The controller only talks to the multiplexer through this surface, so the
backend stays the single source of truth for whether a role is running.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

from ..contracts.v1 import SessionInfo


class SessionBackend(ABC):
    @abstractmethod
    def has_session(self, session: str) -> bool:
        """True when the session container exists."""

    @abstractmethod
    def get_session_info(self, session: str) -> SessionInfo:
        pass

    @abstractmethod
    def is_agent_running(self, session: str) -> bool:
        """True when the hosted interactive process is alive (not just the shell)."""

    @abstractmethod
    def new_session_with_command(self, session: str, work_dir: Path, command: str) -> None:
        """Create the session with `command` as its initial process, atomically."""

    @abstractmethod
    def kill_session(self, session: str) -> None:
        pass

    @abstractmethod
    def kill_session_with_processes(self, session: str) -> None:
        """Kill the session and every process started inside it."""

    @abstractmethod
    def set_environment(self, session: str, key: str, value: str) -> None:
        pass

    @abstractmethod
    def wait_for_command(self, session: str, shells: Iterable[str], timeout: float) -> None:
        """Block until the pane runs something other than a shell; raises on timeout."""

    @abstractmethod
    def capture_pane(self, session: str, lines: int = 50) -> str:
        pass

    @abstractmethod
    def nudge_session(self, session: str, text: str) -> None:
        """Deliver `text` to the session as typed input and submit it."""

    @abstractmethod
    def accept_bypass_permissions_warning(self, session: str) -> bool:
        """Dismiss the one-time permission-bypass dialog; True when one was shown."""

    @abstractmethod
    def configure_session(self, session: str, *, theme: str, rig: str, role: str, kind: str) -> None:
        """Cosmetic status-bar setup."""
