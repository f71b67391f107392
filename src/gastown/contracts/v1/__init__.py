from __future__ import annotations

from .ipc import CommandError, CommandResponse
from .role import RoleConfig, SessionInfo
from .runtime import RuntimeConfig, RuntimeHooksConfig, RuntimeSessionConfig, RuntimeTmuxConfig

__all__ = [
    "CommandError",
    "CommandResponse",
    "RoleConfig",
    "RuntimeConfig",
    "RuntimeHooksConfig",
    "RuntimeSessionConfig",
    "RuntimeTmuxConfig",
    "SessionInfo",
]
