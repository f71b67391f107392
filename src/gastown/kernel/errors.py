"""Exception types shared across the session controller.

Callers branch on the precondition errors (`NotRunningError`,
`AlreadyRunningError`, `ForegroundDeprecatedError`); everything else is a
failure carrying the operation and target in its message.
"""
from __future__ import annotations


class GastownError(Exception):
    code = "error"


class ConfigError(GastownError, ValueError):
    code = "config_error"


class TemplateError(ConfigError):
    code = "template_error"


class ConvergenceError(GastownError):
    """Reading, merging or writing an integration document failed."""

    code = "convergence_error"

    def __init__(self, op: str, path: object, cause: object = None):
        self.op = op
        self.path = str(path)
        msg = f"{op} {self.path}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class SessionError(GastownError):
    code = "session_error"


class NotRunningError(SessionError):
    code = "not_running"


class AlreadyRunningError(SessionError):
    code = "already_running"


class ForegroundDeprecatedError(SessionError, ValueError):
    code = "foreground_deprecated"

    def __init__(self) -> None:
        super().__init__("foreground mode is deprecated; use background mode (remove --foreground flag)")


class StartupError(SessionError):
    code = "startup_failed"


class TmuxError(GastownError):
    code = "tmux_error"


class ReadinessTimeout(GastownError, TimeoutError):
    code = "readiness_timeout"
