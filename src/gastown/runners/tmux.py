from __future__ import annotations

import logging
import os
import signal
import subprocess
import tempfile
import time
import zlib
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from ..contracts.v1 import SessionInfo
from ..kernel.constants import SUPPORTED_SHELLS
from ..kernel.errors import TmuxError
from .base import SessionBackend

logger = logging.getLogger("gastown.tmux")

# (status background, status foreground)
THEMES: List[Tuple[str, str]] = [
    ("colour24", "colour255"),
    ("colour22", "colour255"),
    ("colour52", "colour255"),
    ("colour54", "colour255"),
    ("colour94", "colour255"),
    ("colour30", "colour255"),
    ("colour60", "colour255"),
    ("colour236", "colour250"),
]

BYPASS_DIALOG_MARKER = "Bypass Permissions mode"


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except OSError as e:
        return 1, "", str(e)


def _check(args: List[str], what: str, *, timeout_s: float = 3.0) -> str:
    code, out, err = _run_tmux(args, timeout_s=timeout_s)
    if code != 0:
        raise TmuxError(f"tmux {what} failed: {err.strip() or f'exit {code}'}")
    return out


def assign_theme(name: str) -> str:
    """Deterministic status-bar style for a rig name."""
    bg, fg = THEMES[zlib.crc32(name.encode("utf-8")) % len(THEMES)]
    return f"bg={bg},fg={fg}"


def _best_effort_killpg(pid: int, sig: signal.Signals) -> None:
    if pid <= 0:
        return
    try:
        os.killpg(pid, sig)
    except OSError:
        try:
            os.kill(pid, sig)
        except OSError:
            pass


class TmuxBackend(SessionBackend):
    def __init__(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = 0.1,
    ):
        self._sleep = sleep
        self._clock = clock
        self._poll_interval = poll_interval

    def has_session(self, session: str) -> bool:
        code, _, _ = _run_tmux(["has-session", "-t", f"={session}"])
        return code == 0

    def _display(self, session: str, fmt: str) -> Optional[str]:
        code, out, _ = _run_tmux(["display-message", "-p", "-t", session, fmt])
        if code != 0:
            return None
        return (out or "").strip()

    def get_session_info(self, session: str) -> SessionInfo:
        fmt = "\t".join(
            [
                "#{session_name}",
                "#{session_windows}",
                "#{session_created}",
                "#{session_attached}",
                "#{session_activity}",
                "#{pane_current_command}",
            ]
        )
        out = self._display(session, fmt)
        if out is None:
            raise TmuxError(f"tmux display-message failed for {session}")
        parts = (out.split("\t") + [""] * 6)[:6]
        return SessionInfo(
            name=parts[0] or session,
            windows=int(parts[1]) if parts[1].isdigit() else 0,
            created=parts[2],
            attached=parts[3] not in ("", "0"),
            activity=parts[4],
            pane_command=parts[5] or None,
        )

    def _pane_dead(self, session: str) -> bool:
        return (self._display(session, "#{pane_dead}") or "") in ("1", "yes", "on", "true")

    def pane_command(self, session: str) -> str:
        return self._display(session, "#{pane_current_command}") or ""

    def is_agent_running(self, session: str) -> bool:
        if not self.has_session(session):
            return False
        if self._pane_dead(session):
            return False
        cmd = self.pane_command(session)
        return bool(cmd) and cmd not in SUPPORTED_SHELLS

    def new_session_with_command(self, session: str, work_dir: Path, command: str) -> None:
        cwd = Path(work_dir).expanduser()
        _check(["new-session", "-d", "-s", session, "-c", str(cwd), command], "new-session", timeout_s=10.0)
        logger.info("created session", extra={"session": session, "path": str(cwd)})

    def kill_session(self, session: str) -> None:
        _check(["kill-session", "-t", f"={session}"], "kill-session")

    def kill_session_with_processes(self, session: str) -> None:
        pid = self._display(session, "#{pane_pid}") or ""
        if pid.isdigit():
            _best_effort_killpg(int(pid), signal.SIGTERM)
        code, _, err = _run_tmux(["kill-session", "-t", f"={session}"])
        if code != 0 and self.has_session(session):
            raise TmuxError(f"tmux kill-session failed: {err.strip()}")

    def set_environment(self, session: str, key: str, value: str) -> None:
        _check(["set-environment", "-t", session, key, value], "set-environment")

    def wait_for_command(self, session: str, shells: Iterable[str], timeout: float) -> None:
        shell_set = set(shells)
        deadline = self._clock() + timeout
        while True:
            cmd = self.pane_command(session)
            if cmd and cmd not in shell_set:
                return
            if self._clock() >= deadline:
                raise TmuxError(f"timeout after {timeout:.0f}s waiting for command in {session} (pane: {cmd or '?'})")
            self._sleep(self._poll_interval)

    def capture_pane(self, session: str, lines: int = 50) -> str:
        n = int(lines) if int(lines) > 0 else 50
        return _check(["capture-pane", "-p", "-t", session, "-S", f"-{n}"], "capture-pane")

    def paste_text(self, session: str, text: str) -> None:
        # Leave copy-mode first, or the paste lands in the scrollback search.
        code, out, _ = _run_tmux(["display-message", "-p", "-t", session, "#{pane_in_mode}"])
        if code == 0 and (out or "").strip() in ("1", "on", "yes", "true"):
            _run_tmux(["send-keys", "-t", session, "-X", "cancel"])

        with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8") as f:
            f.write(text)
            fname = f.name

        buf = f"gt-{int(time.time() * 1000)}"
        try:
            _check(["load-buffer", "-b", buf, fname], "load-buffer")
            _check(["paste-buffer", "-p", "-d", "-t", session, "-b", buf], "paste-buffer")
        finally:
            try:
                os.unlink(fname)
            except OSError:
                pass

    def nudge_session(self, session: str, text: str) -> None:
        self.paste_text(session, text)
        self._sleep(0.5)
        # Escape leaves vi-style insert modes; Enter submits.
        _check(["send-keys", "-t", session, "Escape"], "send-keys")
        self._sleep(0.1)
        _check(["send-keys", "-t", session, "Enter"], "send-keys")

    def accept_bypass_permissions_warning(self, session: str) -> bool:
        self._sleep(1.0)
        content = self.capture_pane(session, 30)
        if BYPASS_DIALOG_MARKER not in content:
            return False
        _check(["send-keys", "-t", session, "Down"], "send-keys")
        self._sleep(0.2)
        _check(["send-keys", "-t", session, "Enter"], "send-keys")
        return True

    def configure_session(self, session: str, *, theme: str, rig: str, role: str, kind: str) -> None:
        label = f"{rig}/{role}" if rig else role
        _check(["set-option", "-t", session, "status-style", theme], "set-option")
        _check(["set-option", "-t", session, "status-left", f"[{label}] "], "set-option")
        _check(["set-option", "-t", session, "status-left-length", "40"], "set-option")
        _check(["rename-window", "-t", session, kind], "rename-window")
