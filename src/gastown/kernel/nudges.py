from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..runners.base import SessionBackend

_PROPULSION = {
    "witness": "Run `gt hook` to check your hook and begin patrol.",
    "refinery": "Run `gt hook` to check your hook and begin processing the merge queue.",
    "deacon": "Run `gt hook` to check your hook and begin patrol.",
    "polecat": "Run `gt hook` to check your hook and begin work.",
    "mayor": "Run `gt hook` to check your hook, then `gt mail inbox`.",
    "crew": "Run `gt hook` to check your hook, then `gt mail inbox`.",
}


@dataclass(frozen=True)
class StartupNudge:
    recipient: str
    sender: str
    topic: str
    mol_id: str = ""


def format_startup_nudge(cfg: StartupNudge, *, now: Optional[datetime] = None) -> str:
    """Beacon text the agent uses to find its predecessor session via /resume."""
    ts = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M")
    text = f"[GAS TOWN] {cfg.recipient} <- {cfg.sender} • {ts} • {cfg.topic}"
    if cfg.mol_id:
        text += f":{cfg.mol_id}"
    return text


def send_startup_nudge(backend: SessionBackend, session: str, cfg: StartupNudge) -> None:
    backend.nudge_session(session, format_startup_nudge(cfg))


def propulsion_nudge_for_role(role: str, work_dir: str = "") -> str:
    msg = _PROPULSION.get(role, "Run `gt hook` to check your hook.")
    if work_dir:
        msg = f"{msg} Working directory: {work_dir}"
    return msg
