from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict

from . import __version__
from .contracts.v1 import CommandError, CommandResponse
from .kernel.errors import GastownError, SessionError
from .kernel.lifecycle import SessionManager
from .kernel.roles import KNOWN_ROLES, RoleIdentity
from .kernel.runtime import detect_all_runtimes
from .runners.tmux import TmuxBackend
from .util.obslog import setup_root_json_logging

logger = logging.getLogger("gastown.cli")

# Exit codes: precondition outcomes callers are expected to branch on vs failures.
EXIT_OK = 0
EXIT_PRECONDITION = 1
EXIT_FAILURE = 2


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _ok(result: Dict[str, Any]) -> int:
    _print_json(CommandResponse(ok=True, result=result).model_dump())
    return EXIT_OK


def _fail(e: Exception) -> int:
    code = getattr(e, "code", "error")
    resp = CommandResponse(ok=False, error=CommandError(code=str(code), message=str(e)))
    _print_json(resp.model_dump())
    if isinstance(e, SessionError) and code in ("not_running", "already_running", "foreground_deprecated"):
        return EXIT_PRECONDITION
    return EXIT_FAILURE


def _manager(args: argparse.Namespace) -> SessionManager:
    identity = RoleIdentity(role=args.role, rig=args.rig_name or Path(args.rig).resolve().name, name=args.name)
    return SessionManager(identity, Path(args.rig).expanduser().resolve(), TmuxBackend())


def cmd_start(args: argparse.Namespace) -> int:
    try:
        mgr = _manager(args)
        res = mgr.start(foreground=bool(args.foreground), agent_override=args.agent, env_overrides=list(args.env))
    except (GastownError, ValueError) as e:
        return _fail(e)
    return _ok(res.to_dict())


def cmd_stop(args: argparse.Namespace) -> int:
    try:
        mgr = _manager(args)
        mgr.stop()
    except (GastownError, ValueError) as e:
        return _fail(e)
    return _ok({"session": mgr.session_name, "stopped": True})


def cmd_status(args: argparse.Namespace) -> int:
    try:
        mgr = _manager(args)
        info = mgr.status()
        state = mgr.session_state()
    except (GastownError, ValueError) as e:
        return _fail(e)
    return _ok({"state": state.value, "session": info.model_dump()})


def cmd_agents(args: argparse.Namespace) -> int:
    return _ok({"agents": [r.__dict__ for r in detect_all_runtimes()]})


def cmd_version(args: argparse.Namespace) -> int:
    print(__version__)
    return EXIT_OK


def _add_identity_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("role", choices=list(KNOWN_ROLES), help="Role to manage")
    p.add_argument("--rig", default=".", help="Rig directory (default: .)")
    p.add_argument("--rig-name", default="", help="Rig name (default: rig directory name)")
    p.add_argument("--name", default="", help="Worker name (polecat/crew)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gt-session", description="Role session lifecycle (tmux-backed)")
    p.add_argument("--log-level", default="", help="Log level (default: $GT_LOG_LEVEL or INFO)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_start = sub.add_parser("start", help="Start a role session (recreates zombie sessions)")
    _add_identity_args(p_start)
    p_start.add_argument("--agent", default="", help="Agent alias overriding settings and role start command")
    p_start.add_argument("--env", action="append", default=[], help="KEY=VALUE override (repeatable, highest priority)")
    p_start.add_argument("--foreground", action="store_true", help=argparse.SUPPRESS)
    p_start.set_defaults(func=cmd_start)

    p_stop = sub.add_parser("stop", help="Stop a role session")
    _add_identity_args(p_stop)
    p_stop.set_defaults(func=cmd_stop)

    p_status = sub.add_parser("status", help="Show a role session")
    _add_identity_args(p_status)
    p_status.set_defaults(func=cmd_status)

    p_agents = sub.add_parser("agents", help="List known agent runtimes and whether they are installed")
    p_agents.set_defaults(func=cmd_agents)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_root_json_logging(component="gt-session", level=args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
