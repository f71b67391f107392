from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List

AUTONOMOUS_ROLES = ("polecat", "witness", "refinery", "deacon")
RIG_SINGLETON_ROLES = ("witness", "refinery")
NAMED_WORKER_ROLES = ("polecat", "crew")
TOWN_ROLES = ("mayor", "deacon")
KNOWN_ROLES = RIG_SINGLETON_ROLES + NAMED_WORKER_ROLES + TOWN_ROLES

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")


class RoleType(str, Enum):
    AUTONOMOUS = "autonomous"
    INTERACTIVE = "interactive"


def role_type_for(role: str) -> RoleType:
    if str(role or "").strip().lower() in AUTONOMOUS_ROLES:
        return RoleType.AUTONOMOUS
    return RoleType.INTERACTIVE


def is_autonomous_role(role: str) -> bool:
    return role_type_for(role) is RoleType.AUTONOMOUS


@dataclass(frozen=True)
class RoleIdentity:
    """A role instance: (role, rig[, name]). Maps to exactly one session."""

    role: str
    rig: str = ""
    name: str = ""

    def __post_init__(self) -> None:
        role = self.role.strip().lower()
        if role not in KNOWN_ROLES:
            raise ValueError(f"unknown role: {self.role}")
        object.__setattr__(self, "role", role)
        if role not in TOWN_ROLES and not _NAME_RE.match(self.rig):
            raise ValueError(f"invalid rig name for {role}: {self.rig!r}")
        if role in NAMED_WORKER_ROLES and not _NAME_RE.match(self.name):
            raise ValueError(f"{role} requires a name")

    @property
    def is_town_role(self) -> bool:
        return self.role in TOWN_ROLES

    @property
    def session_name(self) -> str:
        if self.is_town_role:
            return f"hq-{self.role}"
        if self.role == "polecat":
            return f"gt-{self.rig}-{self.name}"
        if self.role == "crew":
            return f"gt-{self.rig}-crew-{self.name}"
        return f"gt-{self.rig}-{self.role}"

    @property
    def address(self) -> str:
        """Mail address used for nudges, e.g. `myrig/witness`."""
        if self.is_town_role:
            return f"{self.role}/"
        if self.role == "polecat":
            return f"{self.rig}/{self.name}"
        if self.role == "crew":
            return f"{self.rig}/crew/{self.name}"
        return f"{self.rig}/{self.role}"

    @property
    def bd_actor(self) -> str:
        if self.is_town_role:
            return self.role
        if self.role == "polecat":
            return f"{self.rig}/polecats/{self.name}"
        if self.role == "crew":
            return f"{self.rig}/crew/{self.name}"
        return f"{self.rig}/{self.role}"

    @property
    def display_name(self) -> str:
        title = self.role.capitalize()
        if self.is_town_role:
            return title
        if self.name:
            return f"{title} {self.name} of {self.rig}"
        return f"{title} for {self.rig}"


def work_dir_candidates(identity: RoleIdentity, rig_path: Path, town_root: Path) -> List[Path]:
    """Directory preference order, most specific first; the last entry always exists logically."""
    if identity.is_town_role:
        return [town_root / identity.role, town_root]
    if identity.role == "polecat":
        base = rig_path / "polecats" / identity.name
        return [base / identity.rig, base, rig_path]
    if identity.role == "crew":
        base = rig_path / "crew" / identity.name
        return [base / identity.rig, base, rig_path]
    base = rig_path / identity.role
    return [base / "rig", base, rig_path]


def settings_dir_for(identity: RoleIdentity, rig_path: Path, town_root: Path) -> Path:
    """Parent directory that receives hook settings; never the nested source checkout."""
    candidates = work_dir_candidates(identity, rig_path, town_root)
    if identity.is_town_role:
        return candidates[0]
    return candidates[1]
