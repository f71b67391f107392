from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import yaml  # type: ignore
from pydantic import ValidationError

from ..contracts.v1 import RoleConfig
from .errors import ConfigError

logger = logging.getLogger("gastown.role_config")


def role_bead_id(role: str) -> str:
    """Town-level role bead id, e.g. `hq-witness-role`."""
    return f"hq-{role.strip().lower()}-role"


class RoleConfigSource(ABC):
    """Lookup of role beads (owned by the task tracker)."""

    @abstractmethod
    def get_role_config(self, role_id: str) -> Optional[RoleConfig]:
        """Return the role config, None when the bead does not exist."""


class NullRoleConfigSource(RoleConfigSource):
    def get_role_config(self, role_id: str) -> Optional[RoleConfig]:
        return None


class FileRoleConfigSource(RoleConfigSource):
    """Role beads exported as YAML files: `<dir>/<role_id>.yaml`."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @classmethod
    def for_town(cls, town_root: Path) -> "FileRoleConfigSource":
        return cls(Path(town_root) / ".beads" / "roles")

    def get_role_config(self, role_id: str) -> Optional[RoleConfig]:
        p = self.directory / f"{role_id}.yaml"
        if not p.exists():
            return None
        try:
            doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"loading role config {role_id}: {e}") from e
        if not isinstance(doc, dict):
            raise ConfigError(f"loading role config {role_id}: top level is not a mapping")
        doc.setdefault("id", role_id)
        try:
            return RoleConfig.model_validate(doc)
        except ValidationError as e:
            raise ConfigError(f"loading role config {role_id}: {e}") from e
