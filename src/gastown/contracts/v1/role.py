from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoleConfig(BaseModel):
    """Role bead payload: an optional start command template and env templates."""

    v: int = 1
    id: str = ""
    start_command: str = ""
    env_vars: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class SessionInfo(BaseModel):
    name: str
    windows: int = 0
    created: str = ""
    attached: bool = False
    activity: str = ""
    pane_command: Optional[str] = None

    model_config = ConfigDict(extra="ignore")
