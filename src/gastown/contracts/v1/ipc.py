from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class CommandError(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class CommandResponse(BaseModel):
    v: int = 1
    ok: bool
    result: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[CommandError] = None

    model_config = ConfigDict(extra="forbid")
