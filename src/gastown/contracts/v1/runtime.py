from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RuntimeTmuxConfig(BaseModel):
    ready_prompt_prefix: str = ""
    ready_delay_ms: int = 0

    model_config = ConfigDict(extra="ignore")


class RuntimeHooksConfig(BaseModel):
    provider: str = ""
    dir: str = ""
    settings_file: str = ""

    model_config = ConfigDict(extra="ignore")


class RuntimeSessionConfig(BaseModel):
    session_id_env: str = ""
    config_dir_env: str = ""

    model_config = ConfigDict(extra="ignore")


class RuntimeConfig(BaseModel):
    """Resolved per-provider launch settings for one role start."""

    provider: str = ""
    command: str = ""
    args: List[str] = Field(default_factory=list)
    prompt_flag: str = ""
    env: Dict[str, str] = Field(default_factory=dict)
    tmux: Optional[RuntimeTmuxConfig] = None
    hooks: Optional[RuntimeHooksConfig] = None
    session: Optional[RuntimeSessionConfig] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def ready_delay_ms(self) -> int:
        return self.tmux.ready_delay_ms if self.tmux is not None else 0

    @property
    def ready_prompt_prefix(self) -> str:
        return self.tmux.ready_prompt_prefix if self.tmux is not None else ""

    @property
    def session_id_env(self) -> str:
        return self.session.session_id_env if self.session is not None else ""

    @property
    def config_dir_env(self) -> str:
        return self.session.config_dir_env if self.session is not None else ""
