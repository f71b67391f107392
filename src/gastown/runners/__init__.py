from __future__ import annotations

from .base import SessionBackend
from .tmux import TmuxBackend

__all__ = ["SessionBackend", "TmuxBackend"]
