"""JSON-lines logging for the session controller.

Modules log through `logging.getLogger("gastown.<area>")` and pass
correlation fields via `extra=`; the formatter lifts the known ones into
the JSON object.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

CONTEXT_KEYS = ("op", "session", "role", "rig", "provider", "path", "step")


class JsonlFormatter(logging.Formatter):
    def __init__(self, *, component: str):
        super().__init__()
        self.component = str(component or "").strip() or "gastown"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "component": self.component,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            value = str(getattr(record, key, "") or "").strip()
            if value:
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def default_level() -> str:
    return os.environ.get("GT_LOG_LEVEL", "").strip() or "INFO"


def _parse_level(level: str) -> int:
    value = logging.getLevelName(str(level or "").strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_root_json_logging(
    *,
    component: str,
    level: str = "",
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """Install a single JSONL handler on the root logger.

    Repeated calls only adjust the level; `force=True` replaces every
    existing root handler.
    """
    lvl = _parse_level(level or default_level())
    root = logging.getLogger()
    root.setLevel(lvl)

    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
    else:
        ours = [h for h in root.handlers if isinstance(h.formatter, JsonlFormatter)]
        if ours:
            for h in ours:
                h.setLevel(lvl)
            return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(lvl)
    handler.setFormatter(JsonlFormatter(component=component))
    root.addHandler(handler)
