"""Idempotent, additive-only merging of required fragments into JSON documents.

Every function here either leaves the document untouched or appends to it;
nothing is removed or reordered, and unknown keys are carried through as-is.
Callers write back only when a merge reports a change.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..util.fs import atomic_write_json
from .errors import ConvergenceError

logger = logging.getLogger("gastown.convergence")

KeyFunc = Callable[[Any], Any]


def load_document(path: Path) -> Dict[str, Any]:
    """Read a JSON object; missing or blank files read as `{}`."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConvergenceError("reading", path, e) from e
    try:
        raw = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConvergenceError("parsing", path, e) from e
    if not raw.strip():
        return {}
    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise ConvergenceError("parsing", path, e) from e
    if not isinstance(doc, dict):
        raise ConvergenceError("parsing", path, "top level is not an object")
    return doc


def write_document(path: Path, doc: Mapping[str, Any]) -> None:
    try:
        atomic_write_json(path, dict(doc), indent=2)
    except (OSError, TypeError, ValueError) as e:
        raise ConvergenceError("writing", path, e) from e
    logger.info("wrote %s", path, extra={"path": str(path)})


def canonical(value: Any) -> str:
    """Key-order independent identity of a JSON value."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def contains_entry(existing: Iterable[Any], entry: Any, *, key: Optional[KeyFunc] = None) -> bool:
    project = key or canonical
    target = project(entry)
    return any(project(candidate) == target for candidate in existing)


def merge_entries(existing: List[Any], required: Iterable[Any], *, key: Optional[KeyFunc] = None) -> bool:
    """Append each required entry that has no equal in `existing`. Mutates `existing`."""
    changed = False
    for entry in required:
        if contains_entry(existing, entry, key=key):
            continue
        existing.append(entry)
        changed = True
    return changed


def ensure_list(doc: Dict[str, Any], field: str, *, path: Path) -> List[Any]:
    value = doc.get(field)
    if value is None:
        value = []
        doc[field] = value
    if not isinstance(value, list):
        raise ConvergenceError("parsing", path, f"{field} is not a list")
    return value


def ensure_mapping(doc: Dict[str, Any], field: str, *, path: Path) -> Dict[str, Any]:
    value = doc.get(field)
    if value is None:
        value = {}
        doc[field] = value
    if not isinstance(value, dict):
        raise ConvergenceError("parsing", path, f"{field} is not an object")
    return value


def ensure_version(doc: Dict[str, Any], required: int, *, field: str = "version") -> bool:
    current = doc.get(field)
    # Any number counts as set; only missing or non-numeric values are replaced.
    if isinstance(current, bool) or not isinstance(current, (int, float)) or current < required:
        doc[field] = required
        return True
    return False


def merge_collections(
    existing: Dict[str, Any],
    required: Mapping[str, Iterable[Any]],
    *,
    path: Path,
) -> bool:
    """Merge named collections (name -> ordered entries) into `existing`."""
    changed = False
    for name, entries in required.items():
        current = existing.get(name)
        if current is None:
            current = []
        if not isinstance(current, list):
            raise ConvergenceError("parsing", path, f"collection {name} is not a list")
        if merge_entries(current, entries):
            changed = True
        if current:
            existing[name] = current
    return changed
