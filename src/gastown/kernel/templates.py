"""Role pattern expansion.

Grammar: literal text, `{token}` where token is one of TOKENS, and the
escapes `{{` / `}}` for literal braces. `${...}` belongs to the shell and
is copied through untouched. Anything else inside braces is an
error rather than being passed through.
"""
from __future__ import annotations

from typing import Dict, Mapping

from .errors import TemplateError

TOKENS = ("town", "rig", "name", "role")


def expand_role_pattern(pattern: str, *, town: str = "", rig: str = "", name: str = "", role: str = "") -> str:
    values: Dict[str, str] = {"town": town, "rig": rig, "name": name, "role": role}
    return expand(pattern, values)


def expand(pattern: str, values: Mapping[str, str]) -> str:
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "$" and pattern.startswith("${", i):
            # Shell parameter expansion is left for the shell.
            end = pattern.find("}", i + 2)
            if end == -1:
                raise TemplateError(f"unterminated shell expansion at offset {i} in {pattern!r}")
            out.append(pattern[i : end + 1])
            i = end + 1
            continue
        if ch == "{":
            if pattern.startswith("{{", i):
                out.append("{")
                i += 2
                continue
            end = pattern.find("}", i + 1)
            if end == -1:
                raise TemplateError(f"unterminated token at offset {i} in {pattern!r}")
            token = pattern[i + 1 : end].strip()
            if token not in TOKENS:
                raise TemplateError(f"unknown token {{{token}}} in {pattern!r}")
            out.append(str(values.get(token) or ""))
            i = end + 1
            continue
        if ch == "}":
            if pattern.startswith("}}", i):
                out.append("}")
                i += 2
                continue
            raise TemplateError(f"stray '}}' at offset {i} in {pattern!r}")
        out.append(ch)
        i += 1
    return "".join(out)
