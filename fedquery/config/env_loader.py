"""Loads ``.env/<name>.env`` files (``KEY=VALUE`` per line).

Blank lines and ``#`` comments are skipped, and a ``export `` prefix is
allowed. Matching single or double quotes around a value are stripped.
Inline comments are kept as part of the value.
"""

from __future__ import annotations

from pathlib import Path

# Repository root: two levels up from fedquery/config/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def load_env_file(env_name: str = "local", project_root: Path | None = None) -> dict[str, str]:
    """Return the variables of ``.env/<env_name>.env``; empty when the file is missing."""
    root = project_root or _PROJECT_ROOT
    env_file = root / ".env" / f"{env_name}.env"
    if not env_file.is_file():
        return {}
    return parse_env_text(env_file.read_text(encoding="utf-8"))


def parse_env_text(text: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        result[key.strip()] = value
    return result
