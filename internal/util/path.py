from __future__ import annotations

from pathlib import Path


def expand_home(value: str) -> str:
    if not value or not value.startswith("~"):
        return value
    return str(Path(value).expanduser())
