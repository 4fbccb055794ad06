from __future__ import annotations

import os
from pathlib import Path


def load_env_file(path: str) -> int:
    """Load KEY=VALUE lines into os.environ without overriding existing keys.

    Returns the number of variables that were set.
    """
    if not path:
        return 0
    file_path = Path(path)
    if not file_path.is_file():
        return 0
    loaded = 0
    for raw in file_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key in os.environ:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        os.environ[key] = value
        loaded += 1
    return loaded
