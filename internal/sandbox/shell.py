from __future__ import annotations

import shlex


def list_files_command(directory: str) -> str:
    """``find`` invocation listing files under ``directory`` minus build dirs."""
    root = directory.rstrip("/") or "/"
    tokens = ["find", root, "-type", "f"]
    for name in ("node_modules", ".git", ".next", "dist", "build"):
        tokens += ["-not", "-path", f"*/{name}/*"]
    return shlex.join(tokens)
