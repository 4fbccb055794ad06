from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List

BUILD_DIR_NAMES: FrozenSet[str] = frozenset({"node_modules", ".git", ".next", "dist", "build"})


@dataclass
class WalkOptions:
    max_files: int = 5000
    max_depth: int = 30
    skip_dir_names: FrozenSet[str] = field(default_factory=lambda: BUILD_DIR_NAMES)


def default_walk_options() -> WalkOptions:
    return WalkOptions()


def walk_files(root: str, opts: WalkOptions | None = None) -> List[str]:
    """List files under ``root`` as sorted posix paths relative to it."""
    if opts is None:
        opts = default_walk_options()
    if opts.max_files <= 0:
        raise ValueError("max_files must be > 0")
    max_depth = opts.max_depth if opts.max_depth > 0 else 30

    base = Path(root).resolve()
    if not base.is_dir():
        raise FileNotFoundError(root)

    out: List[str] = []

    def walk_dir(current: Path, rel: Path) -> None:
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError:
            return
        for entry in entries:
            if len(out) >= opts.max_files:
                return
            next_rel = rel / entry.name
            if entry.is_dir():
                if entry.name in opts.skip_dir_names or len(next_rel.parts) > max_depth:
                    continue
                walk_dir(entry, next_rel)
            elif entry.is_file():
                out.append(next_rel.as_posix())

    walk_dir(base, Path(""))
    return out
