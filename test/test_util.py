from __future__ import annotations

import re
import tempfile
from pathlib import Path

import pytest

from internal.util import CancelToken, ExecOptions, WalkOptions, new_run_id, new_sandbox_id, run_command, walk_files


def test_run_command_captures_output_and_exit_code() -> None:
    ok = run_command("echo out; echo err >&2")
    assert ok.exit_code == 0
    assert "out" in ok.stdout
    assert "err" in ok.stderr
    assert not ok.timed_out

    bad = run_command("exit 7")
    assert bad.exit_code == 7


def test_run_command_env_and_dir() -> None:
    tmp = tempfile.mkdtemp(prefix="ticketforge-")
    res = run_command('printf "%s" "$TF_VALUE" > value.txt', ExecOptions(dir=tmp, env={"TF_VALUE": "42"}))
    assert res.exit_code == 0
    assert (Path(tmp) / "value.txt").read_text(encoding="utf-8") == "42"


def test_run_command_timeout() -> None:
    res = run_command("sleep 5", ExecOptions(timeout_ms=200))
    assert res.timed_out
    assert res.exit_code == 124
    assert "timed out" in res.stderr


def test_run_command_requires_command() -> None:
    with pytest.raises(ValueError):
        run_command("")


def test_walk_files_skips_build_dirs_and_caps() -> None:
    root = Path(tempfile.mkdtemp(prefix="ticketforge-"))
    for rel in ("a.txt", "src/b.ts", "dist/out.js", ".git/HEAD", "node_modules/x/index.js"):
        (root / rel).parent.mkdir(parents=True, exist_ok=True)
        (root / rel).write_text("x", encoding="utf-8")

    assert walk_files(str(root)) == ["a.txt", "src/b.ts"]
    assert walk_files(str(root), WalkOptions(max_files=1)) == ["a.txt"]
    with pytest.raises(FileNotFoundError):
        walk_files(str(root / "missing"))


def test_cancel_token_is_one_shot() -> None:
    token = CancelToken()
    assert not token.is_cancelled()
    assert token.cancel("stop")
    assert not token.cancel("again")
    assert token.is_cancelled()
    assert token.reason == "stop"


def test_ids_are_prefixed_and_unique() -> None:
    ids = {new_run_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.match(r"^run_\d{8}t\d{6}z_[a-z2-7]+$", i) for i in ids)
    assert new_sandbox_id().startswith("sbx_")
