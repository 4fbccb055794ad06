from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, Optional

TIMEOUT_EXIT_CODE = 124


@dataclass
class CmdResult:
    cmd: str
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False


@dataclass
class ExecOptions:
    dir: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    timeout_ms: Optional[int] = None
    background: bool = False


def run_command(cmd: str, opts: ExecOptions | None = None) -> CmdResult:
    """Run ``cmd`` through bash and capture its output.

    Non-zero exits and timeouts are reported on the result; only a missing
    command string or an unstartable shell raise.
    """
    if not cmd:
        raise ValueError("cmd is empty")
    if opts is None:
        opts = ExecOptions()
    timeout_ms = opts.timeout_ms if opts.timeout_ms and opts.timeout_ms > 0 else 10 * 60_000
    start = time.time()

    env = dict(os.environ)
    if opts.env:
        env.update(opts.env)

    if opts.background:
        subprocess.Popen(
            ["/bin/bash", "-lc", cmd],
            cwd=opts.dir,
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        return CmdResult(cmd=cmd, exit_code=0, stdout="", stderr="", duration_ms=_elapsed_ms(start))

    process = subprocess.Popen(
        ["/bin/bash", "-lc", cmd],
        cwd=opts.dir,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        stdout, stderr = process.communicate(timeout=timeout_ms / 1000)
    except subprocess.TimeoutExpired:
        process.kill()
        stdout, stderr = process.communicate()
        return CmdResult(
            cmd=cmd,
            exit_code=TIMEOUT_EXIT_CODE,
            stdout=stdout or "",
            stderr=(stderr or "") + f"\ncommand timed out after {timeout_ms}ms",
            duration_ms=_elapsed_ms(start),
            timed_out=True,
        )

    return CmdResult(
        cmd=cmd,
        exit_code=process.returncode if process.returncode is not None else 1,
        stdout=stdout or "",
        stderr=stderr or "",
        duration_ms=_elapsed_ms(start),
    )


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)
