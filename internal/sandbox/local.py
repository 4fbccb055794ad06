from __future__ import annotations

import logging
import os
import shlex
import shutil
from pathlib import Path
from typing import List, Optional

from internal.util.clock import now_ms
from internal.util.exec import ExecOptions, run_command
from internal.util.files import walk_files
from internal.util.id import new_sandbox_id
from .provider import (
    CommandResult,
    HealthStatus,
    SandboxError,
    SandboxFileNotFound,
    SandboxInfo,
    SandboxNotActive,
    SandboxProvider,
)

logger = logging.getLogger(__name__)


class LocalProvider(SandboxProvider):
    """Sandbox backed by a scratch directory on this host."""

    name = "local"

    def __init__(
        self,
        root_dir: str,
        dev_port: int = 5173,
        command_timeout_ms: int = 120_000,
        install_timeout_ms: int = 10 * 60_000,
    ) -> None:
        self._root_dir = Path(root_dir)
        self._dev_port = dev_port
        self._command_timeout_ms = command_timeout_ms
        self._install_timeout_ms = install_timeout_ms
        self._info: Optional[SandboxInfo] = None
        self._workdir: Optional[Path] = None

    @property
    def workdir(self) -> Optional[Path]:
        return self._workdir

    def create(self) -> SandboxInfo:
        if self._info:
            self.terminate()
        sandbox_id = new_sandbox_id()
        workdir = self._root_dir / sandbox_id
        workdir.mkdir(parents=True, exist_ok=False)
        self._workdir = workdir
        self._info = SandboxInfo(
            sandbox_id=sandbox_id,
            url=f"http://127.0.0.1:{self._dev_port}",
            provider=self.name,
            created_at=now_ms(),
            dev_port=self._dev_port,
        )
        logger.info("local sandbox created: %s at %s", sandbox_id, workdir)
        return self._info

    def info(self) -> Optional[SandboxInfo]:
        return self._info

    def run_command(self, command: str) -> CommandResult:
        workdir = self._require()
        res = run_command(command, ExecOptions(dir=str(workdir), timeout_ms=self._command_timeout_ms))
        return CommandResult.from_exit(res.stdout, res.stderr, res.exit_code)

    def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise SandboxFileNotFound(path)
        return target.read_text(encoding="utf-8")

    def list_files(self, directory: Optional[str] = None) -> List[str]:
        base = self._resolve(directory) if directory else self._require()
        if not base.is_dir():
            return []
        return walk_files(str(base))

    def install_packages(self, packages: List[str]) -> CommandResult:
        workdir = self._require()
        pkgs = [p for p in packages or [] if p]
        if not pkgs:
            return CommandResult.from_exit("", "", 0)
        flags = os.environ.get("NPM_FLAGS", "").split()
        cmd = shlex.join(["npm", "install", *flags, *pkgs])
        res = run_command(cmd, ExecOptions(dir=str(workdir), timeout_ms=self._install_timeout_ms))
        return CommandResult.from_exit(res.stdout, res.stderr, res.exit_code)

    def restart_dev_server(self) -> None:
        workdir = self._require()
        if not (workdir / "package.json").is_file():
            raise SandboxError("cannot start dev server: package.json is missing")
        run_command(shlex.join(["pkill", "-f", f"vite.*{self._dev_port}"]) + " || true", ExecOptions(dir=str(workdir)))
        run_command(
            shlex.join(["npm", "run", "dev", "--", "--host", "0.0.0.0", "--port", str(self._dev_port), "--strictPort"]),
            ExecOptions(dir=str(workdir), background=True),
        )

    def check_health(self) -> HealthStatus:
        if not self._workdir:
            return HealthStatus(healthy=False, error="No sandbox instance")
        if not self._workdir.is_dir():
            return HealthStatus(healthy=False, error="SANDBOX_STOPPED")
        return HealthStatus(healthy=True)

    def terminate(self) -> None:
        if self._workdir and self._workdir.exists():
            shutil.rmtree(self._workdir, ignore_errors=True)
        self._workdir = None
        self._info = None

    def _require(self) -> Path:
        if not self._workdir:
            raise SandboxNotActive()
        return self._workdir

    def _resolve(self, path: str) -> Path:
        workdir = self._require().resolve()
        target = (workdir / path.lstrip("/")).resolve()
        try:
            target.relative_to(workdir)
        except ValueError as err:
            raise SandboxError(f"path escapes sandbox: {path}") from err
        return target
