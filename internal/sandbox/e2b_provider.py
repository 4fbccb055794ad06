from __future__ import annotations

import logging
import os
import shlex
import time
from typing import TYPE_CHECKING, List, Optional

from internal.util.clock import now_ms
from .provider import (
    CommandResult,
    HealthStatus,
    SandboxFileNotFound,
    SandboxInfo,
    SandboxNotActive,
    SandboxProvider,
)
from .shell import list_files_command

if TYPE_CHECKING:
    from e2b import Sandbox

logger = logging.getLogger(__name__)

SANDBOX_ROOT = "/app"
DEV_PORT = 5173


class E2BProvider(SandboxProvider):
    """Sandbox hosted on E2B, driven through the ``e2b`` SDK."""

    name = "e2b"

    def __init__(
        self,
        api_key: str,
        template: str = "base",
        timeout_ms: int = 55 * 60 * 1000,
        command_timeout_ms: int = 120_000,
        install_timeout_ms: int = 10 * 60_000,
        sandbox: Optional["Sandbox"] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._template = template or "base"
        self._timeout_ms = timeout_ms
        self._command_timeout_ms = command_timeout_ms
        self._install_timeout_ms = install_timeout_ms
        self._sandbox = sandbox
        self._info: Optional[SandboxInfo] = self._describe(sandbox) if sandbox is not None else None

    def create(self) -> SandboxInfo:
        if not self._api_key:
            raise ValueError("E2B_API_KEY is required to use the E2B sandbox provider")
        if self._sandbox is not None:
            self.terminate()
        from e2b import Sandbox

        self._sandbox = Sandbox.create(
            template=self._template,
            api_key=self._api_key,
            timeout=max(1, self._timeout_ms // 1000),
        )
        self._info = self._describe(self._sandbox)
        logger.info("e2b sandbox created: %s (template %s)", self._info.sandbox_id, self._template)
        return self._info

    def reconnect(self, sandbox_id: str) -> bool:
        from e2b import Sandbox

        try:
            self._sandbox = Sandbox.connect(sandbox_id, api_key=self._api_key)
        except Exception as err:
            logger.warning("e2b reconnect failed for %s: %s", sandbox_id, err)
            return False
        self._info = self._describe(self._sandbox)
        return True

    def info(self) -> Optional[SandboxInfo]:
        return self._info

    def run_command(self, command: str) -> CommandResult:
        return self._run(command, self._command_timeout_ms)

    def write_file(self, path: str, content: str) -> None:
        self._require().files.write(_full_path(path), content)

    def read_file(self, path: str) -> str:
        from e2b import NotFoundException

        try:
            return self._require().files.read(_full_path(path))
        except NotFoundException as err:
            raise SandboxFileNotFound(path) from err

    def list_files(self, directory: Optional[str] = None) -> List[str]:
        root = _full_path(directory or SANDBOX_ROOT).rstrip("/")
        res = self.run_command(list_files_command(root))
        if not res.success:
            return []
        prefix = root + "/"
        out = []
        for line in res.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            out.append(line[len(prefix) :] if line.startswith(prefix) else line)
        return sorted(out)

    def install_packages(self, packages: List[str]) -> CommandResult:
        self._require()
        pkgs = [p for p in packages or [] if p]
        if not pkgs:
            return CommandResult.from_exit("", "", 0)
        flags = os.environ.get("NPM_FLAGS", "").split()
        return self._run(shlex.join(["npm", "install", *flags, *pkgs]), self._install_timeout_ms)

    def restart_dev_server(self) -> None:
        sandbox = self._require()
        self.run_command("pkill -f vite || true")
        sandbox.commands.run(
            "sh -c " + shlex.quote(f"npm run dev -- --host 0.0.0.0 --port {DEV_PORT} --strictPort"),
            cwd=SANDBOX_ROOT,
            background=True,
        )
        # give vite a moment before the preview is hit
        time.sleep(2)
        if self._info:
            self._info.url = _preview_url(sandbox.get_host(DEV_PORT))

    def check_health(self) -> HealthStatus:
        if self._sandbox is None:
            return HealthStatus(healthy=False, error="No sandbox instance")
        try:
            running = self._sandbox.is_running(request_timeout=3.0)
        except Exception as err:
            return HealthStatus(healthy=False, error=str(err))
        if not running:
            return HealthStatus(healthy=False, error="SANDBOX_STOPPED")
        return HealthStatus(healthy=True)

    def terminate(self) -> None:
        sandbox, self._sandbox, self._info = self._sandbox, None, None
        if sandbox is None:
            return
        try:
            sandbox.kill()
        except Exception as err:
            logger.error("failed to terminate e2b sandbox: %s", err)

    def _run(self, command: str, timeout_ms: int) -> CommandResult:
        sandbox = self._require()
        try:
            result = sandbox.commands.run(
                "sh -c " + shlex.quote(command),
                cwd=SANDBOX_ROOT,
                timeout=timeout_ms / 1000,
            )
        except Exception as err:
            # the SDK raises on non-zero exits but keeps the captured output
            exit_code = int(getattr(err, "exit_code", 1) or 1)
            return CommandResult.from_exit(
                str(getattr(err, "stdout", "") or ""),
                str(getattr(err, "stderr", "") or str(err) or "Command failed"),
                exit_code,
            )
        return CommandResult.from_exit(
            str(result.stdout or ""),
            str(result.stderr or ""),
            int(result.exit_code or 0),
        )

    def _require(self) -> "Sandbox":
        if self._sandbox is None:
            raise SandboxNotActive()
        return self._sandbox

    def _describe(self, sandbox: "Sandbox") -> SandboxInfo:
        return SandboxInfo(
            sandbox_id=sandbox.sandbox_id,
            url=_preview_url(sandbox.get_host(DEV_PORT)),
            provider=self.name,
            created_at=now_ms(),
            dev_port=DEV_PORT,
        )


def _full_path(path: str) -> str:
    return path if path.startswith("/") else f"{SANDBOX_ROOT}/{path}"


def _preview_url(host: str) -> str:
    host = (host or "").strip()
    if not host or host.startswith(("http://", "https://")):
        return host
    return f"https://{host}"
