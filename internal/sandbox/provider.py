from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class SandboxError(RuntimeError):
    pass


class SandboxNotActive(SandboxError):
    def __init__(self) -> None:
        super().__init__("No active sandbox")


class SandboxFileNotFound(SandboxError, FileNotFoundError):
    def __init__(self, path: str) -> None:
        super().__init__(f"file not found in sandbox: {path}")
        self.path = path


@dataclass
class SandboxInfo:
    sandbox_id: str
    url: str
    provider: str
    created_at: int
    dev_port: int = 5173


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int
    success: bool

    @classmethod
    def from_exit(cls, stdout: str, stderr: str, exit_code: int) -> "CommandResult":
        return cls(stdout=stdout, stderr=stderr, exit_code=exit_code, success=exit_code == 0)


@dataclass
class HealthStatus:
    healthy: bool
    error: Optional[str] = None


class SandboxProvider:
    """Uniform handle over one ephemeral execution environment.

    Backends subclass this and implement every method. ``run_command`` and
    ``install_packages`` report failing exits through ``CommandResult``
    instead of raising; everything else raises ``SandboxError`` subclasses.
    Relative paths resolve against the backend's sandbox root.
    """

    name = "abstract"

    def create(self) -> SandboxInfo:
        raise NotImplementedError

    def info(self) -> Optional[SandboxInfo]:
        raise NotImplementedError

    def run_command(self, command: str) -> CommandResult:
        raise NotImplementedError

    def write_file(self, path: str, content: str) -> None:
        raise NotImplementedError

    def read_file(self, path: str) -> str:
        raise NotImplementedError

    def list_files(self, directory: Optional[str] = None) -> List[str]:
        raise NotImplementedError

    def install_packages(self, packages: List[str]) -> CommandResult:
        raise NotImplementedError

    def restart_dev_server(self) -> None:
        raise NotImplementedError

    def check_health(self) -> HealthStatus:
        raise NotImplementedError

    def terminate(self) -> None:
        raise NotImplementedError
