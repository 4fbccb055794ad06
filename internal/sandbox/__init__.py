from .e2b_provider import E2BProvider
from .factory import SandboxFactory
from .local import LocalProvider
from .provider import (
    CommandResult,
    HealthStatus,
    SandboxError,
    SandboxFileNotFound,
    SandboxInfo,
    SandboxNotActive,
    SandboxProvider,
)
from .registry import SandboxNotRegistered, SandboxRegistry

__all__ = [
    "E2BProvider",
    "SandboxFactory",
    "LocalProvider",
    "CommandResult",
    "HealthStatus",
    "SandboxError",
    "SandboxFileNotFound",
    "SandboxInfo",
    "SandboxNotActive",
    "SandboxProvider",
    "SandboxNotRegistered",
    "SandboxRegistry",
]
