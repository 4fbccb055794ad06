from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .factory import SandboxFactory
from .provider import SandboxInfo, SandboxProvider


class SandboxNotRegistered(KeyError):
    def __init__(self, sandbox_id: str) -> None:
        super().__init__(f"No sandbox provider for sandboxId: {sandbox_id}")
        self.sandbox_id = sandbox_id

    def __str__(self) -> str:
        return self.args[0]


class SandboxRegistry:
    """Live sandbox providers keyed by sandbox id."""

    def __init__(self, factory: SandboxFactory) -> None:
        self._factory = factory
        self._providers: Dict[str, SandboxProvider] = {}
        self._lock = threading.Lock()

    def create(self, preferred: Optional[str] = None) -> SandboxInfo:
        provider = self._factory.create(preferred)
        info = provider.create()
        with self._lock:
            self._providers[info.sandbox_id] = provider
        return info

    def register(self, provider: SandboxProvider) -> SandboxInfo:
        info = provider.info()
        if not info:
            raise ValueError("provider has no active sandbox")
        with self._lock:
            self._providers[info.sandbox_id] = provider
        return info

    def get(self, sandbox_id: str) -> SandboxProvider:
        with self._lock:
            provider = self._providers.get(sandbox_id)
        if provider is not None:
            return provider
        provider = self._factory.reconnect(sandbox_id)
        if provider is None:
            raise SandboxNotRegistered(sandbox_id)
        with self._lock:
            return self._providers.setdefault(sandbox_id, provider)

    def list(self) -> List[SandboxInfo]:
        with self._lock:
            providers = list(self._providers.values())
        return [info for info in (p.info() for p in providers) if info]

    def terminate(self, sandbox_id: str) -> None:
        with self._lock:
            provider = self._providers.pop(sandbox_id, None)
        if provider is None:
            provider = self._factory.reconnect(sandbox_id)
        if provider is None:
            raise SandboxNotRegistered(sandbox_id)
        provider.terminate()

    def terminate_all(self) -> None:
        with self._lock:
            providers = list(self._providers.values())
            self._providers.clear()
        for provider in providers:
            provider.terminate()
