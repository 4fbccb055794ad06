from __future__ import annotations

import logging
from typing import List, Optional

from internal.config import Config
from internal.util.path import expand_home
from .e2b_provider import E2BProvider
from .local import LocalProvider
from .provider import SandboxProvider

logger = logging.getLogger(__name__)


class SandboxFactory:
    """Chooses a sandbox backend from configuration."""

    def __init__(self, cfg: Config) -> None:
        self._cfg = cfg

    def preferred(self) -> str:
        return self._cfg.sandbox_provider or "auto"

    def is_e2b_configured(self) -> bool:
        return bool(self._cfg.e2b_api_key.strip())

    def available_providers(self) -> List[str]:
        out = []
        if self.is_e2b_configured():
            out.append("e2b")
        out.append("local")
        return out

    def create(self, preferred: Optional[str] = None) -> SandboxProvider:
        choice = (preferred or self.preferred()).strip().lower()
        if choice == "local":
            logger.info("creating local sandbox (provider=local)")
            return self._local()
        if choice == "e2b" and not self.is_e2b_configured():
            logger.warning("E2B requested but E2B_API_KEY is not set; falling back to local sandbox")
            return self._local()
        if self.is_e2b_configured():
            logger.info("creating e2b sandbox (provider=%s)", choice)
            return self._e2b()
        logger.info("creating local sandbox (provider=%s, e2b not configured)", choice)
        return self._local()

    def reconnect(self, sandbox_id: str) -> Optional[SandboxProvider]:
        """Reattach to a live E2B sandbox this process did not create."""
        if not self.is_e2b_configured():
            return None
        provider = self._e2b()
        if not provider.reconnect(sandbox_id):
            return None
        logger.info("reconnected to e2b sandbox %s", sandbox_id)
        return provider

    def _local(self) -> LocalProvider:
        return LocalProvider(expand_home(self._cfg.sandbox_root))

    def _e2b(self) -> E2BProvider:
        return E2BProvider(
            self._cfg.e2b_api_key,
            template=self._cfg.e2b_template,
            timeout_ms=self._cfg.e2b_timeout_ms,
        )
