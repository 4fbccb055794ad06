from __future__ import annotations

from typing import Optional

import httpx

DEFAULT_TIMEOUT_S = 300.0


class HTTPCollaborator:
    """Shared plumbing for the collaborator clients.

    ``transport`` lets tests swap in ``httpx.MockTransport``.
    """

    path = ""

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_s, connect=min(timeout_s, 10.0))
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def _url(self, base_url: str) -> str:
        if not base_url:
            raise ValueError("base_url is required to reach collaborator endpoints")
        return base_url.rstrip("/") + self.path
