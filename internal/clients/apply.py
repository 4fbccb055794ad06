from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from internal.streaming.sse import iter_sse_json
from .errors import CollaboratorError
from .base import HTTPCollaborator


@dataclass
class ApplyResult:
    applied_files: List[str] = field(default_factory=list)
    duration_ms: int = 0


class ApplyClient(HTTPCollaborator):
    path = "/api/apply-ai-code-stream"

    def apply(self, base_url: str, sandbox_id: str, code: str, is_edit: bool = True) -> ApplyResult:
        started = time.monotonic()
        body = {"response": code, "isEdit": is_edit, "sandboxId": sandbox_id}
        final: Optional[Dict[str, Any]] = None
        try:
            with self._client() as client:
                with client.stream("POST", self._url(base_url), json=body) as resp:
                    if not resp.is_success:
                        raise CollaboratorError(f"Apply failed (HTTP {resp.status_code})", resp.status_code)
                    for data in iter_sse_json(resp.iter_lines()):
                        if data.get("type") == "complete":
                            final = data
                        elif data.get("type") == "error":
                            raise CollaboratorError(str(data.get("message") or data.get("error") or "Apply failed"))
        except httpx.HTTPError as err:
            raise CollaboratorError(f"Apply request failed: {err}") from err

        results = (final or {}).get("results") or {}
        created = results.get("filesCreated") or []
        updated = results.get("filesUpdated") or []
        applied = list(dict.fromkeys(str(p) for p in [*created, *updated]))
        return ApplyResult(applied_files=applied, duration_ms=int((time.monotonic() - started) * 1000))
