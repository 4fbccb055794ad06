from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from internal.streaming.sse import iter_sse_json
from .errors import CollaboratorError
from .base import HTTPCollaborator

logger = logging.getLogger(__name__)

BUILD_PROFILE = "implement_ticket"


class CodeGenerationClient(HTTPCollaborator):
    path = "/api/generate-ai-code-stream"

    def generate(
        self,
        base_url: str,
        model: str,
        prompt: str,
        sandbox_id: str,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Stream a generation and return the final code.

        Raw stream chunks are accumulated (and handed to ``on_chunk``); a
        non-empty ``generatedCode`` on the terminal ``complete`` frame wins
        over the accumulated text.
        """
        body = {
            "prompt": prompt,
            "model": model,
            "context": {"sandboxId": sandbox_id},
            "isEdit": True,
            "buildProfile": BUILD_PROFILE,
        }
        accumulated = ""
        final = ""
        try:
            with self._client() as client:
                with client.stream("POST", self._url(base_url), json=body) as resp:
                    if not resp.is_success:
                        raise CollaboratorError(
                            f"AI generation failed (HTTP {resp.status_code})", resp.status_code
                        )
                    for data in iter_sse_json(resp.iter_lines()):
                        kind = data.get("type")
                        if kind == "stream" and data.get("raw"):
                            text = str(data.get("text") or "")
                            accumulated += text
                            if on_chunk and text:
                                on_chunk(text)
                        elif kind == "complete":
                            code = data.get("generatedCode")
                            if isinstance(code, str) and code.strip():
                                final = code
                        elif kind == "error":
                            raise CollaboratorError(str(data.get("message") or data.get("error") or "AI generation failed"))
        except httpx.HTTPError as err:
            raise CollaboratorError(f"AI generation request failed: {err}") from err
        logger.debug("generation finished: %d streamed chars, final=%s", len(accumulated), bool(final))
        return final or accumulated
