from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List

logger = logging.getLogger(__name__)


def format_sse(payload: object) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def iter_sse_json(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Decode ``data:`` frames from an SSE line stream into JSON objects.

    Frames that are not valid JSON objects are skipped.
    """
    data: List[str] = []
    for line in lines:
        if line == "":
            if data:
                payload = _decode("\n".join(data))
                data = []
                if payload is not None:
                    yield payload
            continue
        if line.startswith("data:"):
            value = line[5:]
            data.append(value[1:] if value.startswith(" ") else value)
    if data:
        payload = _decode("\n".join(data))
        if payload is not None:
            yield payload


def _decode(raw: str):
    try:
        value = json.loads(raw)
    except ValueError:
        logger.debug("skipping malformed sse frame: %.120s", raw)
        return None
    return value if isinstance(value, dict) else None
