from __future__ import annotations

import base64
import secrets
from datetime import datetime, timezone


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dt%H%M%Sz")


def _new_id(prefix: str, size: int = 5) -> str:
    enc = base64.b32encode(secrets.token_bytes(size)).decode("ascii").lower().rstrip("=")
    return f"{prefix}{_timestamp()}_{enc}"


def new_run_id() -> str:
    return _new_id("run_")


def new_sandbox_id() -> str:
    return _new_id("sbx_")
