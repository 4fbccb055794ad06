from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from internal.util.path import expand_home

SANDBOX_PROVIDERS = ("auto", "e2b", "local")


@dataclass
class Config:
    listen_addr: str = "127.0.0.1:8787"
    auth_token: str = ""
    # Origin of the generation/apply/review endpoints. Empty means the
    # origin of the request that started the run.
    base_url: str = ""
    sandbox_provider: str = "auto"
    sandbox_root: str = "~/.ticketforge/sandboxes"
    e2b_api_key: str = ""
    e2b_template: str = "base"
    e2b_timeout_ms: int = 55 * 60 * 1000
    http_timeout_s: float = 300.0
    log_level: str = "INFO"


def default_config() -> Config:
    return Config()


def load_from_file(file_path: str, base: Optional[Config] = None) -> Config:
    if not file_path:
        raise ValueError("path is empty")
    data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"config file must hold a JSON object: {file_path}")
    cfg = base or default_config()
    return Config(
        listen_addr=str(data.get("listen_addr", cfg.listen_addr)),
        auth_token=str(data.get("auth_token", cfg.auth_token)),
        base_url=str(data.get("base_url", cfg.base_url)),
        sandbox_provider=_provider(data.get("sandbox_provider", cfg.sandbox_provider)),
        sandbox_root=str(data.get("sandbox_root", cfg.sandbox_root)),
        e2b_api_key=str(data.get("e2b_api_key", cfg.e2b_api_key)),
        e2b_template=str(data.get("e2b_template", cfg.e2b_template)),
        e2b_timeout_ms=int(data.get("e2b_timeout_ms", cfg.e2b_timeout_ms)),
        http_timeout_s=float(data.get("http_timeout_s", cfg.http_timeout_s)),
        log_level=str(data.get("log_level", cfg.log_level)).upper(),
    )


def apply_env(cfg: Config, environ: Optional[Dict[str, str]] = None) -> Config:
    env = os.environ if environ is None else environ

    def get(*names: str) -> str:
        for name in names:
            value = (env.get(name) or "").strip()
            if value:
                return value
        return ""

    if get("BUILDD_LISTEN"):
        cfg.listen_addr = get("BUILDD_LISTEN")
    if get("BUILDD_AUTH_TOKEN"):
        cfg.auth_token = get("BUILDD_AUTH_TOKEN")
    if get("BUILDD_BASE_URL"):
        cfg.base_url = get("BUILDD_BASE_URL")
    if get("SANDBOX_PROVIDER", "PREFERRED_SANDBOX_PROVIDER"):
        cfg.sandbox_provider = _provider(get("SANDBOX_PROVIDER", "PREFERRED_SANDBOX_PROVIDER"))
    if get("BUILDD_SANDBOX_ROOT"):
        cfg.sandbox_root = get("BUILDD_SANDBOX_ROOT")
    if get("E2B_API_KEY"):
        cfg.e2b_api_key = get("E2B_API_KEY")
    if get("E2B_TEMPLATE_ID", "E2B_TEMPLATE"):
        cfg.e2b_template = get("E2B_TEMPLATE_ID", "E2B_TEMPLATE")
    if get("E2B_SANDBOX_TIMEOUT_MS"):
        try:
            timeout = int(get("E2B_SANDBOX_TIMEOUT_MS"))
        except ValueError:
            timeout = 0
        if timeout > 0:
            cfg.e2b_timeout_ms = timeout
    if get("BUILDD_LOG_LEVEL"):
        cfg.log_level = get("BUILDD_LOG_LEVEL").upper()
    return cfg


def expand_config_home(cfg: Config) -> Config:
    cfg.sandbox_root = expand_home(cfg.sandbox_root)
    return cfg


def _provider(value: object) -> str:
    raw = str(value or "").strip().lower()
    return raw if raw in SANDBOX_PROVIDERS else "auto"
