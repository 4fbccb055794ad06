#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from internal.api.server import Server
from internal.config import SANDBOX_PROVIDERS, Config, apply_env, default_config, expand_config_home, load_from_file
from internal.orchestrator import BuildRunManager
from internal.sandbox import SandboxFactory, SandboxRegistry
from internal.util.env import load_env_file

logger = logging.getLogger("buildd")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main() -> None:
    parser = argparse.ArgumentParser(prog="buildd")
    parser.add_argument("--listen", default="", help="listen address host:port")
    parser.add_argument("--auth-token", default="", help="auth token")
    parser.add_argument("--config", default="", help="config file")
    parser.add_argument("--base-url", default="", help="origin of the generation/apply/review endpoints")
    parser.add_argument("--sandbox-provider", default="", choices=("",) + SANDBOX_PROVIDERS, help="sandbox backend")
    parser.add_argument("--log-level", default="", help="log level (DEBUG, INFO, ...)")
    args = parser.parse_args()

    load_env_file(".env.local")
    load_env_file(".env")

    cfg = load_config(args.config or os.environ.get("BUILDD_CONFIG", ""))
    cfg = apply_env(cfg)
    apply_flags(cfg, args)
    cfg = expand_config_home(cfg)

    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)

    factory = SandboxFactory(cfg)
    registry = SandboxRegistry(factory)
    manager = BuildRunManager(http_timeout_s=cfg.http_timeout_s)
    server = Server(manager, cfg.auth_token, registry, cfg.base_url)
    host, port = parse_listen_addr(cfg.listen_addr)

    logger.info(
        "buildd listening on %s (sandbox provider %s, available %s)",
        cfg.listen_addr,
        factory.preferred(),
        ", ".join(factory.available_providers()),
    )
    if cfg.auth_token:
        logger.info("auth enabled (bearer)")
    if cfg.base_url:
        logger.info("collaborator base url: %s", cfg.base_url)

    try:
        uvicorn.run(server.handler(), host=host, port=port, log_level=cfg.log_level.lower())
    finally:
        registry.terminate_all()


def load_config(config_path: str) -> Config:
    if not config_path:
        return default_config()
    try:
        return load_from_file(config_path)
    except (OSError, ValueError) as err:
        logging.getLogger("buildd").warning("failed to load config file %s: %s", config_path, err)
        return default_config()


def apply_flags(cfg: Config, args: argparse.Namespace) -> Config:
    if args.listen:
        cfg.listen_addr = args.listen
    if args.auth_token:
        cfg.auth_token = args.auth_token
    if args.base_url:
        cfg.base_url = args.base_url
    if args.sandbox_provider:
        cfg.sandbox_provider = args.sandbox_provider
    if args.log_level:
        cfg.log_level = args.log_level.upper()
    return cfg


def parse_listen_addr(addr: str) -> tuple[str, int]:
    trimmed = addr.strip() or "127.0.0.1:8787"
    if ":" in trimmed:
        host, port_raw = trimmed.rsplit(":", 1)
    else:
        host, port_raw = trimmed, "8787"
    try:
        port = int(port_raw)
    except ValueError:
        port = 8787
    return host or "127.0.0.1", port


if __name__ == "__main__":
    main()
