"""Utility functions for the gateway edge router."""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv

from config import AppConfig
from logger import LOGGER_NAME, mask_secret

log = logging.getLogger(LOGGER_NAME)


def load_env_files() -> None:
    """Load .env files from program and current directory."""
    this_dir = Path(__file__).resolve().parent
    p1 = this_dir / ".env"
    p2 = Path.cwd() / ".env"

    loaded_any = False
    if p1.exists():
        loaded_any = load_dotenv(dotenv_path=str(p1), override=True) or loaded_any
        log.info("Loaded .env from %s", str(p1))
    else:
        log.info("No .env in program directory: %s", str(p1))

    if p2.exists() and p2 != p1:
        loaded_any = load_dotenv(dotenv_path=str(p2), override=True) or loaded_any
        log.info("Loaded .env from %s", str(p2))
    elif p2 != p1:
        log.info("No .env in current directory: %s", str(p2))

    if not loaded_any:
        log.info(".env not loaded (not found or no variables applied).")


def dump_config(config: AppConfig) -> None:
    """Log effective configuration at startup."""
    route = config.route
    log.info("=== Edge router startup config ===")
    log.info("AI_GATEWAY_BASE_URL=%s", route.base_url)
    log.info("CF_ACCOUNT_ID=%s", route.account_id)
    log.info("AI_GATEWAY_NAME=%s", route.gateway_name)
    log.info("DYNAMIC_ROUTE_NAME=%s", route.dynamic_route_name)
    if route.is_complete:
        log.info("Upstream endpoint=%s model=%s", route.endpoint_url, route.model_directive)
    else:
        log.warning("Gateway route incomplete; /api/chat will fail until it is configured.")
    log.info(
        "GATEWAY_API_TOKEN_set=%s value=%s",
        bool(config.gateway_api_token),
        mask_secret(config.gateway_api_token),
    )
    log.info(
        "GATEWAY_AUTH_TOKEN_set=%s value=%s",
        bool(config.gateway_auth_token),
        mask_secret(config.gateway_auth_token),
    )
    log.info("MAX_TOKENS=%s", config.max_tokens)
    log.info("GATEWAY_METADATA=%s", config.metadata)
    log.info("CONNECT_TIMEOUT_S=%s", config.connect_timeout_s)
    log.info("USER_AGENT=%s", config.user_agent)
    log.info("STATIC_DIR=%s", config.static_dir)
    log.info("LOG_LEVEL=%s", config.log_level)
    log.info("LOG_PATH=%s", config.log_path)
    log.info("WorkingDir=%s", str(Path.cwd()))
    log.info("==================================")
