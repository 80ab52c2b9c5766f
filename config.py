"""Configuration management for the gateway edge router."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict

DEFAULT_GATEWAY_BASE_URL = "https://gateway.ai.cloudflare.com"
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful, friendly assistant. Provide concise and accurate responses."
)


def _env_bool(name: str, default: bool) -> bool:
    """Get boolean environment variable with fallback."""
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    """Get float environment variable with fallback."""
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    """Get integer environment variable with fallback."""
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    """Get string environment variable with fallback."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip()


def _csv_pairs(name: str) -> Dict[str, str]:
    """Parse comma-separated key=value pairs into a dict."""
    v = os.getenv(name, "")
    out: Dict[str, str] = {}
    for item in v.split(","):
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        out[key] = value.strip()
    return out


@dataclass(frozen=True)
class RouteConfig:
    """Where chat requests go: the gateway endpoint and the dynamic route."""

    account_id: str
    gateway_name: str
    dynamic_route_name: str
    base_url: str = DEFAULT_GATEWAY_BASE_URL

    @property
    def is_complete(self) -> bool:
        return bool(self.account_id and self.gateway_name and self.dynamic_route_name)

    @property
    def endpoint_url(self) -> str:
        base = self.base_url.rstrip("/")
        return f"{base}/v1/{self.account_id}/{self.gateway_name}/compat/chat/completions"

    @property
    def model_directive(self) -> str:
        return f"dynamic/{self.dynamic_route_name}"


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    route: RouteConfig

    # Gateway credentials (either may be empty)
    gateway_api_token: str
    gateway_auth_token: str

    # Payload settings
    max_tokens: int
    system_prompt: str
    metadata: Dict[str, str] = field(default_factory=dict)

    # Upstream connection
    connect_timeout_s: float = 30.0
    user_agent: str = "gateway-edge-router/0.1.0"

    # Server settings
    static_dir: str = "public"
    port: int = 8000
    log_level: str = "INFO"
    log_path: str = "/var/log/gateway-edge-router/router.log"
    log_color: bool = True

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables."""
        return cls(
            route=RouteConfig(
                account_id=_env_str("CF_ACCOUNT_ID", ""),
                gateway_name=_env_str("AI_GATEWAY_NAME", ""),
                dynamic_route_name=_env_str("DYNAMIC_ROUTE_NAME", ""),
                base_url=_env_str("AI_GATEWAY_BASE_URL", "") or DEFAULT_GATEWAY_BASE_URL,
            ),
            gateway_api_token=_env_str("GATEWAY_API_TOKEN", ""),
            gateway_auth_token=_env_str("GATEWAY_AUTH_TOKEN", ""),
            max_tokens=_env_int("MAX_TOKENS", 1024),
            system_prompt=_env_str("SYSTEM_PROMPT", "") or DEFAULT_SYSTEM_PROMPT,
            metadata=_csv_pairs("GATEWAY_METADATA"),
            connect_timeout_s=_env_float("CONNECT_TIMEOUT_S", 30.0),
            user_agent=_env_str("USER_AGENT", "gateway-edge-router/0.1.0"),
            static_dir=_env_str("STATIC_DIR", "public"),
            port=_env_int("PORT", 8000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper().strip(),
            log_path=_env_str("LOG_PATH", "/var/log/gateway-edge-router/router.log"),
            log_color=_env_bool("LOG_COLOR", True),
        )

    def validate(self, require_route: bool = True) -> None:
        """Validate configuration."""
        if require_route:
            if not self.route.account_id:
                raise ValueError("CF_ACCOUNT_ID is required")
            if not self.route.gateway_name:
                raise ValueError("AI_GATEWAY_NAME is required")
            if not self.route.dynamic_route_name:
                raise ValueError("DYNAMIC_ROUTE_NAME is required")
        if not self.route.base_url.startswith(("http://", "https://")):
            raise ValueError("AI_GATEWAY_BASE_URL must be an http(s) URL")
        if self.max_tokens <= 0:
            raise ValueError("MAX_TOKENS must be > 0")
        if not self.system_prompt:
            raise ValueError("SYSTEM_PROMPT must be non-empty")
        if self.connect_timeout_s <= 0:
            raise ValueError("CONNECT_TIMEOUT_S must be > 0")
        if not self.static_dir:
            raise ValueError("STATIC_DIR must be non-empty")
        if not self.log_path:
            raise ValueError("LOG_PATH must be non-empty")
        if not self.user_agent:
            raise ValueError("USER_AGENT must be non-empty")


def load_config() -> AppConfig:
    """Load configuration from environment."""
    return AppConfig.from_env()
