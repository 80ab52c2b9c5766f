"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- Project modules on sys.path
- Test environment variables (the service loads config at import time)
- A fake AI gateway built on httpx.MockTransport
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest

# Add parent directory to Python path so tests can import project modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Must be set during collection, before edge_router_service is imported.
os.environ.setdefault("CF_ACCOUNT_ID", "test-account")
os.environ.setdefault("AI_GATEWAY_NAME", "test-gw")
os.environ.setdefault("DYNAMIC_ROUTE_NAME", "test_route")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_PATH", "/tmp/edge_router_test.log")
os.environ.setdefault("LOG_COLOR", "false")

from config import AppConfig, RouteConfig  # noqa: E402


@pytest.fixture
def test_config(tmp_path):
    """Create test configuration."""
    return AppConfig(
        route=RouteConfig(
            account_id="acct-123",
            gateway_name="unified-api-gw",
            dynamic_route_name="hybrid_split",
            base_url="https://gateway.example.test",
        ),
        gateway_api_token="",
        gateway_auth_token="",
        max_tokens=1024,
        system_prompt="You are a test assistant.",
        metadata={},
        connect_timeout_s=5.0,
        user_agent="test-agent",
        static_dir=str(tmp_path / "public"),
        port=8000,
        log_level="DEBUG",
        log_path="/tmp/edge_router_test.log",
        log_color=False,
    )


class FakeGateway:
    """Records requests and answers them with a configurable handler."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=b"data: [DONE]\n\n",
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))

    @property
    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def gateway():
    return FakeGateway()
