"""
End-to-end tests for the edge router application.

Tests cover:
- Static asset delegation
- Routing misses (404/405)
- Chat forwarding through a fake gateway
- Error translation to {"error": ...} with status 500
"""

import json
from dataclasses import replace

import httpx
import pytest

from edge_router_service import ROUTE_NOT_CONFIGURED_MESSAGE, create_app, to_response
from forwarder import CONNECTION_FAILURE_MESSAGE, Forwarder, ForwardSuccess


@pytest.fixture
def static_dir(test_config, tmp_path):
    root = tmp_path / "public"
    root.mkdir()
    (root / "index.html").write_text("<h1>chat</h1>", encoding="utf-8")
    (root / "app.js").write_text("console.log('hi');", encoding="utf-8")
    return root


@pytest.fixture
def app(test_config, gateway, static_dir):
    forwarder = Forwarder(test_config, client_factory=gateway.client)
    return create_app(test_config, forwarder=forwarder)


@pytest.fixture
async def client(app):
    """In-process ASGI client (avoids TestClient's blocking portal)."""
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


# ============================================================================
# Routing
# ============================================================================

class TestRouting:
    @pytest.mark.asyncio
    async def test_root_serves_index(self, client, gateway):
        r = await client.get("/")
        assert r.status_code == 200
        assert "<h1>chat</h1>" in r.text
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_static_file(self, client):
        r = await client.get("/app.js")
        assert r.status_code == 200
        assert r.text == "console.log('hi');"

    @pytest.mark.asyncio
    async def test_missing_static_file(self, client):
        r = await client.get("/nope.css")
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_get_chat_is_405(self, client, gateway):
        r = await client.get("/api/chat")
        assert r.status_code == 405
        assert r.text == "Method not allowed"
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_unknown_api_is_404(self, client, gateway):
        r = await client.get("/api/unknown")
        assert r.status_code == 404
        assert r.text == "Not found"
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_docs_paths_are_not_served_by_framework(self, client):
        r = await client.get("/docs")
        assert r.status_code == 404


# ============================================================================
# Chat forwarding
# ============================================================================

class TestChat:
    @pytest.mark.asyncio
    async def test_forwards_and_streams(self, client, gateway, test_config):
        sse = b'data: {"choices":[{"delta":{"content":"Hello"}}]}\n\ndata: [DONE]\n\n'

        async def body():
            yield sse[:20]
            yield sse[20:]

        gateway.handler = lambda request: httpx.Response(
            200,
            headers={"content-type": "text/event-stream", "cf-aig-step": "0"},
            content=body(),
        )

        r = await client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert r.status_code == 200
        assert r.content == sse
        assert r.headers["content-type"] == "text/event-stream"
        assert r.headers["cf-aig-step"] == "0"
        assert gateway.last_payload["messages"] == [
            {"role": "system", "content": test_config.system_prompt},
            {"role": "user", "content": "hi"},
        ]
        assert gateway.last_payload["model"] == "dynamic/hybrid_split"
        assert gateway.last_payload["stream"] is True

    @pytest.mark.asyncio
    async def test_empty_object_body(self, client, gateway, test_config):
        r = await client.post("/api/chat", json={})
        assert r.status_code == 200
        assert gateway.last_payload["messages"] == [
            {"role": "system", "content": test_config.system_prompt}
        ]

    @pytest.mark.asyncio
    async def test_non_json_body(self, client, gateway, test_config):
        r = await client.post(
            "/api/chat", content=b"hello there", headers={"content-type": "text/plain"}
        )
        assert r.status_code == 200
        assert gateway.last_payload["messages"] == [
            {"role": "system", "content": test_config.system_prompt}
        ]

    @pytest.mark.asyncio
    async def test_upstream_status_passthrough_on_success(self, client, gateway):
        gateway.handler = lambda request: httpx.Response(
            201, headers={"content-type": "application/json"}, content=b'{"ok":true}'
        )
        r = await client.post("/api/chat", json={})
        assert r.status_code == 201
        assert r.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_upstream_429_becomes_500(self, client, gateway):
        gateway.handler = lambda request: httpx.Response(
            429, content=b'{"error":{"message":"rate limited by provider"}}'
        )

        r = await client.post("/api/chat", json={"messages": []})

        assert r.status_code == 500
        assert r.headers["content-type"] == "application/json"
        body = r.json()
        assert set(body) == {"error"}
        assert isinstance(body["error"], str)
        assert "rate limited by provider" not in body["error"]

    @pytest.mark.asyncio
    async def test_unreachable_gateway(self, client, gateway):
        def boom(request):
            raise httpx.ConnectError("name resolution failed", request=request)

        gateway.handler = boom

        r = await client.post("/api/chat", json={"messages": []})

        assert r.status_code == 500
        assert r.json() == {"error": CONNECTION_FAILURE_MESSAGE}

    @pytest.mark.asyncio
    async def test_rejected_and_unreachable_are_distinguishable(self, client, gateway):
        gateway.handler = lambda request: httpx.Response(500, content=b"oops")
        rejected = await client.post("/api/chat", json={})

        def boom(request):
            raise httpx.ConnectError("reset", request=request)

        gateway.handler = boom
        unreachable = await client.post("/api/chat", json={})

        assert rejected.status_code == unreachable.status_code == 500
        assert rejected.json()["error"] != unreachable.json()["error"]

    @pytest.mark.asyncio
    async def test_incomplete_route_config(self, test_config, gateway, static_dir):
        cfg = replace(test_config, route=replace(test_config.route, dynamic_route_name=""))
        app = create_app(cfg, forwarder=Forwarder(cfg, client_factory=gateway.client))
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
            r = await c.post("/api/chat", json={})

        assert r.status_code == 500
        assert r.json() == {"error": ROUTE_NOT_CONFIGURED_MESSAGE}
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_request_id_header_is_accepted(self, client, gateway):
        r = await client.post(
            "/api/chat",
            content=json.dumps({"messages": [{"role": "user", "content": "x"}]}),
            headers={"x-request-id": "abc-123", "content-type": "application/json"},
        )
        assert r.status_code == 200
        assert len(gateway.requests) == 1


# ============================================================================
# Edge cases
# ============================================================================

class TestEdgeCases:
    @pytest.mark.asyncio
    async def test_nan_in_body_is_treated_as_empty_conversation(self, client, gateway, test_config):
        r = await client.post(
            "/api/chat",
            content=b'{"messages":[{"role":"user","content":NaN}]}',
            headers={"content-type": "application/json"},
        )

        assert r.status_code == 200
        assert len(gateway.requests) == 1
        assert gateway.last_payload["messages"] == [
            {"role": "system", "content": test_config.system_prompt}
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND", "MKCOL"])
    async def test_unregistered_method_on_unknown_api_path(self, client, method):
        r = await client.request(method, "/api/unknown")
        assert r.status_code == 404
        assert r.text == "Not found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND"])
    async def test_unregistered_method_on_chat(self, client, gateway, method):
        r = await client.request(method, "/api/chat")
        assert r.status_code == 405
        assert r.text == "Method not allowed"
        assert gateway.requests == []

    @pytest.mark.asyncio
    async def test_success_response_closes_upstream_afterwards(self):
        closed = []

        async def body():
            yield b"data: [DONE]\n\n"

        async def close():
            closed.append(True)

        response = to_response(
            ForwardSuccess(
                status_code=200,
                headers=[("content-type", "text/event-stream")],
                body=body(),
                close=close,
            )
        )

        assert response.background is not None
        await response.background()
        assert closed == [True]
