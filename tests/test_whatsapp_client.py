import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from app.whatsapp.client import WhatsAppClient, create_whatsapp_client, normalize_phone


def _client(handler, max_retries=3):
    return WhatsAppClient(
        "https://graph.example.com/v19.0/",
        "secret",
        "555000",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def test_send_text_posts_message():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    result = asyncio.run(_client(handler).send_text("+91 98765-43210", "Hello"))

    assert result == {"messages": [{"id": "wamid.1"}]}
    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == "https://graph.example.com/v19.0/555000/messages"
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body["to"] == "919876543210"
    assert body["text"]["body"] == "Hello"
    assert body["messaging_product"] == "whatsapp"


def test_error_status_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "invalid recipient"}})

    with pytest.raises(RuntimeError, match="400"):
        asyncio.run(_client(handler).send_text("123", "Hello"))


def test_transport_errors_are_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"messages": []})

    assert asyncio.run(_client(handler).send_text("123", "Hello")) == {"messages": []}
    assert len(attempts) == 3


def test_retries_exhausted():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RuntimeError, match="after 2 attempts"):
        asyncio.run(_client(handler, max_retries=2).send_text("123", "Hello"))
    assert len(attempts) == 2


def test_ping_hits_phone_number():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/v19.0/555000"
        return httpx.Response(200, json={"id": "555000"})

    asyncio.run(_client(handler).ping())


def test_normalize_phone():
    assert normalize_phone("+1 (555) 010-0199") == "15550100199"
    assert normalize_phone(None) == ""


def test_create_client_requires_credentials():
    disabled = SimpleNamespace(whatsapp_enabled=False)
    assert create_whatsapp_client(disabled) is None

    settings = SimpleNamespace(
        whatsapp_enabled=True,
        whatsapp_api_url="https://graph.example.com/v19.0",
        whatsapp_token="secret",
        whatsapp_phone_number_id="555000",
        whatsapp_max_retries=5,
        whatsapp_timeout_seconds=3.0,
    )
    client = create_whatsapp_client(settings)
    assert client.max_retries == 5
    assert client.timeout == 3.0
    assert client.base_url == "https://graph.example.com/v19.0"


def test_ping_transport_error_becomes_runtime_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RuntimeError, match="GET /555000 failed"):
        asyncio.run(_client(handler).ping())
