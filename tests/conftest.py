"""Shared fixtures: in-memory backends and a scripted completion gateway."""

import json

import httpx
import pytest

from finflow.api.app import create_app
from finflow.config import Settings
from finflow.repositories.memory import InMemoryRecordStore
from finflow.services.completion import CompletionClient, GatewayConfig
from finflow.services.identity import InMemoryIdentityProvider


class GatewayStub:
    """Answers chat-completion requests through ``httpx.MockTransport``."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.reply = None
        self.fail_transport = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append({"headers": request.headers, "url": str(request.url), "json": payload})
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"message": "upstream says no"}})
        content = self.reply or f"Advice about: {payload['messages'][-1]['content']}"
        return httpx.Response(
            200,
            json={"choices": [{"message": {"role": "assistant", "content": content}}]},
        )

    def client(self, config: GatewayConfig = None) -> CompletionClient:
        return CompletionClient(
            config or GatewayConfig(api_key="server-key"),
            client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )


@pytest.fixture
def settings():
    return Settings(_env_file=None, log_format="console", log_level="WARNING")


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def identity():
    return InMemoryIdentityProvider()


@pytest.fixture
def gateway_stub():
    return GatewayStub()


@pytest.fixture
def app(settings, store, identity, gateway_stub):
    return create_app(settings, store=store, identity=identity, gateway=gateway_stub.client())


def api_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


async def auth_headers(identity: InMemoryIdentityProvider, user_id: str = "user-1") -> dict:
    token = await identity.issue_token(user_id)
    return {"Authorization": f"Bearer {token}"}
