"""Tests for the identity service client."""
import asyncio

import httpx
import pytest

from errors import ServiceUnavailableError
from services.identity_service import IdentityServiceClient


def identity_client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IdentityServiceClient(http_client, base_url="http://auth.local/", anon_key="anon-key")


def resolve(client, token="jwt"):
    return asyncio.run(client.get_user(token))


def test_valid_token_returns_user():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"id": "user-1", "email": "a@example.com"})

    user = resolve(identity_client(handler), token="jwt-123")

    assert user["id"] == "user-1"
    assert seen["url"] == "http://auth.local/auth/v1/user"
    assert seen["headers"]["authorization"] == "Bearer jwt-123"
    assert seen["headers"]["apikey"] == "anon-key"


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token_returns_none(status):
    client = identity_client(lambda request: httpx.Response(status, json={"msg": "invalid JWT"}))

    assert resolve(client) is None


def test_user_without_id_returns_none():
    client = identity_client(lambda request: httpx.Response(200, json={}))

    assert resolve(client) is None


def test_server_error_is_unavailable():
    client = identity_client(lambda request: httpx.Response(502))

    with pytest.raises(ServiceUnavailableError):
        resolve(client)


def test_transport_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceUnavailableError) as exc:
        resolve(identity_client(handler))

    assert exc.value.to_dict()["code"] == "OFFLINE"
