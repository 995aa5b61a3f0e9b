"""Tests for the hosted auth provider client."""

import json

import httpx
import pytest

from promptminder.auth.provider import (
    AuthProvider,
    ProviderError,
    ProviderNotConfigured,
    raise_for_provider_error,
)
from promptminder.config import Settings
from promptminder.errors import RateLimited, UpstreamFailure


def _provider(**overrides) -> AuthProvider:
    values = {
        "supabase_url": "https://project.supabase.co",
        "supabase_anon_key": "anon-key",
        "supabase_service_role_key": "service-key",
    }
    values.update(overrides)
    return AuthProvider(Settings(**values))


@pytest.fixture
def provider_transport(monkeypatch):
    """Route the provider's httpx client through a recording mock transport."""
    calls = []
    responses = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status, body = responses.get(request.url.path, (200, {}))
        return httpx.Response(status, json=body)

    monkeypatch.setattr(
        "promptminder.auth.provider.httpx.AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    return calls, responses


@pytest.mark.asyncio
async def test_magic_link_request(provider_transport):
    calls, _ = provider_transport

    await _provider().send_magic_link("a@dev.zo", "http://localhost:3000/api/auth/callback")

    request = calls[0]
    assert request.method == "POST"
    assert request.url.path == "/auth/v1/otp"
    assert request.url.params["redirect_to"] == "http://localhost:3000/api/auth/callback"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content)["email"] == "a@dev.zo"


@pytest.mark.asyncio
async def test_get_user_uses_bearer_token(provider_transport):
    calls, responses = provider_transport
    responses["/auth/v1/user"] = (200, {"id": "u1", "email": "a@dev.zo"})

    user = await _provider().get_user("access-123")

    assert user["id"] == "u1"
    assert calls[0].headers["authorization"] == "Bearer access-123"


@pytest.mark.asyncio
async def test_admin_calls_use_service_key(provider_transport):
    calls, _ = provider_transport

    await _provider().set_user_admin("u1", True)

    request = calls[0]
    assert request.method == "PUT"
    assert request.url.path == "/auth/v1/admin/users/u1"
    assert request.headers["apikey"] == "service-key"
    assert json.loads(request.content) == {"app_metadata": {"is_admin": True}}


@pytest.mark.asyncio
async def test_error_responses_raise_provider_error(provider_transport):
    _, responses = provider_transport
    responses["/auth/v1/recover"] = (429, {"msg": "For security purposes, you can only request this once"})
    responses["/auth/v1/token"] = (400, {"error_description": "Invalid Refresh Token"})

    with pytest.raises(ProviderError) as exc_info:
        await _provider().send_password_reset("a@dev.zo", "http://x/reset")
    assert exc_info.value.is_rate_limited

    with pytest.raises(ProviderError) as exc_info:
        await _provider().refresh_session("stale")
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid Refresh Token"
    assert not exc_info.value.is_rate_limited


@pytest.mark.asyncio
async def test_unconfigured_provider_raises():
    provider = _provider(supabase_url=None)
    assert not provider.configured

    with pytest.raises(ProviderNotConfigured):
        await provider.get_user("token")

    admin_less = _provider(supabase_service_role_key=None)
    assert admin_less.configured
    assert not admin_less.admin_configured
    with pytest.raises(ProviderNotConfigured):
        await admin_less.set_user_admin("u1", False)


def test_rate_limit_detected_from_message():
    assert ProviderError(400, "Email rate limit exceeded").is_rate_limited


def test_raise_for_provider_error_maps_to_user_safe_errors():
    with pytest.raises(RateLimited):
        raise_for_provider_error(ProviderError(429, "slow down"), "test")

    with pytest.raises(UpstreamFailure) as exc_info:
        raise_for_provider_error(ProviderError(500, "db exploded at row 12"), "test")
    assert "db exploded" not in exc_info.value.detail
