from urllib.parse import parse_qs

import httpx
import pytest

from app.models.domain.proxy_domain import CredentialSet
from app.services.errors import TransportError, UpstreamAuthError
from app.services.remote_caller import RemoteCaller
from app.services.token_cache import TokenCache, get_token_cache

TOKEN_URL = "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"


@pytest.mark.asyncio
async def test_token_is_reused_inside_validity_window(
    httpx_mock, add_token_response, credentials, clock
):
    add_token_response("tok-1", expires_in=3600)
    cache = TokenCache(credentials, RemoteCaller(), clock=clock)

    first = await cache.get_token()
    clock.now = 3500
    second = await cache.get_token()

    assert first == second == "tok-1"
    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_token_refreshed_inside_safety_margin(
    httpx_mock, add_token_response, credentials, clock
):
    add_token_response("tok-1", expires_in=3600)
    add_token_response("tok-2", expires_in=3600)
    cache = TokenCache(credentials, RemoteCaller(), clock=clock)

    assert await cache.get_token() == "tok-1"
    clock.now = 3545
    assert await cache.get_token() == "tok-2"

    assert len(httpx_mock.get_requests()) == 2
    assert cache.cached.expires_at == 3545 + 3600


@pytest.mark.asyncio
async def test_exchange_sends_client_credentials_form(httpx_mock, add_token_response, credentials):
    add_token_response()
    cache = TokenCache(credentials, RemoteCaller())

    await cache.get_token()

    request = httpx_mock.get_requests()[0]
    assert request.method == "POST"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    body = request.content.decode()
    assert "grant_type=client_credentials" in body
    assert "client_id=client-1" in body
    assert "client_secret=secret-1" in body
    assert "scope=https%3A%2F%2Fgraph.microsoft.com%2F.default" in body


@pytest.mark.asyncio
async def test_exchange_form_escapes_reserved_characters(httpx_mock, add_token_response):
    add_token_response()
    credentials = CredentialSet(
        tenant_id="tenant-1", client_id="client-1", client_secret="a+b&c=d e/f"
    )
    cache = TokenCache(credentials, RemoteCaller())

    await cache.get_token()

    form = parse_qs(httpx_mock.get_requests()[0].content.decode())
    assert form["client_secret"] == ["a+b&c=d e/f"]
    assert form["grant_type"] == ["client_credentials"]


@pytest.mark.asyncio
async def test_issuer_rejection_raises_auth_error(httpx_mock, credentials):
    httpx_mock.add_response(
        method="POST",
        url=TOKEN_URL,
        status_code=401,
        json={"error": "invalid_client", "error_description": "Invalid client secret provided."},
    )
    cache = TokenCache(credentials, RemoteCaller())

    with pytest.raises(UpstreamAuthError) as exc:
        await cache.get_token()

    assert exc.value.message == "Invalid client secret provided."
    assert exc.value.status_code == 401
    assert cache.cached is None


@pytest.mark.asyncio
async def test_success_without_access_token_is_auth_error(httpx_mock, credentials):
    httpx_mock.add_response(method="POST", url=TOKEN_URL, json={"token_type": "Bearer"})
    cache = TokenCache(credentials, RemoteCaller())

    with pytest.raises(UpstreamAuthError) as exc:
        await cache.get_token()

    assert exc.value.message.startswith("Token failed")


@pytest.mark.asyncio
async def test_issuer_unreachable_is_transport_error(httpx_mock, credentials):
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))
    cache = TokenCache(credentials, RemoteCaller())

    with pytest.raises(TransportError) as exc:
        await cache.get_token()

    assert not isinstance(exc.value, UpstreamAuthError)
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_invalidate_forces_new_exchange(httpx_mock, add_token_response, credentials, clock):
    add_token_response("tok-1")
    add_token_response("tok-2")
    cache = TokenCache(credentials, RemoteCaller(), clock=clock)

    await cache.get_token()
    cache.invalidate()

    assert await cache.get_token() == "tok-2"


def test_registry_returns_one_cache_per_credential_set(credentials):
    first = get_token_cache(credentials)
    second = get_token_cache(credentials)

    assert first is second
