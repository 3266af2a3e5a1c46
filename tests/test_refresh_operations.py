import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest
import requests

from conftest import ScriptedAdapter, envelope
from polyauth.auth.credentials import CredentialPair
from polyauth.auth.refresh import JWTRefreshOperation, OAuth2RefreshOperation, parse_token_payload
from polyauth.errors import RefreshTerminal, RefreshTransient

REFRESH_URL = "https://api.test/auth/refresh"
CURRENT = CredentialPair("old", "old-r")


def jwt_operation(handler, **kwargs):
    return JWTRefreshOperation(REFRESH_URL, transport=httpx.MockTransport(handler), **kwargs)


def test_parse_flat_and_enveloped_token_bodies():
    flat = {"access_token": "a1", "refresh_token": "r1", "expires_in": 600}
    wrapped = envelope({"access_token": "a2", "refresh_token": "r2"}, message="refreshed")

    assert parse_token_payload(flat, CURRENT) == CredentialPair("a1", "r1")
    assert parse_token_payload(wrapped, CURRENT) == CredentialPair("a2", "r2")


def test_parse_keeps_refresh_token_when_not_rotated():
    assert parse_token_payload({"access_token": "a1"}, CURRENT) == CredentialPair("a1", "old-r")


def test_parse_without_access_token_is_transient():
    with pytest.raises(RefreshTransient, match="access_token"):
        parse_token_payload({"refresh_token": "r1"}, CURRENT)


@pytest.mark.parametrize(
    "extra",
    [
        {"token_type": None},
        {"expires_in": 3599.5},
        {"token_type": None, "expires_in": "3600s"},
    ],
)
def test_parse_ignores_provider_metadata_fields(extra):
    body = {"access_token": "a1", "refresh_token": "r1", **extra}

    assert parse_token_payload(body, CURRENT) == CredentialPair("a1", "r1")


def test_parse_error_names_the_invalid_field_without_values():
    with pytest.raises(RefreshTransient) as excinfo:
        parse_token_payload({"access_token": "a1", "refresh_token": ["leaked-r"]}, CURRENT)

    assert "refresh_token" in str(excinfo.value)
    assert "access_token" not in str(excinfo.value)
    assert "leaked-r" not in str(excinfo.value)


@pytest.mark.asyncio
async def test_jwt_refresh_accepts_null_token_type_and_fractional_expiry():
    def handler(request):
        return httpx.Response(
            200,
            json=envelope({"access_token": "new", "refresh_token": "new-r", "token_type": None, "expires_in": 899.9}),
        )

    assert await jwt_operation(handler).refresh_async(CURRENT) == CredentialPair("new", "new-r")


@pytest.mark.asyncio
async def test_jwt_refresh_posts_both_tokens():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=envelope({"access_token": "new", "refresh_token": "new-r"}))

    result = await jwt_operation(handler).refresh_async(CURRENT)

    assert result == CredentialPair("new", "new-r")
    assert bodies == [{"refresh_token": "old-r", "access_token": "old"}]


@pytest.mark.asyncio
async def test_jwt_refresh_can_omit_access_token():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"access_token": "new"})

    await jwt_operation(handler, send_access_token=False).refresh_async(CURRENT)

    assert bodies == [{"refresh_token": "old-r"}]


@pytest.mark.asyncio
async def test_jwt_refresh_terminal_status():
    def handler(request):
        return httpx.Response(422, json=envelope(message="refresh token expired", status="error"))

    with pytest.raises(RefreshTerminal) as excinfo:
        await jwt_operation(handler).refresh_async(CURRENT)

    assert excinfo.value.status_code == 422
    assert "refresh token expired" in str(excinfo.value)


@pytest.mark.asyncio
async def test_jwt_refresh_terminal_statuses_are_configurable():
    def handler(request):
        return httpx.Response(401)

    operation = jwt_operation(handler, terminal_statuses=(401, 422))
    with pytest.raises(RefreshTerminal):
        await operation.refresh_async(CURRENT)


@pytest.mark.asyncio
async def test_jwt_refresh_server_error_is_transient():
    def handler(request):
        return httpx.Response(503, text="upstream down")

    with pytest.raises(RefreshTransient) as excinfo:
        await jwt_operation(handler).refresh_async(CURRENT)

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_jwt_refresh_network_error_is_transient_and_hides_tokens():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(RefreshTransient) as excinfo:
        await jwt_operation(handler).refresh_async(CURRENT)

    assert "old-r" not in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)


@pytest.mark.asyncio
async def test_jwt_refresh_non_json_success_is_transient():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(RefreshTransient):
        await jwt_operation(handler).refresh_async(CURRENT)


@pytest.mark.asyncio
async def test_missing_refresh_token_is_terminal_without_network_call():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"access_token": "new"})

    with pytest.raises(RefreshTerminal):
        await jwt_operation(handler).refresh_async(CredentialPair(access="old", refresh=None))

    assert calls == []


def test_jwt_refresh_sync_uses_session():
    def handler(request):
        body = json.loads(request.body)
        assert body["refresh_token"] == "old-r"
        return 200, {"access_token": "new", "refresh_token": "new-r"}

    session = requests.Session()
    session.mount("https://", ScriptedAdapter(handler))

    operation = JWTRefreshOperation(REFRESH_URL, session=session)
    assert operation.refresh_sync(CURRENT) == CredentialPair("new", "new-r")


def test_jwt_refresh_sync_terminal_status():
    session = requests.Session()
    session.mount("https://", ScriptedAdapter(lambda request: (422, {"message": "invalid"})))

    with pytest.raises(RefreshTerminal):
        JWTRefreshOperation(REFRESH_URL, session=session).refresh_sync(CURRENT)


def test_jwt_refresh_sync_connection_error_is_transient():
    def handler(request):
        raise requests.ConnectionError("reset by peer")

    session = requests.Session()
    session.mount("https://", ScriptedAdapter(handler))

    with pytest.raises(RefreshTransient):
        JWTRefreshOperation(REFRESH_URL, session=session).refresh_sync(CURRENT)


@pytest.mark.asyncio
async def test_oauth2_refresh_grant_with_basic_auth():
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={"access_token": "new", "token_type": "Bearer", "expires_in": 3600})

    operation = OAuth2RefreshOperation(
        "https://idp.test/oauth/token",
        client_id="client",
        client_secret="secret",
        scope="api.read",
        transport=httpx.MockTransport(handler),
    )
    result = await operation.refresh_async(CURRENT)

    request = captured[0]
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["old-r"]
    assert form["scope"] == ["api.read"]
    assert "client_id" not in form
    expected = base64.b64encode(b"client:secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert result == CredentialPair("new", "old-r")


@pytest.mark.asyncio
async def test_oauth2_refresh_client_credentials_in_body():
    captured = []

    def handler(request):
        captured.append(parse_qs(request.content.decode()))
        return httpx.Response(200, json={"access_token": "new", "refresh_token": "new-r"})

    operation = OAuth2RefreshOperation(
        "https://idp.test/oauth/token",
        client_id="client",
        client_secret="secret",
        use_basic_auth=False,
        send_client_secret_in_body=True,
        transport=httpx.MockTransport(handler),
    )
    await operation.refresh_async(CURRENT)

    assert captured[0]["client_id"] == ["client"]
    assert captured[0]["client_secret"] == ["secret"]


@pytest.mark.asyncio
async def test_oauth2_invalid_grant_is_terminal():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant"})

    operation = OAuth2RefreshOperation(
        "https://idp.test/oauth/token",
        client_id="client",
        client_secret="secret",
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(RefreshTerminal, match="invalid_grant"):
        await operation.refresh_async(CURRENT)
