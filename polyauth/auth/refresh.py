"""
Refresh Operations
Exchange a refresh token for a new credential pair.

Every failure is classified before it leaves this module:
- RefreshTerminal: the refresh token itself was rejected (re-login required)
- RefreshTransient: anything else (network, 5xx, malformed body)

No retries happen here; a transient failure surfaces to the caller and the
next 401 starts a new refresh cycle.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

import httpx
import requests
from pydantic import ValidationError

from ..errors import RefreshTerminal, RefreshTransient
from ..models import TokenPayload, envelope_message, is_envelope
from .credentials import CredentialPair

logger = logging.getLogger(__name__)


def parse_token_payload(payload: Any, previous: CredentialPair) -> CredentialPair:
    """
    Build a new CredentialPair from a token response.

    Accepts a flat token body or one wrapped in the API envelope. Providers
    that do not rotate refresh tokens omit ``refresh_token``; the previous
    one is kept in that case.
    """
    if is_envelope(payload) and isinstance(payload.get("data"), dict):
        payload = payload["data"]

    try:
        token = TokenPayload.model_validate(payload)
    except ValidationError as e:
        # field names only, the input values are tokens
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()})
        raise RefreshTransient(f"Refresh response has missing or invalid {', '.join(fields)}") from e

    return CredentialPair(
        access=token.access_token,
        refresh=token.refresh_token or previous.refresh,
    )


class RefreshOperation(ABC):
    """Abstract base class for refresh operations."""

    @abstractmethod
    async def refresh_async(self, credentials: CredentialPair) -> CredentialPair:
        """Refresh asynchronously."""
        raise NotImplementedError

    @abstractmethod
    def refresh_sync(self, credentials: CredentialPair) -> CredentialPair:
        """Refresh synchronously."""
        raise NotImplementedError


class HTTPRefreshOperation(RefreshOperation):
    """
    Refresh against an HTTP token endpoint.

    Subclasses describe the request with ``_request_kwargs``; status
    classification and response parsing are shared.
    """

    def __init__(
        self,
        refresh_url: str,
        *,
        timeout: float = 10.0,
        terminal_statuses: Iterable[int] = (422,),
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session: Optional[requests.Session] = None,
    ):
        self.refresh_url = str(refresh_url)
        self.timeout = float(timeout)
        self.terminal_statuses = frozenset(int(s) for s in terminal_statuses)
        self._transport = transport
        self._session = session

    @abstractmethod
    def _request_kwargs(self, credentials: CredentialPair) -> Dict[str, Any]:
        """Keyword arguments for the POST to ``refresh_url``."""
        raise NotImplementedError

    def _require_refresh_token(self, credentials: CredentialPair) -> str:
        if not credentials.refresh:
            raise RefreshTerminal("No refresh_token available")
        return credentials.refresh

    def _handle_response(self, status_code: int, body: Any, credentials: CredentialPair) -> CredentialPair:
        if status_code in self.terminal_statuses:
            reason = envelope_message(body) or f"HTTP {status_code}"
            raise RefreshTerminal(f"Refresh token rejected: {reason}", status_code=status_code)

        if status_code >= 400:
            reason = envelope_message(body) or f"HTTP {status_code}"
            raise RefreshTransient(f"Refresh request failed: {reason}", status_code=status_code)

        if body is None:
            raise RefreshTransient("Refresh response is not JSON", status_code=status_code)

        return parse_token_payload(body, credentials)

    async def refresh_async(self, credentials: CredentialPair) -> CredentialPair:
        kwargs = self._request_kwargs(credentials)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.refresh_url, **kwargs)
        except httpx.HTTPError as e:
            # do not leak the token in the message
            raise RefreshTransient(f"Refresh request failed: {type(e).__name__}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        logger.debug(f"Refresh endpoint answered {resp.status_code}")
        return self._handle_response(resp.status_code, body, credentials)

    def refresh_sync(self, credentials: CredentialPair) -> CredentialPair:
        kwargs = self._request_kwargs(credentials)
        session = self._session or requests

        try:
            resp = session.post(self.refresh_url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RefreshTransient(f"Refresh request failed: {type(e).__name__}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        logger.debug(f"Refresh endpoint answered {resp.status_code}")
        return self._handle_response(resp.status_code, body, credentials)


class JWTRefreshOperation(HTTPRefreshOperation):
    """
    Refresh against a custom JWT endpoint.

    Expected API:
        POST /auth/refresh
            {"refresh_token": "...", "access_token": "..."}
            → {"access_token": "...", "refresh_token": "..."}
              (optionally wrapped as {"status", "message", "data": {...}})

        422 (configurable) when the refresh token is no longer valid.
    """

    def __init__(self, refresh_url: str, *, send_access_token: bool = True, **kwargs: Any):
        super().__init__(refresh_url, **kwargs)
        self.send_access_token = bool(send_access_token)

    def _request_kwargs(self, credentials: CredentialPair) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"refresh_token": self._require_refresh_token(credentials)}
        if self.send_access_token and credentials.access:
            payload["access_token"] = credentials.access
        return {"json": payload}


class OAuth2RefreshOperation(HTTPRefreshOperation):
    """
    OAuth 2.0 refresh_token grant (RFC 6749 §6).

    Notes:
    - Some IdPs require client authentication via HTTP Basic (RFC 6749 §2.3.1)
    - Others require client_id/client_secret in body (or both).
    - invalid_grant comes back as 400, so 400/401 are terminal by default.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: Optional[str] = None,
        *,
        scope: Optional[str] = None,
        use_basic_auth: bool = True,
        send_client_secret_in_body: bool = False,
        terminal_statuses: Iterable[int] = (400, 401),
        extra_token_params: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ):
        super().__init__(token_url, terminal_statuses=terminal_statuses, **kwargs)
        self.client_id = str(client_id)
        self.client_secret = client_secret
        self.scope = scope
        self.use_basic_auth = bool(use_basic_auth) and client_secret is not None
        self.send_client_secret_in_body = bool(send_client_secret_in_body)
        self.extra_token_params = dict(extra_token_params or {})

    def _request_kwargs(self, credentials: CredentialPair) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "grant_type": "refresh_token",
            "refresh_token": self._require_refresh_token(credentials),
        }
        if self.scope:
            payload["scope"] = self.scope

        if not self.use_basic_auth:
            payload["client_id"] = self.client_id
            if self.send_client_secret_in_body and self.client_secret is not None:
                payload["client_secret"] = self.client_secret

        for k, v in self.extra_token_params.items():
            if v is None:
                continue
            payload[k] = v

        kwargs: Dict[str, Any] = {
            "data": payload,
            "headers": {"Content-Type": "application/x-www-form-urlencoded"},
        }
        if self.use_basic_auth:
            kwargs["auth"] = (self.client_id, self.client_secret)
        return kwargs
