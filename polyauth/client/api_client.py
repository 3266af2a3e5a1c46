"""
Authenticated API clients.

Wire a credential store, a refresh operation, the refresh coordinator, a
dispatcher and an interceptor into one object that resource layers call.

Usage:
    store = InMemoryCredentialStore(CredentialPair(access, refresh))
    async with AuthenticatedClient(ClientConfig(base_url=...), store=store) as api:
        categories = await api.get("/categories", params={"page": 1})
"""

import logging
from typing import Any, Optional

import httpx
import requests

from ..auth.auth_base import AuthProvider, BearerAuth
from ..auth.coordinator import RefreshCoordinator, SyncRefreshCoordinator
from ..auth.credentials import CredentialStore, InMemoryCredentialStore
from ..auth.refresh import JWTRefreshOperation, RefreshOperation
from ..config import ClientConfig
from ..models import unwrap_data
from .dispatcher import RequestDispatcher, RequestSpec, SyncRequestDispatcher
from .interceptor import ResponseInterceptor, SyncResponseInterceptor

logger = logging.getLogger(__name__)


def _body(response: Any) -> Any:
    if not response.content:
        return None
    try:
        payload = response.json()
    except ValueError:
        return response.text
    return unwrap_data(payload)


class _ClientBase:
    def __init__(
        self,
        config: Optional[ClientConfig],
        store: Optional[CredentialStore],
        refresh_operation: Optional[RefreshOperation],
        auth: Optional[AuthProvider],
    ):
        self.config = config or ClientConfig.from_env()
        self.store = store or InMemoryCredentialStore()
        self.auth = auth or BearerAuth(self.store)
        self.refresh_operation = refresh_operation

    def _default_refresh_operation(self, **kwargs: Any) -> RefreshOperation:
        if not self.config.base_url and not self.config.refresh_path.startswith(("http://", "https://")):
            raise ValueError("base_url (or an absolute refresh_path) is required for the default refresh operation")
        return JWTRefreshOperation(
            self.config.refresh_url,
            timeout=self.config.timeout,
            terminal_statuses=self.config.terminal_refresh_statuses,
            send_access_token=self.config.send_access_token_on_refresh,
            **kwargs,
        )


class AuthenticatedClient(_ClientBase):
    """asyncio client over httpx."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        store: Optional[CredentialStore] = None,
        refresh_operation: Optional[RefreshOperation] = None,
        auth: Optional[AuthProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config, store, refresh_operation, auth)

        if self.refresh_operation is None:
            self.refresh_operation = self._default_refresh_operation(transport=transport)

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self.config.default_headers,
            timeout=self.config.timeout,
            transport=transport,
        )

        self.coordinator = RefreshCoordinator(
            self.store, self.refresh_operation, timeout=self.config.refresh_timeout
        )
        self.dispatcher = RequestDispatcher(self.http_client, self.auth)
        self.interceptor = ResponseInterceptor(
            self.dispatcher,
            self.coordinator,
            self.auth,
            auth_failure_statuses=self.config.auth_failure_statuses,
        )

    async def execute(self, spec: RequestSpec) -> httpx.Response:
        """
        Send ``spec``, refreshing and replaying once on authentication failure.

        Returns the final 2xx response; raises a RequestError otherwise.
        """
        credentials = self.auth.snapshot()
        response = await self.dispatcher.execute(spec, credentials)
        return await self.interceptor.intercept(spec, response, credentials)

    async def request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Execute and return the envelope's ``data`` field."""
        response = await self.execute(RequestSpec(method, url, **kwargs))
        return _body(response)

    async def get(self, url: str, **kwargs: Any) -> Any:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", url, json=json, **kwargs)

    async def put(self, url: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", url, json=json, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "AuthenticatedClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class SyncAuthenticatedClient(_ClientBase):
    """Thread-safe blocking client over requests."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        store: Optional[CredentialStore] = None,
        refresh_operation: Optional[RefreshOperation] = None,
        auth: Optional[AuthProvider] = None,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(config, store, refresh_operation, auth)

        self._owns_session = session is None
        self.session = session or requests.Session()
        if self._owns_session:
            self.session.headers.update(self.config.default_headers)

        if self.refresh_operation is None:
            self.refresh_operation = self._default_refresh_operation(session=self.session)

        self.coordinator = SyncRefreshCoordinator(
            self.store, self.refresh_operation, timeout=self.config.refresh_timeout
        )
        self.dispatcher = SyncRequestDispatcher(
            self.session,
            self.auth,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
        )
        self.interceptor = SyncResponseInterceptor(
            self.dispatcher,
            self.coordinator,
            self.auth,
            auth_failure_statuses=self.config.auth_failure_statuses,
        )

    def execute(self, spec: RequestSpec) -> requests.Response:
        """Blocking counterpart of :meth:`AuthenticatedClient.execute`."""
        credentials = self.auth.snapshot()
        response = self.dispatcher.execute(spec, credentials)
        return self.interceptor.intercept(spec, response, credentials)

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = self.execute(RequestSpec(method, url, **kwargs))
        return _body(response)

    def get(self, url: str, **kwargs: Any) -> Any:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", url, json=json, **kwargs)

    def put(self, url: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", url, json=json, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> Any:
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "SyncAuthenticatedClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
