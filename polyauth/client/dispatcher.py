"""
Request Dispatchers
Attach the current credential and forward the call to the transport.

Dispatchers never look at the response; classification belongs to the
interceptor.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import requests

from ..auth.auth_base import AuthProvider
from ..auth.credentials import CredentialPair
from ..errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class RequestSpec:
    """Everything needed to send (and replay) one request."""
    method: str
    url: str
    params: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)
    json: Any = None
    data: Any = None
    content: Optional[bytes] = None
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()

    def merged_headers(self, auth_headers: Dict[str, str]) -> Dict[str, str]:
        headers = dict(self.headers)
        headers.update(auth_headers)
        return headers


class RequestDispatcher:
    """Dispatch over an ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, auth: AuthProvider):
        self.client = client
        self.auth = auth

    async def execute(self, spec: RequestSpec, credentials: Optional[CredentialPair] = None) -> httpx.Response:
        """
        Send ``spec`` with the given credentials (current ones by default).

        Raises:
            TransportError: DNS, connection, timeout and other transport failures
        """
        if credentials is None:
            credentials = self.auth.snapshot()

        kwargs: Dict[str, Any] = {
            "params": spec.params,
            "headers": spec.merged_headers(self.auth.headers_for(credentials)),
            "json": spec.json,
            "data": spec.data,
            "content": spec.content,
        }
        if spec.timeout is not None:
            kwargs["timeout"] = spec.timeout

        try:
            return await self.client.request(spec.method, spec.url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"[API] {spec.method} {spec.url} [Error] {type(e).__name__}")
            raise TransportError(f"{spec.method} {spec.url} failed: {e!r}") from e


class SyncRequestDispatcher:
    """Dispatch over a ``requests.Session``."""

    def __init__(
        self,
        session: requests.Session,
        auth: AuthProvider,
        *,
        base_url: str = "",
        timeout: float = 10.0,
    ):
        self.session = session
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized}"

    def execute(self, spec: RequestSpec, credentials: Optional[CredentialPair] = None) -> requests.Response:
        """Blocking counterpart of :meth:`RequestDispatcher.execute`."""
        if credentials is None:
            credentials = self.auth.snapshot()

        data = spec.data if spec.data is not None else spec.content

        try:
            return self.session.request(
                spec.method,
                self._url(spec.url),
                params=spec.params,
                headers=spec.merged_headers(self.auth.headers_for(credentials)),
                json=spec.json,
                data=data,
                timeout=spec.timeout if spec.timeout is not None else self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"[API] {spec.method} {spec.url} [Error] {type(e).__name__}")
            raise TransportError(f"{spec.method} {spec.url} failed: {e!r}") from e
