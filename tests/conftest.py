import asyncio
import json
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

import pytest
import requests

from polyauth.auth.credentials import CredentialPair
from polyauth.auth.refresh import RefreshOperation


class StubRefresh(RefreshOperation):
    """Refresh operation double: records calls, optionally slow, scripted outcome."""

    def __init__(
        self,
        result: Optional[CredentialPair] = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ):
        self.result = result or CredentialPair("new", "new-r")
        self.error = error
        self.delay = delay
        self.seen: List[CredentialPair] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.seen)

    async def refresh_async(self, credentials: CredentialPair) -> CredentialPair:
        self.seen.append(credentials)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result

    def refresh_sync(self, credentials: CredentialPair) -> CredentialPair:
        with self._lock:
            self.seen.append(credentials)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


Handler = Callable[[requests.PreparedRequest], Tuple[int, Any]]


class ScriptedAdapter(requests.adapters.BaseAdapter):
    """requests transport double: ``handler(request) -> (status, json_body)``."""

    def __init__(self, handler: Handler):
        super().__init__()
        self.handler = handler
        self.requests: List[requests.PreparedRequest] = []
        self._lock = threading.Lock()

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        with self._lock:
            self.requests.append(request)
        status, body = self.handler(request)

        response = requests.Response()
        response.status_code = status
        response._content = b"" if body is None else json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
        response.encoding = "utf-8"
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def envelope(data: Any = None, message: str = "ok", status: str = "success") -> dict:
    return {"status": status, "message": message, "data": data}


@pytest.fixture
def stub_refresh():
    return StubRefresh()
