"""
Response Interceptors
Classify completed exchanges and run the refresh-and-replay path on 401.

Outcomes:
- 2xx: returned unchanged
- auth failure: refresh through the coordinator, then replay once
- anything else: HttpError
"""

import logging
from typing import Any, Iterable, Optional

from ..auth.auth_base import AuthProvider
from ..auth.coordinator import RefreshCoordinator, SyncRefreshCoordinator
from ..auth.credentials import CredentialPair
from ..errors import AuthenticationError, AuthenticationRequired, HttpError, RefreshTerminal
from ..models import envelope_message
from .dispatcher import RequestDispatcher, RequestSpec, SyncRequestDispatcher

logger = logging.getLogger(__name__)


def _json_or_none(response: Any) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class _BaseInterceptor:
    def __init__(self, auth: AuthProvider, *, auth_failure_statuses: Iterable[int] = (401,)):
        self.auth = auth
        self.auth_failure_statuses = frozenset(int(s) for s in auth_failure_statuses)

    @staticmethod
    def is_success(response: Any) -> bool:
        return 200 <= response.status_code < 300

    def is_auth_failure(self, response: Any) -> bool:
        return response.status_code in self.auth_failure_statuses

    def should_refresh(self, response: Any) -> bool:
        return self.is_auth_failure(response) and self.auth.should_retry_on_unauthorized()

    def _log(self, spec: RequestSpec, response: Any, replay: bool = False) -> None:
        suffix = " (replay)" if replay else ""
        logger.info(f"[API] {spec.method} {spec.url} [{response.status_code}]{suffix}")

    def finalize(self, spec: RequestSpec, response: Any) -> Any:
        """Return a successful response, raise for anything else."""
        if self.is_success(response):
            return response

        message = envelope_message(_json_or_none(response))
        if message:
            logger.debug(f"[API] {spec.method} {spec.url}: {message}")

        text = f"{spec.method} {spec.url} failed with {response.status_code}"
        if message:
            text = f"{text}: {message}"

        if self.is_auth_failure(response):
            raise AuthenticationRequired(text, status_code=response.status_code, response=response)
        raise HttpError(text, status_code=response.status_code, response=response)

    def _logged_out(self, spec: RequestSpec, response: Any) -> AuthenticationError:
        return AuthenticationError(
            f"{spec.method} {spec.url} failed with {response.status_code}: session expired",
            status_code=response.status_code,
            response=response,
        )


class ResponseInterceptor(_BaseInterceptor):
    """asyncio interceptor."""

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        coordinator: RefreshCoordinator,
        auth: Optional[AuthProvider] = None,
        **kwargs: Any,
    ):
        super().__init__(auth or dispatcher.auth, **kwargs)
        self.dispatcher = dispatcher
        self.coordinator = coordinator

    async def intercept(self, spec: RequestSpec, response: Any, credentials: CredentialPair) -> Any:
        """
        Args:
            spec: the request that produced ``response``
            response: completed response
            credentials: credentials ``spec`` was sent with

        Raises:
            AuthenticationError: refresh token rejected, store cleared
            AuthenticationRequired: 401 not recovered (replay failed again)
            RefreshTransient: refresh failed, credentials kept
            HttpError: any other non-2xx status
            TransportError: replay could not be sent
        """
        self._log(spec, response)

        if not self.should_refresh(response):
            return self.finalize(spec, response)

        try:
            refreshed = await self.coordinator.refresh(credentials)
        except RefreshTerminal as e:
            raise self._logged_out(spec, response) from e

        # Single-shot replay: its outcome is final, even another 401.
        replay = await self.dispatcher.execute(spec, refreshed)
        self._log(spec, replay, replay=True)
        return self.finalize(spec, replay)


class SyncResponseInterceptor(_BaseInterceptor):
    """Thread-based interceptor."""

    def __init__(
        self,
        dispatcher: SyncRequestDispatcher,
        coordinator: SyncRefreshCoordinator,
        auth: Optional[AuthProvider] = None,
        **kwargs: Any,
    ):
        super().__init__(auth or dispatcher.auth, **kwargs)
        self.dispatcher = dispatcher
        self.coordinator = coordinator

    def intercept(self, spec: RequestSpec, response: Any, credentials: CredentialPair) -> Any:
        """Blocking counterpart of :meth:`ResponseInterceptor.intercept`."""
        self._log(spec, response)

        if not self.should_refresh(response):
            return self.finalize(spec, response)

        try:
            refreshed = self.coordinator.refresh(credentials)
        except RefreshTerminal as e:
            raise self._logged_out(spec, response) from e

        replay = self.dispatcher.execute(spec, refreshed)
        self._log(spec, replay, replay=True)
        return self.finalize(spec, replay)
