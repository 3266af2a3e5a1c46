"""
Authentication Base Classes
Turn the current credentials into request headers.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from .credentials import CredentialPair, CredentialStore


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    def snapshot(self) -> CredentialPair:
        """Credentials the next request will be sent with."""
        raise NotImplementedError

    @abstractmethod
    def headers_for(self, credentials: CredentialPair) -> Dict[str, str]:
        """Authentication headers for the given credentials."""
        raise NotImplementedError

    def should_retry_on_unauthorized(self) -> bool:
        """Whether a 401 should go through refresh and replay."""
        return True


class BearerAuth(AuthProvider):
    """Bearer token read from a credential store on every request."""

    def __init__(self, store: CredentialStore, scheme: str = "Bearer"):
        self.store = store
        self.scheme = scheme

    def snapshot(self) -> CredentialPair:
        return self.store.read()

    def headers_for(self, credentials: CredentialPair) -> Dict[str, str]:
        # No access token means no header; never send "Bearer None".
        if not credentials.access:
            return {}
        return {"Authorization": f"{self.scheme} {credentials.access}"}


class StaticHeadersAuth(AuthProvider):
    """Static headers authentication (API keys)."""

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self._headers = dict(headers or {})

    def snapshot(self) -> CredentialPair:
        return CredentialPair()

    def headers_for(self, credentials: CredentialPair) -> Dict[str, str]:
        return dict(self._headers)

    def should_retry_on_unauthorized(self) -> bool:
        return False
