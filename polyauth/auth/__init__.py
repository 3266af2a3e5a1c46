"""
Credentials, refresh operations and the refresh coordinator.
"""

from .credentials import CredentialPair, CredentialStore, InMemoryCredentialStore
from .auth_base import AuthProvider, BearerAuth, StaticHeadersAuth
from .refresh import (
    RefreshOperation,
    HTTPRefreshOperation,
    JWTRefreshOperation,
    OAuth2RefreshOperation,
    parse_token_payload,
)
from .coordinator import RefreshCoordinator, RefreshState, SyncRefreshCoordinator

__all__ = [
    # Credentials
    "CredentialPair",
    "CredentialStore",
    "InMemoryCredentialStore",

    # Auth headers
    "AuthProvider",
    "BearerAuth",
    "StaticHeadersAuth",

    # Refresh
    "RefreshOperation",
    "HTTPRefreshOperation",
    "JWTRefreshOperation",
    "OAuth2RefreshOperation",
    "parse_token_payload",
    "RefreshCoordinator",
    "SyncRefreshCoordinator",
    "RefreshState",
]
