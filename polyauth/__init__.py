"""
PolyAuth - Authenticated HTTP client
Bearer credentials with single-flight refresh and replay on 401.
"""

from .version import __version__

from .config import ClientConfig

# Credentials & refresh
from .auth import (
    CredentialPair,
    CredentialStore,
    InMemoryCredentialStore,
    AuthProvider,
    BearerAuth,
    StaticHeadersAuth,
    RefreshOperation,
    JWTRefreshOperation,
    OAuth2RefreshOperation,
    RefreshCoordinator,
    SyncRefreshCoordinator,
    RefreshState,
)

# Clients
from .client import (
    RequestSpec,
    AuthenticatedClient,
    SyncAuthenticatedClient,
)

# Errors
from .errors import (
    RequestError,
    TransportError,
    HttpError,
    AuthenticationRequired,
    AuthenticationError,
    RefreshError,
    RefreshTerminal,
    RefreshTransient,
)

__all__ = [
    # Version
    '__version__',

    # Config
    'ClientConfig',

    # Credentials & refresh
    'CredentialPair',
    'CredentialStore',
    'InMemoryCredentialStore',
    'AuthProvider',
    'BearerAuth',
    'StaticHeadersAuth',
    'RefreshOperation',
    'JWTRefreshOperation',
    'OAuth2RefreshOperation',
    'RefreshCoordinator',
    'SyncRefreshCoordinator',
    'RefreshState',

    # Clients
    'RequestSpec',
    'AuthenticatedClient',
    'SyncAuthenticatedClient',

    # Errors
    'RequestError',
    'TransportError',
    'HttpError',
    'AuthenticationRequired',
    'AuthenticationError',
    'RefreshError',
    'RefreshTerminal',
    'RefreshTransient',
]
