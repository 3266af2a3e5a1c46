"""
Request dispatch, response interception and the authenticated clients.
"""

from .dispatcher import RequestSpec, RequestDispatcher, SyncRequestDispatcher
from .interceptor import ResponseInterceptor, SyncResponseInterceptor
from .api_client import AuthenticatedClient, SyncAuthenticatedClient

__all__ = [
    "RequestSpec",
    "RequestDispatcher",
    "SyncRequestDispatcher",
    "ResponseInterceptor",
    "SyncResponseInterceptor",
    "AuthenticatedClient",
    "SyncAuthenticatedClient",
]
