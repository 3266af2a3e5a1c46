"""
Request and refresh error taxonomy.
"""

from typing import Any, Optional


class RequestError(RuntimeError):
    """Base class for everything a request can surface to its caller."""


class TransportError(RequestError):
    """Network/connection-level failure. Never retried."""


class HttpError(RequestError):
    """Server answered with a non-success status."""

    def __init__(self, message: str, *, status_code: int, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class AuthenticationRequired(HttpError):
    """Authentication failure that was not recovered by a refresh."""


class AuthenticationError(AuthenticationRequired):
    """
    The refresh token itself was rejected.

    The credential store has been cleared by the time this is raised,
    so callers should send the user back through login.
    """


class RefreshError(RequestError):
    """Credential refresh failed."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshTerminal(RefreshError):
    """Refresh token rejected; re-authentication is required."""


class RefreshTransient(RefreshError):
    """Refresh failed for a recoverable reason; credentials are left intact."""
