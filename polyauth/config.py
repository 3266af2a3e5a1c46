"""
Client configuration.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

ENV_PREFIX = "POLYAUTH_"


def _default_headers() -> Dict[str, str]:
    # Content-Type is left to the transport, which derives it from json= or data=
    return {"Accept": "application/json"}


def _parse_statuses(name: str, raw: str) -> Tuple[int, ...]:
    try:
        statuses = tuple(int(part) for part in raw.replace(";", ",").split(",") if part.strip())
    except ValueError:
        raise ValueError(f"{name} must be a comma separated list of HTTP status codes, got {raw!r}")
    if not statuses:
        raise ValueError(f"{name} must not be empty")
    return statuses


def _parse_timeout(name: str, raw: str) -> Optional[float]:
    if raw.strip().lower() in ("", "none", "off", "0"):
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative")
    return value


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    """Configuration for AuthenticatedClient / SyncAuthenticatedClient."""

    base_url: str = ""
    timeout: float = 10.0
    refresh_path: str = "/auth/refresh"
    refresh_timeout: Optional[float] = 30.0
    auth_failure_statuses: Tuple[int, ...] = (401,)
    terminal_refresh_statuses: Tuple[int, ...] = (422,)
    send_access_token_on_refresh: bool = True
    default_headers: Dict[str, str] = field(default_factory=_default_headers)

    @property
    def refresh_url(self) -> str:
        if self.refresh_path.startswith(("http://", "https://")):
            return self.refresh_path
        path = self.refresh_path if self.refresh_path.startswith("/") else f"/{self.refresh_path}"
        return f"{self.base_url.rstrip('/')}{path}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """
        Build a config from ``POLYAUTH_*`` environment variables.

        Unset variables keep the dataclass defaults. ``API_BASE_URL`` is
        accepted as a fallback for the base URL.

        Raises:
            ValueError: a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        config = cls(base_url=get("BASE_URL") or env.get("API_BASE_URL") or "")

        raw = get("TIMEOUT")
        if raw is not None:
            timeout = _parse_timeout(ENV_PREFIX + "TIMEOUT", raw)
            if timeout is None:
                raise ValueError(f"{ENV_PREFIX}TIMEOUT must be a positive number of seconds")
            config.timeout = timeout

        raw = get("REFRESH_PATH")
        if raw:
            config.refresh_path = raw

        raw = get("REFRESH_TIMEOUT")
        if raw is not None:
            config.refresh_timeout = _parse_timeout(ENV_PREFIX + "REFRESH_TIMEOUT", raw)

        raw = get("AUTH_FAILURE_STATUSES")
        if raw is not None:
            config.auth_failure_statuses = _parse_statuses(ENV_PREFIX + "AUTH_FAILURE_STATUSES", raw)

        raw = get("TERMINAL_REFRESH_STATUSES")
        if raw is not None:
            config.terminal_refresh_statuses = _parse_statuses(ENV_PREFIX + "TERMINAL_REFRESH_STATUSES", raw)

        raw = get("SEND_ACCESS_TOKEN_ON_REFRESH")
        if raw is not None:
            config.send_access_token_on_refresh = _parse_bool(raw)

        return config
