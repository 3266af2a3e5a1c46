"""
Credential pair and the stores that own it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialPair:
    """Access/refresh token pair. Replaced wholesale, never mutated."""
    access: Optional[str] = None
    refresh: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.access and not self.refresh


CredentialListener = Callable[[CredentialPair], None]


class CredentialStore(ABC):
    """Holds at most one CredentialPair at a time."""

    @abstractmethod
    def read(self) -> CredentialPair:
        """Return the current pair."""
        raise NotImplementedError

    @abstractmethod
    def write(self, credentials: CredentialPair) -> None:
        """Atomically replace the current pair."""
        raise NotImplementedError

    def clear(self) -> None:
        """Drop both tokens (logged-out state)."""
        self.write(CredentialPair())


class InMemoryCredentialStore(CredentialStore):
    """
    Thread-safe in-memory store.

    Listeners are called after every replace with the new pair, outside the
    lock, so a session layer can react to logouts (empty pair).
    """

    def __init__(self, credentials: Optional[CredentialPair] = None):
        self._credentials = credentials or CredentialPair()
        self._listeners: List[CredentialListener] = []
        self._lock = threading.Lock()

    def read(self) -> CredentialPair:
        with self._lock:
            return self._credentials

    def write(self, credentials: CredentialPair) -> None:
        if not isinstance(credentials, CredentialPair):
            raise TypeError(f"Expected CredentialPair, got {type(credentials).__name__}")
        with self._lock:
            self._credentials = credentials
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(credentials)
            except Exception as e:
                logger.error(f"Credential listener {listener!r} failed: {e}")

    def add_listener(self, listener: CredentialListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove
