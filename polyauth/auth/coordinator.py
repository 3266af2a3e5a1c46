"""
Refresh Coordinator
Single-flight gate over credential refresh.

However many requests fail with 401 at the same time, at most one refresh
operation runs. The first caller (leader) starts it; callers arriving while
it runs (followers) wait for it and receive the same outcome.

State machine:
    IDLE --first 401--> REFRESHING --refresh resolved--> IDLE

The check of the in-flight slot and the start of a refresh happen under one
lock, and the slot is reset in ``finally`` so no exit path can leave the
coordinator stuck in REFRESHING.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Optional

from ..errors import RefreshError, RefreshTerminal, RefreshTransient
from .credentials import CredentialPair, CredentialStore
from .refresh import RefreshOperation

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class _BaseCoordinator:
    """State and outcome handling shared by the async and sync gates."""

    def __init__(
        self,
        store: CredentialStore,
        operation: RefreshOperation,
        *,
        timeout: Optional[float] = 30.0,
    ):
        self.store = store
        self.operation = operation
        self.timeout = timeout
        self.refresh_count = 0

        self._state = RefreshState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def in_progress(self) -> bool:
        return self._state is RefreshState.REFRESHING

    def _settled_locked(self, observed: CredentialPair, current: CredentialPair) -> bool:
        """
        True when a refresh already happened after ``observed`` was sent.
        (lock must be held)

        Raises RefreshTerminal when that refresh ended in a logout.
        """
        if current.access and current.access != observed.access:
            return True
        if observed.refresh and not current.refresh:
            raise RefreshTerminal("Credentials were cleared by a previous refresh")
        return False

    def _commit(self, credentials: CredentialPair) -> CredentialPair:
        self.store.write(credentials)
        logger.info("Credential refresh succeeded")
        return credentials

    def _fail(self, exc: BaseException) -> RefreshError:
        """Classify a refresh failure and apply its effect on the store."""
        if isinstance(exc, RefreshTerminal):
            self.store.clear()
            logger.warning(f"Refresh token rejected, credentials cleared: {exc}")
            return exc

        if isinstance(exc, RefreshError):
            error = exc
        else:
            error = RefreshTransient(f"Credential refresh failed: {type(exc).__name__}: {exc}")
            error.__cause__ = exc

        logger.warning(f"Credential refresh failed, credentials kept: {error}")
        return error


class RefreshCoordinator(_BaseCoordinator):
    """
    asyncio single-flight gate.

    The refresh runs as its own task and every caller awaits it through
    ``asyncio.shield``: cancelling one caller (leader included) only drops
    that caller, the refresh and the other waiters carry on.

    Bound to the event loop of its first refresh.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._task: Optional["asyncio.Task[CredentialPair]"] = None

    async def refresh(self, observed: CredentialPair) -> CredentialPair:
        """
        Refresh (or join the refresh in progress) after a 401.

        Args:
            observed: credentials the failing request was sent with

        Returns:
            The credentials to replay with.

        Raises:
            RefreshTerminal: refresh token rejected (store cleared)
            RefreshTransient: any other refresh failure (store untouched)
        """
        with self._lock:
            task = self._task
            if task is None:
                current = self.store.read()
                if self._settled_locked(observed, current):
                    logger.debug("Credentials already refreshed, replaying without refresh")
                    return current

                self._state = RefreshState.REFRESHING
                self.refresh_count += 1
                task = asyncio.get_running_loop().create_task(self._run(current))
                task.add_done_callback(_consume_result)
                self._task = task
                logger.info("Starting credential refresh")
            else:
                logger.debug("Refresh in progress, waiting for it")

        return await asyncio.shield(task)

    async def _run(self, credentials: CredentialPair) -> CredentialPair:
        try:
            if self.timeout is None:
                refreshed = await self.operation.refresh_async(credentials)
            else:
                refreshed = await asyncio.wait_for(
                    self.operation.refresh_async(credentials), self.timeout
                )
        except asyncio.TimeoutError as e:
            error = RefreshTransient(f"Credential refresh timed out after {self.timeout}s")
            raise self._fail(error) from e
        except Exception as e:
            raise self._fail(e)
        else:
            return self._commit(refreshed)
        finally:
            with self._lock:
                self._task = None
                self._state = RefreshState.IDLE


def _consume_result(task: "asyncio.Task[CredentialPair]") -> None:
    # Every waiter may have been cancelled; retrieve the outcome so asyncio
    # does not report it as never retrieved.
    if not task.cancelled():
        task.exception()


class _RefreshCycle:
    """One sync refresh: its outcome and the event followers wait on."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Optional[CredentialPair] = None
        self.error: Optional[RefreshError] = None


class SyncRefreshCoordinator(_BaseCoordinator):
    """
    Thread-based single-flight gate.

    The leader runs the refresh in its own thread. Followers block on the
    cycle's event, for at most ``timeout`` seconds when one is set. The
    refresh call itself is bounded by the operation's HTTP timeout.

    ``timeout`` bounds only the followers' wait. A follower that gives up
    raises RefreshTransient while the leader may still succeed and write new
    credentials; the next 401 from that follower then replays with them
    without a second refresh.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._cycle: Optional[_RefreshCycle] = None

    def refresh(self, observed: CredentialPair) -> CredentialPair:
        """Thread-safe counterpart of :meth:`RefreshCoordinator.refresh`."""
        with self._lock:
            cycle = self._cycle
            leader = cycle is None
            if leader:
                current = self.store.read()
                if self._settled_locked(observed, current):
                    logger.debug("Credentials already refreshed, replaying without refresh")
                    return current

                cycle = self._cycle = _RefreshCycle()
                self._state = RefreshState.REFRESHING
                self.refresh_count += 1
                logger.info("Starting credential refresh")

        if leader:
            self._lead(cycle, current)
        elif not cycle.done.wait(self.timeout):
            raise RefreshTransient(f"Timed out after {self.timeout}s waiting for credential refresh")

        if cycle.error is not None:
            raise cycle.error
        if cycle.result is None:
            raise RefreshTransient("Credential refresh was interrupted")
        return cycle.result

    def _lead(self, cycle: _RefreshCycle, credentials: CredentialPair) -> None:
        try:
            refreshed = self.operation.refresh_sync(credentials)
        except Exception as e:
            cycle.error = self._fail(e)
        else:
            cycle.result = self._commit(refreshed)
        finally:
            with self._lock:
                self._cycle = None
                self._state = RefreshState.IDLE
            cycle.done.set()
