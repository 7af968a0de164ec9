"""Two-stage remote-then-local storage policy."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from shared.errors import RemoteStorageError, RemoteTimeout
from shared.models import Medium

logger = logging.getLogger(__name__)


class RemoteThenLocal:
    """
    Try the remote medium once, then fall back to the local medium.

    The remote attempt is always fully resolved (success, failure or timeout)
    before the local call starts. Remote failures are never retried and never
    surfaced; local failures propagate to the caller.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        upload_timeout: float = 120.0,
        evict_on_quota: bool = False
    ):
        """
        Args:
            timeout: Upper bound in seconds for a remote save or get
            upload_timeout: Upper bound in seconds for a remote image upload
            evict_on_quota: Caller opt-in to evict old local assets once when
                the local store is full
        """
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self.evict_on_quota = evict_on_quota

    async def attempt_remote(
        self,
        operation: str,
        remote_call: Callable[[], Awaitable[Any]],
        timeout: Optional[float] = None
    ) -> Tuple[bool, Any]:
        """
        Run one bounded remote attempt.

        Returns:
            (True, result) on success, (False, None) on any remote failure
        """
        bound = self.timeout if timeout is None else timeout
        try:
            result = await asyncio.wait_for(remote_call(), timeout=bound)
            return True, result
        except asyncio.TimeoutError:
            logger.warning(f"Remote {operation} timed out after {bound:.0f}s, falling back to local storage")
        except RemoteTimeout as e:
            logger.warning(f"Remote {operation} timed out: {e}, falling back to local storage")
        except RemoteStorageError as e:
            logger.warning(f"Remote {operation} failed: {e}, falling back to local storage")
        return False, None

    async def run(
        self,
        operation: str,
        remote_call: Optional[Callable[[], Awaitable[Any]]],
        local_call: Callable[[], Any],
        accept_remote: Callable[[Any], bool] = lambda result: True,
        timeout: Optional[float] = None
    ) -> Tuple[Medium, Any]:
        """
        Run the remote call if given, else (or on failure) the local call.

        Args:
            operation: Name used in log messages
            remote_call: Coroutine factory for the remote attempt, or None to skip it
            local_call: Local fallback; may return an awaitable
            accept_remote: Predicate deciding whether a successful remote
                result is usable (e.g. rejects "not found")
            timeout: Override of the remote time bound

        Returns:
            (medium that serviced the call, result)
        """
        if remote_call is not None:
            ok, result = await self.attempt_remote(operation, remote_call, timeout)
            if ok and accept_remote(result):
                return Medium.REMOTE, result
            if ok:
                logger.info(f"Remote {operation} returned nothing usable, falling back to local storage")

        result = local_call()
        if inspect.isawaitable(result):
            result = await result
        return Medium.LOCAL, result
