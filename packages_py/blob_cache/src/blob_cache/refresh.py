"""
Background refresh scheduling for stale-while-revalidate.

A stale hit starts a detached refresh task and returns immediately. With
single-flight enabled, concurrent stale hits on one key share the task that
is already running instead of each starting their own fetch.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

RefreshCompleteHook = Callable[[str], None]
RefreshErrorHook = Callable[[str, BaseException], None]


class BackgroundRefresher:
    """
    Runs refresh coroutines as detached asyncio tasks.

    Failures never reach the caller that scheduled the refresh; they are
    logged and handed to the on_error hook.

    Example:
        refresher = BackgroundRefresher(on_error=lambda key, exc: errors.append(exc))
        refresher.schedule(key, lambda: cache.add(url))
        await refresher.drain()
    """

    def __init__(
        self,
        *,
        single_flight: bool = True,
        on_complete: Optional[RefreshCompleteHook] = None,
        on_error: Optional[RefreshErrorHook] = None,
    ) -> None:
        """
        Create a new BackgroundRefresher.

        Args:
            single_flight: Share one task per key between concurrent callers. Default: True
            on_complete: Called with the key after a refresh succeeds
            on_error: Called with the key and error after a refresh fails
        """
        self._single_flight = single_flight
        self._on_complete = on_complete
        self._on_error = on_error
        self._in_flight: Dict[str, "asyncio.Task[None]"] = {}
        self._tasks: Set["asyncio.Task[None]"] = set()
        self.started = 0
        """Number of refresh tasks started."""

    @property
    def single_flight(self) -> bool:
        """Whether concurrent refreshes of one key are shared."""
        return self._single_flight

    def schedule(
        self, key: str, refresh: Callable[[], Awaitable[None]]
    ) -> "asyncio.Task[None]":
        """
        Start a refresh for a key without waiting for it.

        Args:
            key: Cache key being refreshed
            refresh: Factory for the refresh coroutine

        Returns:
            The task running the refresh (an existing one under single-flight)
        """
        if self._single_flight:
            existing = self._in_flight.get(key)
            if existing is not None and not existing.done():
                logger.debug(f"BackgroundRefresher.schedule: joining in-flight refresh for {key}")
                return existing

        task = asyncio.create_task(self._run(key, refresh))
        self.started += 1
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        if self._single_flight:
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))

        logger.debug(f"BackgroundRefresher.schedule: started refresh for {key}")
        return task

    def _release(self, key: str, task: "asyncio.Task[None]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _run(self, key: str, refresh: Callable[[], Awaitable[None]]) -> None:
        try:
            await refresh()
        except asyncio.CancelledError:
            raise
        except Exception as error:
            logger.warning(f"BackgroundRefresher._run: refresh failed for {key}: {error!r}")
            self._call_hook(self._on_error, key, error)
            return

        logger.debug(f"BackgroundRefresher._run: refresh complete for {key}")
        self._call_hook(self._on_complete, key)

    @staticmethod
    def _call_hook(hook: Optional[Callable[..., None]], *args: object) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.debug("BackgroundRefresher: refresh hook raised", exc_info=True)

    def in_flight(self, key: str) -> bool:
        """Check if a refresh for a key is running."""
        task = self._in_flight.get(key)
        if task is not None:
            return not task.done()
        return False

    def pending(self) -> int:
        """Number of refresh tasks still running."""
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Wait until every scheduled refresh has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding refreshes."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._in_flight.clear()
