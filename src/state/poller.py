from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from utils.logger import get_logger

_logger = get_logger(__name__)

T = TypeVar("T")


class PollHandle(Generic[T]):
    """
    Returned by OrderStatusPoller.start(); the owner calls stop() on teardown.
    """

    def __init__(self, poller: "OrderStatusPoller[T]", task: asyncio.Task) -> None:
        self._poller = poller
        self._task = task

    @property
    def snapshot(self) -> Optional[T]:
        return self._poller.snapshot

    @property
    def stopped(self) -> bool:
        return self._task.done()

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit. Safe to call repeatedly."""
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class OrderStatusPoller(Generic[T]):
    """
    Fetch a resource now and then every interval seconds until stopped.

    Each successful fetch replaces the snapshot wholesale. A failed fetch is
    logged and the loop keeps going.
    """

    def __init__(
        self,
        resource_id: str,
        fetch: Callable[[str], Awaitable[T]],
        interval: float = 5.0,
        on_snapshot: Optional[Callable[[T], None]] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Poll interval must be positive.")
        self.resource_id = resource_id
        self.interval = interval
        self.snapshot: Optional[T] = None
        self.ticks = 0
        self.failures = 0
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._handle: Optional[PollHandle[T]] = None

    async def poll_once(self) -> Optional[T]:
        self.ticks += 1
        try:
            snapshot = await self._fetch(self.resource_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            _logger.error(f"[poll] {self.resource_id} fetch failed: {e}")
            return None
        self.snapshot = snapshot
        if self._on_snapshot is not None:
            try:
                self._on_snapshot(snapshot)
            except Exception:
                _logger.exception(f"[poll] {self.resource_id} snapshot handler failed")
        return snapshot

    async def _run(self, delay_first: bool) -> None:
        if delay_first:
            await asyncio.sleep(self.interval)
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self, delay_first: bool = False) -> PollHandle[T]:
        """
        Begin polling; calling again while running returns the same handle.
        delay_first skips the immediate fetch, for callers that just did one.
        """
        if self._handle is not None and not self._handle.stopped:
            return self._handle
        task = asyncio.create_task(self._run(delay_first), name=f"poll-{self.resource_id}")
        self._handle = PollHandle(self, task)
        return self._handle
