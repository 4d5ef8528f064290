from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Awaits ``on_tick`` every ``interval`` seconds until stopped."""

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None

    def start(self, interval: float, on_tick: Callable[[], Awaitable[None]]) -> None:
        if self._task is not None:
            raise RuntimeError("Refresh scheduler is already running")
        if interval <= 0:
            raise ValueError("Refresh interval must be positive")
        self._task = asyncio.create_task(self._run(interval, on_tick), name="dmchat-refresh")

    def stop(self) -> bool:
        """Cancel the timer. Returns False if it was not running."""
        task, self._task = self._task, None
        if task is None:
            return False
        task.cancel()
        return True

    async def _run(self, interval: float, on_tick: Callable[[], Awaitable[None]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await on_tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Refresh tick failed")
