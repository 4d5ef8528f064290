from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from dmchat.domain.errors import SendError

logger = logging.getLogger(__name__)


class PendingStatus(str, Enum):
    SENDING = "sending"
    FAILED = "failed"


@dataclass
class PendingMessage:
    text: str
    status: PendingStatus = PendingStatus.SENDING
    error: str | None = None


class PendingQueue:
    """Outgoing messages shown optimistically until the provider confirms them.

    ``send`` delivers one text, ``on_change`` re-renders the view and
    ``on_sent`` runs after a confirmed send (a thread refetch). Sends go out
    one at a time in the order they were queued.
    """

    def __init__(
        self,
        *,
        send: Callable[[str], Awaitable[None]],
        on_change: Callable[[], None],
        on_sent: Callable[[], Awaitable[None]],
    ) -> None:
        self._send = send
        self._on_change = on_change
        self._on_sent = on_sent
        self._entries: list[PendingMessage] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._send_lock = asyncio.Lock()

    @property
    def items(self) -> tuple[PendingMessage, ...]:
        return tuple(self._entries)

    @property
    def has_failed(self) -> bool:
        return any(entry.status is PendingStatus.FAILED for entry in self._entries)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, text: str) -> asyncio.Task[None]:
        entry = PendingMessage(text=text)
        self._entries.append(entry)
        self._on_change()
        return self._start(entry)

    def retry_failed(self) -> list[asyncio.Task[None]]:
        tasks = []
        for entry in self._entries:
            if entry.status is PendingStatus.FAILED:
                entry.status = PendingStatus.SENDING
                entry.error = None
                tasks.append(self._start(entry))
        if tasks:
            self._on_change()
        return tasks

    async def cancel(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def join(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _start(self, entry: PendingMessage) -> asyncio.Task[None]:
        task = asyncio.create_task(self._deliver(entry), name="dmchat-send")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, entry: PendingMessage) -> None:
        async with self._send_lock:
            try:
                await self._send(entry.text)
            except SendError as exc:
                logger.warning("Send failed: %s", exc)
                entry.status = PendingStatus.FAILED
                entry.error = str(exc) or "send failed"
                self._on_change()
                return
        self._entries = [item for item in self._entries if item is not entry]
        await self._on_sent()
