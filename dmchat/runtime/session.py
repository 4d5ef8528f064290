from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from dmchat.client.base import MessagingClient
from dmchat.domain.directory import AccountDirectory
from dmchat.domain.errors import FetchError
from dmchat.domain.inbox import InboxBuffer
from dmchat.protocol.models import ThreadSummary
from dmchat.runtime.events import KeyChannel, KeyPress, Subscription
from dmchat.runtime.pending import PendingQueue
from dmchat.runtime.scheduler import RefreshScheduler
from dmchat.tui.rendering import END_COMMAND, REFRESH_COMMAND, RETRY_COMMAND, RenderState, render_frame

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    THREAD_OPEN = "thread_open"
    ENDING = "ending"
    CLOSED = "closed"


class SessionOutcome(str, Enum):
    END = "end"
    REFRESH = "refresh"
    INTERRUPT = "interrupt"


class FrameDisplay(Protocol):
    def write(self, frame: str) -> None: ...

    def clear(self) -> None: ...


class ThreadSession:
    """One open thread: live frame, compose buffer, refresh timer and key listener.

    Use as an async context manager. Entering fetches the thread, renders it,
    starts the refresh scheduler and subscribes to key presses; leaving stops
    the scheduler, detaches the listener and cancels in-flight sends. The
    compose buffer is only ever touched by ``handle_key``.
    """

    def __init__(
        self,
        *,
        client: MessagingClient,
        thread_id: str,
        inbox: InboxBuffer,
        directory: AccountDirectory,
        keys: KeyChannel,
        display: FrameDisplay,
        interval: float,
        scheduler: RefreshScheduler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.thread_id = thread_id
        self.state = SessionState.IDLE
        self.compose: list[str] = []
        self.thread: ThreadSummary | None = None
        self.error: str | None = None
        self.inbox_error: str | None = None
        self._client = client
        self._inbox = inbox
        self._directory = directory
        self._keys = keys
        self._display = display
        self._interval = interval
        self._scheduler = scheduler or RefreshScheduler()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._subscription: Subscription | None = None
        self._outcome: asyncio.Future[SessionOutcome] | None = None
        self._pending = PendingQueue(send=self._send, on_change=self.render, on_sent=self.refetch)

    @property
    def pending(self) -> PendingQueue:
        return self._pending

    @property
    def compose_text(self) -> str:
        return "".join(self.compose)

    @property
    def title(self) -> str:
        return self.thread.title if self.thread is not None else self.thread_id

    async def __aenter__(self) -> ThreadSession:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def open(self) -> None:
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Thread session is {self.state.value}")
        thread = await self._client.fetch_thread(self.thread_id)
        self._accept(thread)
        self._outcome = asyncio.get_running_loop().create_future()
        self.state = SessionState.THREAD_OPEN
        self.render()
        self._scheduler.start(self._interval, self.refetch)
        self._subscription = self._keys.subscribe(self.handle_key)
        logger.info("Opened thread %s", self.thread_id)

    async def wait(self) -> SessionOutcome:
        if self._outcome is None:
            raise RuntimeError("Thread session is not open")
        return await self._outcome

    async def close(self) -> None:
        self._release()
        await self._pending.cancel()
        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()
        self.state = SessionState.CLOSED
        logger.debug("Closed thread %s", self.thread_id)

    def render(self) -> None:
        if self.state is not SessionState.THREAD_OPEN:
            return
        self._display.write(render_frame(self.snapshot(), now=self._clock()))

    def snapshot(self) -> RenderState:
        return RenderState(
            title=self.title,
            messages=tuple(self.thread.items) if self.thread is not None else (),
            pending=self._pending.items,
            compose=self.compose_text,
            self_id=self._client.current_account_id,
            directory=self._directory,
            error=self.error,
        )

    async def refetch(self) -> None:
        try:
            thread = await self._client.fetch_thread(self.thread_id)
        except FetchError as exc:
            logger.warning("Refresh of thread %s failed: %s", self.thread_id, exc)
            self.error = f"Refresh failed: {exc}"
            self.render()
            return
        self._accept(thread)
        self.render()

    async def handle_key(self, key: KeyPress) -> None:
        if key.is_interrupt:
            self._interrupt()
            return
        if self.state is not SessionState.THREAD_OPEN:
            return
        if key.is_submit:
            await self._submit()
            return
        if key.is_backspace:
            if self.compose:
                self.compose.pop()
            self.render()
            return
        if key.is_printable:
            self.compose.append(key.character)
            self.render()

    async def _submit(self) -> None:
        if not self.compose:
            return
        payload = self.compose_text

        if payload == END_COMMAND:
            self.state = SessionState.ENDING
            self._display.write(f"[*] Ending chat with [{self.title}], refreshing inbox.")
            try:
                await self._inbox.refresh()
            except FetchError as exc:
                logger.warning("Inbox refresh after ending %s failed: %s", self.thread_id, exc)
                self.inbox_error = str(exc)
            if self._outcome is None or self._outcome.done():
                return
            self._display.write(f"[*] Ended chat with [{self.title}].")
            self._finish(SessionOutcome.END)
            return

        if payload == REFRESH_COMMAND:
            self.state = SessionState.ENDING
            self._display.write("[*] Refreshing")
            self._finish(SessionOutcome.REFRESH)
            return

        self.compose.clear()
        if payload == RETRY_COMMAND and self._pending.has_failed:
            self._pending.retry_failed()
            return
        self._pending.submit(payload)

    async def _send(self, text: str) -> None:
        await self._client.send_text(self.thread_id, text)

    def _accept(self, thread: ThreadSummary) -> None:
        self.thread = thread
        self.error = None
        self._directory.merge(thread.participants)

    def _interrupt(self) -> None:
        # An interrupt also wins over an `/end` that is still refreshing the inbox.
        if self._outcome is None or self._outcome.done():
            return
        if len(self.compose) <= 1:
            self._display.clear()
        self._finish(SessionOutcome.INTERRUPT)

    def _finish(self, outcome: SessionOutcome) -> None:
        self._release()
        self.state = SessionState.ENDING
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(outcome)

    def _release(self) -> None:
        self._scheduler.stop()
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
