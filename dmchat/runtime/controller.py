from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from dmchat.client.base import MessagingClient
from dmchat.domain.directory import AccountDirectory
from dmchat.domain.inbox import InboxBuffer, InboxChoice
from dmchat.runtime.events import KeyChannel
from dmchat.runtime.scheduler import RefreshScheduler
from dmchat.runtime.session import FrameDisplay, SessionOutcome, SessionState, ThreadSession

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


class ChatController:
    """Moves between inbox selection and one open thread at a time."""

    def __init__(
        self,
        *,
        client: MessagingClient,
        inbox: InboxBuffer,
        directory: AccountDirectory,
        keys: KeyChannel | None = None,
        interval: float = DEFAULT_INTERVAL,
        scheduler_factory: Callable[[], RefreshScheduler] = RefreshScheduler,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.inbox = inbox
        self.directory = directory
        self.keys = keys or KeyChannel()
        self.interval = interval
        self.session: ThreadSession | None = None
        self.last_inbox_error: str | None = None
        self._scheduler_factory = scheduler_factory
        self._clock = clock

    @property
    def state(self) -> SessionState:
        if self.session is None:
            return SessionState.IDLE
        return self.session.state

    def list_choices(self) -> list[InboxChoice]:
        return self.inbox.list_choices(self_id=self.client.current_account_id)

    async def run_thread(self, thread_id: str, display: FrameDisplay) -> SessionOutcome:
        """Run a thread until it is ended or interrupted.

        ``/refresh`` closes the current session and opens a fresh one for the
        same thread, so the refetch and the new scheduler start together.
        Raises ``FetchError`` if the thread cannot be opened.
        """
        if self.session is not None:
            raise RuntimeError(f"Thread {self.session.thread_id} is already open")

        while True:
            session = ThreadSession(
                client=self.client,
                thread_id=thread_id,
                inbox=self.inbox,
                directory=self.directory,
                keys=self.keys,
                display=display,
                interval=self.interval,
                scheduler=self._scheduler_factory(),
                clock=self._clock,
            )
            self.session = session
            try:
                async with session:
                    outcome = await session.wait()
            finally:
                self.session = None
                self.last_inbox_error = session.inbox_error

            if outcome is not SessionOutcome.REFRESH:
                logger.info("Thread %s finished: %s", thread_id, outcome.value)
                return outcome
            logger.debug("Reopening thread %s", thread_id)
