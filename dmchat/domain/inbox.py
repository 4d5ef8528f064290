from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from dmchat.client.base import InboxFeed, MessagingClient
from dmchat.domain.directory import AccountDirectory
from dmchat.protocol.models import ThreadSummary
from dmchat.tui.rendering import format_message_line

logger = logging.getLogger(__name__)

NO_PREVIEW = "(no messages)"


@dataclass(frozen=True)
class InboxChoice:
    label: str
    value: str
    short: str


class InboxBuffer:
    """Thread summaries accumulated across inbox pages.

    ``refresh`` starts over from the first page; ``fetch_older`` and
    ``fetch_all`` append to what is already buffered. Every fetched thread's
    participants are merged into the account directory.
    """

    def __init__(self, client: MessagingClient, directory: AccountDirectory) -> None:
        self._client = client
        self._directory = directory
        self._feed: InboxFeed | None = None
        self.threads: list[ThreadSummary] = []

    @property
    def more_available(self) -> bool:
        return self._feed is not None and self._feed.has_more()

    async def refresh(self) -> None:
        feed = self._client.inbox_feed()
        threads = await feed.fetch_page()
        self._feed = feed
        self.threads = []
        self._append(threads)
        logger.info("Inbox refreshed with %d threads", len(threads))

    async def fetch_older(self) -> None:
        feed = self._require_feed()
        self._append(await feed.fetch_page())

    async def fetch_all(self) -> None:
        feed = self._require_feed()
        self._append(await feed.fetch_remaining())

    def list_choices(self, *, self_id: str, now: datetime | None = None) -> list[InboxChoice]:
        choices = []
        for thread in self.threads:
            if not thread.participants:
                continue
            choices.append(
                InboxChoice(
                    label=f"[{thread.title}] - {self._preview(thread, self_id=self_id, now=now)}",
                    value=thread.thread_id,
                    short=thread.title,
                )
            )
        return choices

    def _preview(self, thread: ThreadSummary, *, self_id: str, now: datetime | None) -> str:
        if not thread.items:
            return NO_PREVIEW
        latest = max(thread.items, key=lambda message: message.created_at)
        if now is None:
            now = datetime.now(timezone.utc)
        return format_message_line(latest, self_id=self_id, directory=self._directory, now=now)

    def _append(self, threads: Iterable[ThreadSummary]) -> None:
        for thread in threads:
            self._directory.merge(thread.participants)
            self.threads.append(thread)

    def _require_feed(self) -> InboxFeed:
        if self._feed is None:
            raise RuntimeError("Inbox has not been refreshed yet")
        return self._feed
