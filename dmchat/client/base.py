from __future__ import annotations

from typing import Protocol

from dmchat.protocol.models import ThreadSummary


class InboxFeed(Protocol):
    """Cursor over the inbox pages of one refresh."""

    async def fetch_page(self) -> list[ThreadSummary]: ...

    def has_more(self) -> bool: ...

    async def fetch_remaining(self) -> list[ThreadSummary]: ...


class MessagingClient(Protocol):
    """Operations the interaction engine needs from the messaging provider."""

    @property
    def current_account_id(self) -> str: ...

    def inbox_feed(self) -> InboxFeed: ...

    async def fetch_thread(self, thread_id: str) -> ThreadSummary: ...

    async def send_text(self, thread_id: str, text: str) -> None: ...
