from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from dmchat.domain.directory import AccountDirectory
from dmchat.domain.inbox import InboxBuffer
from dmchat.protocol.models import Account, TextMessage, ThreadSummary
from dmchat.runtime.events import KeyChannel
from dmchat.runtime.session import ThreadSession

SELF_ID = "me"
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ALICE = Account(id="u-alice", username="alice")
BOB = Account(id="u-bob", username="bob")


def text_message(message_id: str, sender_id: str, text: str, *, minutes_ago: int) -> TextMessage:
    return TextMessage(
        id=message_id,
        sender_id=sender_id,
        text=text,
        created_at=NOW - timedelta(minutes=minutes_ago),
    )


def make_thread(thread_id: str = "t1", *, title: str = "alice", participants=(ALICE,), items=()) -> ThreadSummary:
    return ThreadSummary(thread_id=thread_id, title=title, participants=list(participants), items=list(items))


class FakeFeed:
    def __init__(self, pages: list[list[ThreadSummary]], gate: asyncio.Event | None = None) -> None:
        self._pages = list(pages)
        self._index = 0
        self._gate = gate

    def has_more(self) -> bool:
        return self._index < len(self._pages)

    async def fetch_page(self) -> list[ThreadSummary]:
        if self._gate is not None:
            await self._gate.wait()
        if not self.has_more():
            return []
        page = self._pages[self._index]
        self._index += 1
        return list(page)

    async def fetch_remaining(self) -> list[ThreadSummary]:
        threads: list[ThreadSummary] = []
        while self.has_more():
            threads.extend(await self.fetch_page())
        return threads


class FakeClient:
    def __init__(self, threads: list[ThreadSummary], pages: list[list[ThreadSummary]] | None = None) -> None:
        self.threads = {thread.thread_id: thread for thread in threads}
        self.pages = pages if pages is not None else [list(threads)]
        self.current_account_id = SELF_ID
        self.sent: list[tuple[str, str]] = []
        self.send_gate: asyncio.Event | None = None
        self.send_delays: dict[str, float] = {}
        self.inbox_gate: asyncio.Event | None = None
        self.send_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.inbox_error: Exception | None = None
        self.fetch_count = 0
        self.feeds_opened = 0

    def inbox_feed(self) -> FakeFeed:
        self.feeds_opened += 1
        if self.inbox_error is not None:
            error = self.inbox_error

            class _FailingFeed(FakeFeed):
                async def fetch_page(self) -> list[ThreadSummary]:
                    raise error

            return _FailingFeed([])
        return FakeFeed(self.pages, self.inbox_gate)

    async def fetch_thread(self, thread_id: str) -> ThreadSummary:
        self.fetch_count += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.threads[thread_id]

    async def send_text(self, thread_id: str, text: str) -> None:
        if self.send_gate is not None:
            await self.send_gate.wait()
        await asyncio.sleep(self.send_delays.get(text, 0))
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((thread_id, text))
        thread = self.threads[thread_id]
        delivered = TextMessage(
            id=f"sent-{len(self.sent)}",
            sender_id=SELF_ID,
            text=text,
            created_at=NOW,
        )
        self.threads[thread_id] = thread.model_copy(update={"items": [*thread.items, delivered]})


class FakeDisplay:
    def __init__(self) -> None:
        self.frames: list[str] = []
        self.clears = 0

    @property
    def last(self) -> str:
        return self.frames[-1] if self.frames else ""

    def write(self, frame: str) -> None:
        self.frames.append(frame)

    def clear(self) -> None:
        self.clears += 1
        self.frames.append("")


class FakeScheduler:
    """Scheduler double that only ticks when the test says so."""

    def __init__(self) -> None:
        self.on_tick = None
        self.interval: float | None = None
        self.starts = 0
        self.stops = 0

    @property
    def active(self) -> bool:
        return self.on_tick is not None

    def start(self, interval: float, on_tick) -> None:
        if self.on_tick is not None:
            raise RuntimeError("Refresh scheduler is already running")
        self.interval = interval
        self.on_tick = on_tick
        self.starts += 1

    def stop(self) -> bool:
        if self.on_tick is None:
            return False
        self.on_tick = None
        self.stops += 1
        return True

    async def fire(self) -> None:
        assert self.on_tick is not None, "scheduler is not running"
        await self.on_tick()


@pytest.fixture()
def thread() -> ThreadSummary:
    return make_thread(
        items=[
            text_message("m2", ALICE.id, "how are you?", minutes_ago=1),
            text_message("m1", ALICE.id, "hi", minutes_ago=5),
        ]
    )


@pytest.fixture()
def client(thread: ThreadSummary) -> FakeClient:
    return FakeClient([thread])


@pytest.fixture()
def directory() -> AccountDirectory:
    return AccountDirectory()


@pytest.fixture()
def inbox(client: FakeClient, directory: AccountDirectory) -> InboxBuffer:
    return InboxBuffer(client, directory)


@pytest.fixture()
def display() -> FakeDisplay:
    return FakeDisplay()


@pytest.fixture()
def keys() -> KeyChannel:
    return KeyChannel()


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def make_session(client, inbox, directory, keys, display, scheduler):
    def factory(thread_id: str = "t1") -> ThreadSession:
        return ThreadSession(
            client=client,
            thread_id=thread_id,
            inbox=inbox,
            directory=directory,
            keys=keys,
            display=display,
            interval=5.0,
            scheduler=scheduler,
            clock=lambda: NOW,
        )

    return factory
