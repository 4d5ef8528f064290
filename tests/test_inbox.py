from __future__ import annotations

import asyncio

import pytest
from conftest import ALICE, BOB, NOW, SELF_ID, FakeClient, make_thread, text_message

from dmchat.domain.directory import AccountDirectory
from dmchat.domain.errors import FetchError
from dmchat.domain.inbox import InboxBuffer


def _threads(prefix: str, count: int):
    return [make_thread(f"{prefix}{index}", title=f"{prefix}{index}") for index in range(count)]


def test_list_choices_skips_threads_without_participants() -> None:
    thread_a = make_thread(
        "a",
        title="pals",
        participants=(ALICE, BOB),
        items=[text_message("m1", BOB.id, "yo", minutes_ago=2)],
    )
    thread_b = make_thread("b", title="ghost", participants=())
    client = FakeClient([thread_a, thread_b])
    inbox = InboxBuffer(client, AccountDirectory())

    asyncio.run(inbox.refresh())
    choices = inbox.list_choices(self_id=SELF_ID, now=NOW)

    assert [choice.value for choice in choices] == ["a"]
    assert choices[0].short == "pals"
    assert choices[0].label == '[pals] - bob: "yo" [2m ago]'


def test_choice_label_uses_most_recent_message() -> None:
    thread = make_thread(
        items=[
            text_message("m1", SELF_ID, "older", minutes_ago=30),
            text_message("m2", SELF_ID, "newest", minutes_ago=1),
        ]
    )
    inbox = InboxBuffer(FakeClient([thread]), AccountDirectory())

    asyncio.run(inbox.refresh())

    assert inbox.list_choices(self_id=SELF_ID, now=NOW)[0].label == '[alice] - You: "newest" [1m ago]'


def test_refresh_merges_participants_into_directory() -> None:
    directory = AccountDirectory()
    inbox = InboxBuffer(FakeClient([make_thread(participants=(ALICE, BOB))]), directory)

    asyncio.run(inbox.refresh())

    assert directory.resolve(BOB.id) == "bob"


def test_fetch_older_appends_and_refresh_replaces() -> None:
    page_one = _threads("p1-", 2)
    page_two = _threads("p2-", 2)
    client = FakeClient(page_one + page_two, pages=[page_one, page_two])
    inbox = InboxBuffer(client, AccountDirectory())

    async def scenario() -> None:
        await inbox.refresh()
        assert inbox.more_available is True
        await inbox.fetch_older()
        assert [thread.thread_id for thread in inbox.threads] == ["p1-0", "p1-1", "p2-0", "p2-1"]
        assert inbox.more_available is False

        await inbox.refresh()
        assert [thread.thread_id for thread in inbox.threads] == ["p1-0", "p1-1"]

    asyncio.run(scenario())
    assert client.feeds_opened == 2


def test_fetch_all_reads_every_remaining_page() -> None:
    pages = [_threads("a", 1), _threads("b", 2), _threads("c", 1)]
    client = FakeClient([thread for page in pages for thread in page], pages=pages)
    inbox = InboxBuffer(client, AccountDirectory())

    async def scenario() -> None:
        await inbox.refresh()
        await inbox.fetch_all()

    asyncio.run(scenario())

    assert len(inbox.threads) == 4
    assert inbox.more_available is False


def test_failed_refresh_keeps_previous_buffer() -> None:
    client = FakeClient([make_thread()])
    inbox = InboxBuffer(client, AccountDirectory())
    asyncio.run(inbox.refresh())

    client.inbox_error = FetchError("offline")
    with pytest.raises(FetchError):
        asyncio.run(inbox.refresh())

    assert [thread.thread_id for thread in inbox.threads] == ["t1"]


def test_fetch_older_requires_refresh() -> None:
    inbox = InboxBuffer(FakeClient([]), AccountDirectory())
    with pytest.raises(RuntimeError):
        asyncio.run(inbox.fetch_older())
