from __future__ import annotations

import asyncio

from dmchat.runtime.events import KeyChannel, KeyPress


def test_key_classification() -> None:
    assert KeyPress(name="enter").is_submit
    assert KeyPress(name="u", ctrl=True).is_submit
    assert KeyPress(name="c", ctrl=True).is_interrupt
    assert KeyPress(name="backspace").is_backspace
    assert KeyPress(name="a", character="a").is_printable
    assert not KeyPress(name="escape", character="\x1b").is_printable
    assert not KeyPress(name="u", character="\x15", ctrl=True).is_printable


def test_subscription_detaches_once() -> None:
    received: list[str] = []

    async def handler(key: KeyPress) -> None:
        received.append(key.name)

    async def scenario() -> None:
        channel = KeyChannel()
        subscription = channel.subscribe(handler)
        assert await channel.publish(KeyPress(name="a", character="a")) is True

        assert subscription.cancel() is True
        assert subscription.cancel() is False
        assert channel.listener_count == 0
        assert await channel.publish(KeyPress(name="b", character="b")) is False

    asyncio.run(scenario())
    assert received == ["a"]
