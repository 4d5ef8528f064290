from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class KeyPress:
    """A single key event, independent of the terminal toolkit."""

    name: str
    character: str | None = None
    ctrl: bool = False

    @property
    def is_submit(self) -> bool:
        return self.name == "enter" or (self.ctrl and self.name == "u")

    @property
    def is_interrupt(self) -> bool:
        return self.ctrl and self.name == "c"

    @property
    def is_backspace(self) -> bool:
        return self.name == "backspace"

    @property
    def is_printable(self) -> bool:
        return not self.ctrl and bool(self.character) and self.character.isprintable()


KeyHandler = Callable[[KeyPress], Awaitable[None]]


class Subscription:
    def __init__(self, channel: KeyChannel, handler: KeyHandler) -> None:
        self._channel = channel
        self._handler = handler
        self.active = True

    def cancel(self) -> bool:
        """Detach the handler. Returns False if it was already detached."""
        if not self.active:
            return False
        self.active = False
        self._channel._detach(self._handler)
        return True


class KeyChannel:
    """Delivers key presses to subscribed handlers in subscription order."""

    def __init__(self) -> None:
        self._handlers: list[KeyHandler] = []

    @property
    def listener_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: KeyHandler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    async def publish(self, key: KeyPress) -> bool:
        handlers = list(self._handlers)
        for handler in handlers:
            await handler(key)
        return bool(handlers)

    def _detach(self, handler: KeyHandler) -> None:
        self._handlers.remove(handler)
