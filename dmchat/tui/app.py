from __future__ import annotations

import logging

from rich.text import Text
from textual import events, on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.screen import Screen
from textual.widgets import OptionList, Static
from textual.widgets.option_list import Option

from dmchat import __version__
from dmchat.domain.errors import FetchError
from dmchat.runtime.controller import ChatController
from dmchat.runtime.events import KeyPress
from dmchat.runtime.session import SessionOutcome

logger = logging.getLogger(__name__)

CHOICE_FETCH_OLDER = "CHOICE_FETCH_OLDER"
CHOICE_FETCH_ALL = "CHOICE_FETCH_ALL"
CHOICE_REFRESH = "CHOICE_REFRESH"

MENU_LABELS = {
    CHOICE_FETCH_OLDER: "Fetch older items",
    CHOICE_FETCH_ALL: "Fetch all items",
    CHOICE_REFRESH: "Refresh inbox",
}


def key_from_event(event: events.Key) -> KeyPress | None:
    """Translate a Textual key event; escape sequences and navigation keys map to None."""
    if event.key.startswith("ctrl+"):
        return KeyPress(name=event.key.removeprefix("ctrl+"), ctrl=True)
    if event.key in {"enter", "backspace"}:
        return KeyPress(name=event.key)
    if event.is_printable and event.character:
        return KeyPress(name=event.key, character=event.character)
    return None


def menu_values(*, more_available: bool) -> list[str]:
    if more_available:
        return [CHOICE_FETCH_OLDER, CHOICE_FETCH_ALL, CHOICE_REFRESH]
    return [CHOICE_REFRESH]


class InboxScreen(Screen):
    """Thread picker followed by the pagination and refresh menu."""

    def __init__(self, controller: ChatController) -> None:
        super().__init__()
        self.controller = controller
        self._values: list[str] = []

    def compose(self) -> ComposeResult:
        with Horizontal(id="header"):
            yield Static("Inbox threads:", id="header-left")
            yield Static(f"dmchat v{__version__}", id="header-right")
        yield OptionList(id="inbox")

    def on_mount(self) -> None:
        self.populate()

    def on_screen_resume(self) -> None:
        self.populate()

    def populate(self) -> None:
        choices = self.controller.list_choices()
        menu = menu_values(more_available=self.controller.inbox.more_available)
        self._values = [choice.value for choice in choices] + menu

        option_list = self.query_one("#inbox", OptionList)
        option_list.clear_options()
        option_list.add_options(
            [Option(choice.label) for choice in choices] + [Option(MENU_LABELS[value]) for value in menu]
        )
        option_list.focus()

    @on(OptionList.OptionSelected, "#inbox")
    def handle_selected(self, event: OptionList.OptionSelected) -> None:
        value = self._values[event.option_index]
        if value in MENU_LABELS:
            self.run_worker(self._run_menu(value), exclusive=True, group="inbox")
            return
        self.app.open_thread(value)

    async def _run_menu(self, value: str) -> None:
        inbox = self.controller.inbox
        try:
            if value == CHOICE_FETCH_OLDER:
                await inbox.fetch_older()
            elif value == CHOICE_FETCH_ALL:
                await inbox.fetch_all()
            else:
                await inbox.refresh()
        except FetchError as exc:
            self.notify(f"Inbox fetch failed: {exc}", severity="error")
        self.populate()


class FrameSink:
    """Writes whole frames to a thread screen, replacing the previous one."""

    def __init__(self, screen: ThreadScreen) -> None:
        self._screen = screen

    def write(self, frame: str) -> None:
        self._screen.show_frame(frame)

    def clear(self) -> None:
        self._screen.show_frame("")


class ThreadScreen(Screen):
    """Hosts the rendered thread frame and forwards key presses to the session."""

    def __init__(self, controller: ChatController, thread_id: str) -> None:
        super().__init__()
        self.controller = controller
        self.thread_id = thread_id
        self._frame = ""
        self.sink = FrameSink(self)
        self._view = Static(id="frame")

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="thread-scroll"):
            yield self._view

    @property
    def frame(self) -> str:
        return self._frame

    def on_mount(self) -> None:
        self.show_frame(self._frame)

    def show_frame(self, frame: str) -> None:
        self._frame = frame
        self._view.update(Text(frame))
        for scroll in self.query(VerticalScroll):
            scroll.scroll_end(animate=False)

    async def on_key(self, event: events.Key) -> None:
        key = key_from_event(event)
        if key is None:
            return
        event.stop()
        await self.controller.keys.publish(key)


class DirectMessageApp(App):
    """Terminal client for a direct-message inbox."""

    CSS = """
    Screen {
        background: #0d1117;
    }

    #header {
        height: 2;
        dock: top;
        background: #161b22;
        border-bottom: solid #30363d;
        padding: 0 1;
    }

    #header-left {
        width: 1fr;
        content-align: left middle;
        color: #e6edf3;
        text-style: bold;
    }

    #header-right {
        width: auto;
        content-align: right middle;
        color: #7d8590;
    }

    #inbox {
        height: 1fr;
        border: none;
        background: #0d1117;
    }

    #thread-scroll {
        height: 1fr;
        padding: 1 2;
        background: #0d1117;
    }

    #frame {
        color: #e6edf3;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "interrupt", "Quit", show=False, priority=True),
    ]

    def __init__(self, *, controller: ChatController) -> None:
        super().__init__()
        self.controller = controller

    def on_mount(self) -> None:
        self.push_screen(InboxScreen(self.controller))

    def open_thread(self, thread_id: str) -> None:
        screen = ThreadScreen(self.controller, thread_id)
        self.push_screen(screen)
        self.run_worker(self._run_thread(screen), exclusive=True, group="thread")

    async def _run_thread(self, screen: ThreadScreen) -> None:
        try:
            outcome = await self.controller.run_thread(screen.thread_id, screen.sink)
        except FetchError as exc:
            logger.warning("Could not open thread %s: %s", screen.thread_id, exc)
            self.pop_screen()
            self.notify(f"Can't open thread: {exc}", severity="error")
            return

        if outcome is SessionOutcome.INTERRUPT:
            self.exit()
            return

        self.pop_screen()
        if self.controller.last_inbox_error:
            self.notify(f"Inbox refresh failed: {self.controller.last_inbox_error}", severity="error")

    async def action_interrupt(self) -> None:
        if self.controller.keys.listener_count:
            await self.controller.keys.publish(KeyPress(name="c", ctrl=True))
            return
        self.exit()


async def run_app(controller: ChatController) -> None:
    await DirectMessageApp(controller=controller).run_async()
