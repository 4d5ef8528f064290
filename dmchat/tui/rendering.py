from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from dmchat.protocol.models import LikeMessage, MediaMessage, Message, OtherMessage, TextMessage
from dmchat.runtime.pending import PendingMessage, PendingStatus

if TYPE_CHECKING:
    from dmchat.domain.directory import AccountDirectory

SELF_LABEL = "You"
NO_MESSAGES = "There are no messages yet."
HEART = "♥"
PROMPT_ARROW = "›"

END_COMMAND = "/end"
REFRESH_COMMAND = "/refresh"
RETRY_COMMAND = "/retry"

HELP_LINES = (
    f"`{REFRESH_COMMAND}` to refresh chat",
    f"`{END_COMMAND}` to end chat",
)
RETRY_HINT = f"`{RETRY_COMMAND}` to resend failed messages"


@dataclass(frozen=True)
class RenderState:
    """Everything a thread frame is computed from."""

    title: str
    messages: tuple[Message, ...]
    pending: tuple[PendingMessage, ...]
    compose: str
    self_id: str
    directory: AccountDirectory
    error: str | None = None


def format_time_ago(created_at: datetime, now: datetime) -> str:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    total_seconds = int((now - created_at).total_seconds())
    if total_seconds < 10:
        return "just now"
    if total_seconds < 60:
        return f"{total_seconds}s ago"
    minutes = total_seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def format_payload(message: Message) -> str:
    if isinstance(message, TextMessage):
        return f'"{message.text}"'
    if isinstance(message, MediaMessage):
        if not message.media:
            return "[media]"
        return f"[media] {PROMPT_ARROW} {message.media[0].url}"
    if isinstance(message, LikeMessage):
        return HEART
    if isinstance(message, OtherMessage):
        return f"[a non-text message of type {message.kind}]"
    raise TypeError(f"Unsupported message type: {type(message).__name__}")


def format_sender(sender_id: str, *, self_id: str, directory: AccountDirectory) -> str:
    if sender_id == self_id:
        return SELF_LABEL
    return directory.resolve(sender_id)


def format_message_line(
    message: Message,
    *,
    self_id: str,
    directory: AccountDirectory,
    now: datetime,
) -> str:
    sender = format_sender(message.sender_id, self_id=self_id, directory=directory)
    return f"{sender}: {format_payload(message)} [{format_time_ago(message.created_at, now)}]"


def format_pending_line(entry: PendingMessage) -> str:
    if entry.status is PendingStatus.FAILED:
        return f"{SELF_LABEL}: {entry.text} [failed: {entry.error or 'unknown error'}]"
    return f"{SELF_LABEL}: {entry.text} [sending...]"


def sort_messages(messages: Sequence[Message]) -> list[Message]:
    return sorted(messages, key=lambda message: message.created_at)


def render_frame(state: RenderState, *, now: datetime | None = None) -> str:
    """Render the whole thread view as one string.

    The history is sorted by creation time, pending sends follow it in
    submission order, and the composer line is always last. The result only
    depends on ``state`` and ``now``.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    lines: list[str] = []
    if state.messages:
        lines.extend(
            format_message_line(message, self_id=state.self_id, directory=state.directory, now=now)
            for message in sort_messages(state.messages)
        )
    else:
        lines.append(NO_MESSAGES)

    lines.extend(format_pending_line(entry) for entry in state.pending)

    if state.error:
        lines.append(f"! {state.error}")

    lines.append("")
    lines.extend(HELP_LINES)
    if any(entry.status is PendingStatus.FAILED for entry in state.pending):
        lines.append(RETRY_HINT)
    lines.append(f"Reply to [{state.title}] {PROMPT_ARROW} {state.compose}")
    return "\n".join(lines)
