from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

KNOWN_MESSAGE_KINDS = frozenset({"text", "media", "like"})


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Account(_Frozen):
    id: str
    username: str


class MediaItem(_Frozen):
    url: str


class _MessageBase(_Frozen):
    id: str
    sender_id: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TextMessage(_MessageBase):
    kind: Literal["text"] = "text"
    text: str


class MediaMessage(_MessageBase):
    kind: Literal["media"] = "media"
    media: list[MediaItem] = Field(default_factory=list)


class LikeMessage(_MessageBase):
    kind: Literal["like"] = "like"


class OtherMessage(_MessageBase):
    kind: str


def _message_tag(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("kind")
    else:
        kind = getattr(value, "kind", None)
    if kind in KNOWN_MESSAGE_KINDS and not isinstance(value, OtherMessage):
        return kind
    return "other"


Message = Annotated[
    Union[
        Annotated[TextMessage, Tag("text")],
        Annotated[MediaMessage, Tag("media")],
        Annotated[LikeMessage, Tag("like")],
        Annotated[OtherMessage, Tag("other")],
    ],
    Discriminator(_message_tag),
]


class ThreadSummary(_Frozen):
    thread_id: str
    title: str
    participants: list[Account] = Field(default_factory=list)
    items: list[Message] = Field(default_factory=list)
    has_more: bool = False


class InboxPage(BaseModel):
    threads: list[ThreadSummary] = Field(default_factory=list)
    cursor: str | None = None
    more_available: bool = False


class LoginRequest(BaseModel):
    username: str
    password: str


class SessionResponse(BaseModel):
    token: str
    account: Account


class SendTextRequest(BaseModel):
    text: str


class StoredSession(BaseModel):
    username: str
    token: str
    account_id: str
